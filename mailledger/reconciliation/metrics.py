"""
Reconciliation run summaries and in-memory run history.

Summaries are never persisted; they feed logs and the status endpoint.
"""

from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from mailledger.notifications.batcher import NotificationMode


@dataclass(frozen=True)
class RunSummary:
    """Outcome of one account's processing cycle."""

    account_id: str
    run_id: str
    started_at: datetime
    ended_at: datetime
    processed: int = 0
    duplicates: int = 0
    errors: int = 0
    notified_mode: NotificationMode = NotificationMode.NONE
    failed: bool = False
    stopped_early: bool = False
    error_message: Optional[str] = None

    @property
    def total(self) -> int:
        return self.processed + self.duplicates + self.errors

    @property
    def duration_seconds(self) -> float:
        return (self.ended_at - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat()
        data["notified_mode"] = self.notified_mode.value
        data["duration_seconds"] = self.duration_seconds
        return data


@dataclass
class AggregateMetrics:
    """Totals across the summaries kept in history."""

    total_runs: int = 0
    failed_runs: int = 0
    total_processed: int = 0
    total_duplicates: int = 0
    total_errors: int = 0
    batch_notifications: int = 0
    individual_notifications: int = 0
    last_run: Optional[datetime] = None
    last_failure: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("last_run", "last_failure"):
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class ReconciliationMetrics:
    """Bounded history of run summaries."""

    def __init__(self, history_size: int = 100):
        self._history: Deque[RunSummary] = deque(maxlen=history_size)

    def record(self, summary: RunSummary) -> None:
        self._history.append(summary)

    def get_last_run(self) -> Optional[RunSummary]:
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[RunSummary]:
        """Recent summaries, newest first."""
        history = list(reversed(self._history))
        return history[:limit] if limit else history

    def get_aggregate_metrics(self) -> AggregateMetrics:
        metrics = AggregateMetrics()
        for run in self._history:
            metrics.total_runs += 1
            metrics.total_processed += run.processed
            metrics.total_duplicates += run.duplicates
            metrics.total_errors += run.errors
            if run.notified_mode is NotificationMode.BATCH:
                metrics.batch_notifications += 1
            elif run.notified_mode is NotificationMode.INDIVIDUAL:
                metrics.individual_notifications += 1
            if run.failed:
                metrics.failed_runs += 1
                metrics.last_failure = run.ended_at
            metrics.last_run = run.ended_at
        return metrics

    def reset(self) -> None:
        self._history.clear()
