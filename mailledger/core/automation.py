"""
Automation service for mailledger.

Runs reconciliation cycles on a fixed interval and on demand. Only one cycle
runs at a time per process: a trigger that arrives while a cycle is in flight
is skipped, not queued.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from mailledger.core.config import get_settings
from mailledger.reconciliation.metrics import RunSummary
from mailledger.reconciliation.orchestrator import ReconciliationOrchestrator, get_orchestrator

logger = structlog.get_logger("automation")


class AutomationService:
    """
    Periodic and on-demand reconciliation cycles.

    Shutdown is graceful: stop() lets the in-flight cycle finish its current
    message, waits for it, then cancels the sleeping loop and releases the
    shared LLM and notification handles.
    """

    def __init__(self, orchestrator: ReconciliationOrchestrator, interval_seconds: int = 300):
        """
        Args:
            orchestrator: Runs the per-account cycles
            interval_seconds: Time between automatic cycles (default: 5 minutes)
        """
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._last_run: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._last_summaries: List[RunSummary] = []

        # Metrics
        self.total_cycles = 0
        self.successful_cycles = 0
        self.failed_cycles = 0
        self.skipped_cycles = 0

        logger.info("automation.initialized", interval_seconds=interval_seconds)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycle_in_progress(self) -> bool:
        return self._lock.locked()

    def _counters(self) -> Dict[str, int]:
        return {
            "total_cycles": self.total_cycles,
            "successful_cycles": self.successful_cycles,
            "failed_cycles": self.failed_cycles,
        }

    async def start(self, interval_seconds: Optional[int] = None) -> Dict[str, Any]:
        """Begin the periodic loop; the first cycle runs immediately."""
        if self._running:
            logger.warning("automation.start_ignored", reason="already_running")
            return {"success": False, "running": True, "message": "Automation is already running"}

        self.interval_seconds = interval_seconds or self.interval_seconds
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="mailledger-automation")
        logger.info("automation.started", interval_seconds=self.interval_seconds)
        return {
            "success": True,
            "running": True,
            "interval_seconds": self.interval_seconds,
            "message": f"Polling every {self.interval_seconds}s",
        }

    async def stop(self) -> Dict[str, Any]:
        """Stop the loop gracefully and release shared handles."""
        was_running, self._running = self._running, False
        logger.info("automation.stopping", cycle_in_progress=self.cycle_in_progress)

        if self.cycle_in_progress:
            self.orchestrator.request_stop()
            # the orchestrator checks the flag between messages
            async with self._lock:
                pass

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        await self.orchestrator.close()
        logger.info("automation.stopped", **self._counters())
        return {
            "success": was_running,
            "running": False,
            "message": "Automation stopped" if was_running else "Automation is not running",
            **self._counters(),
        }

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_cycle()
            except Exception as exc:
                # run_cycle reports orchestrator errors itself; this guards the loop
                logger.exception("automation.loop_error", error=str(exc))
                self._last_error = str(exc)
            await asyncio.sleep(self.interval_seconds)

    async def trigger(self) -> Dict[str, Any]:
        """Run a cycle now unless one is already running."""
        logger.info("automation.manual_trigger")
        return await self.run_cycle()

    async def run_cycle(self) -> Dict[str, Any]:
        """Run a single cycle across all accounts."""
        if self._lock.locked():
            self.skipped_cycles += 1
            logger.info("automation.cycle_skipped", reason="cycle_in_progress")
            return {"status": "skipped", "reason": "cycle_in_progress"}

        async with self._lock:
            cycle_start = datetime.now(timezone.utc)
            self.total_cycles += 1
            logger.info("automation.cycle_start", cycle=self.total_cycles)

            try:
                summaries = await self.orchestrator.process_all_accounts()
            except Exception as exc:
                logger.exception("automation.cycle_failed", error=str(exc))
                self.failed_cycles += 1
                self._last_error = str(exc)
                return {"status": "failed", "error": str(exc)}

            cycle_end = datetime.now(timezone.utc)
            self._last_run = cycle_end
            self._last_summaries = summaries
            if any(s.failed for s in summaries):
                self.failed_cycles += 1
                self._last_error = next(s.error_message for s in summaries if s.failed)
            else:
                self.successful_cycles += 1

            duration = (cycle_end - cycle_start).total_seconds()
            logger.info(
                "automation.cycle_complete",
                cycle=self.total_cycles,
                duration_seconds=duration,
            )
            return {
                "status": "completed",
                "started_at": cycle_start.isoformat(),
                "completed_at": cycle_end.isoformat(),
                "duration_seconds": duration,
                "summaries": [s.to_dict() for s in summaries],
            }

    def get_status(self) -> dict:
        metrics = self.orchestrator.metrics.get_aggregate_metrics()
        return {
            "running": self._running,
            "cycle_in_progress": self.cycle_in_progress,
            "interval_seconds": self.interval_seconds,
            "cycles_completed": self.total_cycles,
            "successful_cycles": self.successful_cycles,
            "failed_cycles": self.failed_cycles,
            "skipped_cycles": self.skipped_cycles,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_error": self._last_error,
            "last_summaries": [s.to_dict() for s in self._last_summaries],
            "metrics": metrics.to_dict(),
        }


# Global automation service instance
_automation_service: Optional[AutomationService] = None


def get_automation_service() -> AutomationService:
    """Get the global automation service instance."""
    global _automation_service
    if _automation_service is None:
        settings = get_settings()
        _automation_service = AutomationService(
            get_orchestrator(),
            interval_seconds=settings.EMAIL_CHECK_INTERVAL_MINUTES * 60,
        )
    return _automation_service


def set_automation_service(service: Optional[AutomationService]) -> None:
    """Set the global automation service instance."""
    global _automation_service
    _automation_service = service
