"""
Email to ledger reconciliation.

This module drives the per-account cycle (fetch, extract, parse, dedupe,
persist, label, notify) and keeps an in-memory history of run summaries.
"""

from mailledger.reconciliation.config import ReconciliationConfig
from mailledger.reconciliation.metrics import ReconciliationMetrics, RunSummary
from mailledger.reconciliation.orchestrator import (
    ReconciliationOrchestrator,
    build_orchestrator,
    get_orchestrator,
)

__all__ = [
    "ReconciliationConfig",
    "ReconciliationMetrics",
    "RunSummary",
    "ReconciliationOrchestrator",
    "build_orchestrator",
    "get_orchestrator",
]
