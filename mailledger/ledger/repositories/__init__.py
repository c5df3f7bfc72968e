"""Repository exports."""

from .ledger_repository import InsertOutcome, LedgerRepository

__all__ = ["InsertOutcome", "LedgerRepository"]
