"""Database models for the ledger."""

from .ledger_entry import LedgerEntry

__all__ = ["LedgerEntry"]
