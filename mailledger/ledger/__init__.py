"""
Ledger storage and duplicate detection.

This module persists parsed transactions with a storage-level uniqueness
constraint on the key fields, and provides the exact-field duplicate check
the orchestrator runs before inserting.
"""

from mailledger.ledger.duplicates import DuplicateResolver, KeyFields, format_amount, key_of
from mailledger.ledger.ledger import LedgerClient, LedgerRecord, SqlLedger
from mailledger.ledger.repositories import InsertOutcome

__all__ = [
    "DuplicateResolver",
    "KeyFields",
    "format_amount",
    "key_of",
    "LedgerClient",
    "LedgerRecord",
    "SqlLedger",
    "InsertOutcome",
]
