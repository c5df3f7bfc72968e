"""
Ledger collaborator interface and its SQL implementation.

Defines the contract the orchestrator needs from durable storage: list the
key fields already recorded, and insert a record reporting whether it was
new or a duplicate.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from mailledger.core.errors import PersistenceFailure
from mailledger.ledger.duplicates import KeyFields
from mailledger.ledger.repositories import InsertOutcome
from mailledger.ledger.unit_of_work import UnitOfWork
from mailledger.parsing.models import ParsedTransaction


class LedgerRecord(BaseModel):
    """A parsed transaction plus the provenance stored with it."""

    transaction: ParsedTransaction
    email_id: str
    account_id: str
    user_id: Optional[str] = None
    dedupe_partition: str = ""

    def to_row(self) -> Dict[str, Any]:
        """Normalize to the LedgerEntry column schema."""
        tx = self.transaction
        return {
            "date": tx.date.isoformat(),
            "amount": tx.amount.quantize(Decimal("0.01")),
            "category": tx.category,
            "description": tx.description,
            "bank": tx.bank,
            "transaction_type": tx.transaction_type.value,
            "confidence": tx.confidence,
            "email_id": self.email_id,
            "account_id": self.account_id,
            "user_id": self.user_id,
            "dedupe_partition": self.dedupe_partition,
        }


class LedgerClient(ABC):
    """Abstract ledger collaborator."""

    @abstractmethod
    async def list_existing(self, scope: Optional[str] = None) -> List[KeyFields]:
        """
        Key fields of recorded entries.

        Args:
            scope: Account id to restrict to, or None for the whole ledger
        """
        pass

    @abstractmethod
    async def insert(self, record: LedgerRecord) -> InsertOutcome:
        """
        Persist `record` unless its key fields already exist.

        Raises:
            PersistenceFailure: If the write did not complete
        """
        pass


class SqlLedger(LedgerClient):
    """Ledger collaborator backed by the SQLAlchemy ledger_entries table."""

    async def list_existing(self, scope: Optional[str] = None) -> List[KeyFields]:
        try:
            async with UnitOfWork() as uow:
                entries = await uow.ledger.list_existing(account_id=scope)
                return [KeyFields.from_entry(entry) for entry in entries]
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not read ledger: {e}") from e

    async def insert(self, record: LedgerRecord) -> InsertOutcome:
        try:
            async with UnitOfWork() as uow:
                return await uow.ledger.insert_if_absent(**record.to_row())
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Could not write ledger entry: {e}") from e
