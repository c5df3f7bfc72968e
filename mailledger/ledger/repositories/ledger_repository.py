"""Ledger repository with duplicate-safe inserts and balance queries."""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError

from mailledger.ledger.models.ledger_entry import LedgerEntry
from mailledger.ledger.repository import BaseRepository


class InsertOutcome(str, Enum):
    """Result of a ledger insert."""

    INSERTED = "inserted"
    DUPLICATE = "duplicate"


class LedgerRepository(BaseRepository[LedgerEntry]):
    """Repository for LedgerEntry with specialized queries."""

    async def list_existing(self, account_id: Optional[str] = None) -> List[LedgerEntry]:
        """
        Get recorded entries, optionally scoped to one mail account.

        Args:
            account_id: Restrict to entries from this account

        Returns:
            Entries ordered oldest first
        """
        query = select(self.model).order_by(self.model.id)
        if account_id is not None:
            query = query.where(self.model.account_id == account_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_by_email_id(self, email_id: str) -> Optional[LedgerEntry]:
        return await self.get_by_field("email_id", email_id)

    async def insert_if_absent(self, **fields: Any) -> InsertOutcome:
        """
        Insert an entry unless its key fields already exist.

        The unique constraint on (date, amount, category, description) is the
        final arbiter: a violation rolls the session back and reports
        DUPLICATE. Use on a session that carries no other pending work.
        """
        self.session.add(self.model(**fields))
        try:
            await self.session.flush()
        except IntegrityError:
            await self.session.rollback()
            return InsertOutcome.DUPLICATE
        return InsertOutcome.INSERTED

    async def balance_summary(self) -> Dict[str, Any]:
        """
        Totals across the whole ledger.

        Returns:
            total_income, total_expense (as a positive number), total_balance
            and transaction_count
        """
        income = func.coalesce(
            func.sum(case((self.model.amount > 0, self.model.amount), else_=0)), 0
        )
        expense = func.coalesce(
            func.sum(case((self.model.amount < 0, self.model.amount), else_=0)), 0
        )
        result = await self.session.execute(
            select(income, expense, func.count(self.model.id))
        )
        total_income, total_expense, count = result.one()

        total_income = Decimal(str(total_income)).quantize(Decimal("0.01"))
        total_expense = abs(Decimal(str(total_expense))).quantize(Decimal("0.01"))
        return {
            "total_income": total_income,
            "total_expense": total_expense,
            "total_balance": total_income - total_expense,
            "transaction_count": count or 0,
        }
