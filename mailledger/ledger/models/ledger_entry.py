"""Ledger entry model: one persisted transaction."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mailledger.ledger.base import Base


class LedgerEntry(Base):
    """
    Stores transactions parsed from notification emails.

    The (date, amount, category, description) key is unique in storage within
    a dedupe partition, so a duplicate that slips past the pre-insert check is
    still rejected. The partition is empty when the whole ledger is one scope,
    and otherwise names the account and/or bank the key is scoped to.
    """

    __tablename__ = "ledger_entries"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Key fields
    date: Mapped[str] = mapped_column(
        String(10), nullable=False, index=True, comment="Transaction date (YYYY-MM-DD)"
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2),
        nullable=False,
        comment="Signed amount, negative for expenses",
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Details
    bank: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True, comment="Registry bank label"
    )
    transaction_type: Mapped[str] = mapped_column(
        String(20), nullable=False, comment="income or expense"
    )
    confidence: Mapped[int] = mapped_column(Integer, nullable=False, default=70)

    # Provenance
    email_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True, comment="Source message id"
    )
    account_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True, comment="Mail account the message came from"
    )
    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dedupe_partition: Mapped[str] = mapped_column(
        String(512), nullable=False, default="", comment="Scope the key fields are unique within"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint(
            "date", "amount", "category", "description", "dedupe_partition", name="uq_ledger_key"
        ),
        Index("idx_ledger_account_date", "account_id", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry(id={self.id}, date={self.date}, amount={self.amount}, "
            f"category={self.category}, bank={self.bank})>"
        )
