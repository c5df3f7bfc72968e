"""
Duplicate detection against previously recorded ledger entries.

A candidate is a duplicate when a prior entry has equal key fields
(date, amount, category, description) after trimming and lower-casing each
field's string form. Amounts are rendered with two decimal places first, so
-25000, -25000.0 and -25000.00 compare equal. Matching is exact-field only.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Iterable, Optional, Union

if TYPE_CHECKING:
    from mailledger.ledger.models import LedgerEntry
    from mailledger.parsing.models import ParsedTransaction

_CENTS = Decimal("0.01")


def format_amount(value: Union[Decimal, int, float, str]) -> str:
    """Render an amount with exactly two decimal places.

    Strings that are not numbers are returned unchanged.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
        return format(amount.quantize(_CENTS), "f")
    except (InvalidOperation, ValueError):
        return str(value)


@dataclass(frozen=True)
class KeyFields:
    """Fields a ledger entry exposes for duplicate comparison."""

    date: str
    amount: Union[Decimal, str]
    category: str
    description: str
    bank: Optional[str] = None

    @classmethod
    def from_transaction(cls, transaction: ParsedTransaction) -> KeyFields:
        return cls(
            date=transaction.date.isoformat(),
            amount=transaction.amount,
            category=transaction.category,
            description=transaction.description,
            bank=transaction.bank,
        )

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> KeyFields:
        return cls(
            date=entry.date,
            amount=entry.amount,
            category=entry.category,
            description=entry.description,
            bank=entry.bank,
        )


def _norm(value: object) -> str:
    return "" if value is None else str(value).strip().lower()


def key_of(record: KeyFields, include_bank: bool = False) -> tuple[str, ...]:
    """Comparable key of `record`."""
    key = (
        _norm(record.date),
        _norm(format_amount(record.amount)),
        _norm(record.category),
        _norm(record.description),
    )
    return key + (_norm(record.bank),) if include_bank else key


def partition_key(
    account_id: Optional[str] = None, bank: Optional[str] = None, include_bank: bool = False
) -> str:
    """Storage partition the key fields must be unique within.

    The empty string is the whole ledger. An account id narrows it to that
    account; `include_bank` adds the normalized bank label, so entries with
    no bank still collide with each other.
    """
    parts = []
    if account_id is not None:
        parts.append(f"account={_norm(account_id)}")
    if include_bank:
        parts.append(f"bank={_norm(bank)}")
    return "|".join(parts)


class DuplicateResolver:
    """Decides whether a candidate already exists among recorded entries.

    With `include_bank=True` the bank label is part of the key, so the same
    transaction recorded against two different accounts is kept twice.
    """

    def __init__(self, include_bank: bool = False):
        self.include_bank = include_bank

    def find_match(
        self, candidate: KeyFields, existing: Iterable[KeyFields]
    ) -> Optional[KeyFields]:
        wanted = key_of(candidate, self.include_bank)
        for entry in existing:
            if key_of(entry, self.include_bank) == wanted:
                return entry
        return None

    def is_duplicate(self, candidate: KeyFields, existing: Iterable[KeyFields]) -> bool:
        return self.find_match(candidate, existing) is not None
