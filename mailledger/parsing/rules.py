"""
Keyword rules deciding income vs. expense from a transaction description.

The rules are an ordered table evaluated first-match-wins. When nothing
matches the verdict is expense.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from mailledger.parsing.models import TransactionType

INCOME_KEYWORDS: tuple[str, ...] = (
    "terima",
    "dapat",
    "pemasukan",
    "masuk",
    "diterima",
    "gaji",
    "bonus",
    "transfer masuk",
    "kredit",
    "setoran",
    "received",
    "credit",
    "deposit",
    "hadiah",
)

EXPENSE_KEYWORDS: tuple[str, ...] = (
    "beli",
    "bayar",
    "belanja",
    "pengeluaran",
    "keluar",
    "dibayar",
    "transfer keluar",
    "debit",
    "tarik",
    "withdraw",
    "payment",
    "purchase",
)

PAYMENT_QUALIFIERS: tuple[str, ...] = (
    "kartu kredit",
    "credit card",
    "qris",
    "untuk",
    "tagihan",
    "bayar",
)

DEFAULT_VERDICT = TransactionType.EXPENSE


@dataclass(frozen=True)
class OverrideRule:
    name: str
    predicate: Callable[[str], bool]
    verdict: TransactionType


def _contains_any(*words: str) -> Callable[[str], bool]:
    return lambda text: any(word in text for word in words)


def _qualified_payment(text: str) -> bool:
    if "pembayaran" not in text:
        return False
    # "pembayaran" itself contains "bayar"; only look at the rest of the text
    rest = text.replace("pembayaran", " ")
    return any(q in rest for q in PAYMENT_QUALIFIERS)


OVERRIDE_RULES: tuple[OverrideRule, ...] = (
    OverrideRule("qualified_payment", _qualified_payment, TransactionType.EXPENSE),
    OverrideRule("bare_payment", _contains_any("pembayaran"), TransactionType.INCOME),
    OverrideRule("sale", _contains_any("penjualan", "jual"), TransactionType.INCOME),
    OverrideRule("income_keyword", _contains_any(*INCOME_KEYWORDS), TransactionType.INCOME),
    OverrideRule("expense_keyword", _contains_any(*EXPENSE_KEYWORDS), TransactionType.EXPENSE),
)


def match_rule(
    description: str, rules: tuple[OverrideRule, ...] = OVERRIDE_RULES
) -> OverrideRule | None:
    """Return the first rule matching `description`, or None."""
    text = description.lower()
    for rule in rules:
        if rule.predicate(text):
            return rule
    return None


def classify_description(
    description: str, rules: tuple[OverrideRule, ...] = OVERRIDE_RULES
) -> TransactionType:
    """Derive the transaction type from description keywords."""
    rule = match_rule(description, rules)
    return rule.verdict if rule else DEFAULT_VERDICT
