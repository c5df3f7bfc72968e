"""Transaction category sets.

Income and expense have distinct category sets. `FALLBACK_CATEGORY` is used
when the model is unsure.
"""

from __future__ import annotations

from typing import Optional

INCOME_CATEGORIES: tuple[str, ...] = (
    "Gaji",
    "Bonus",
    "Komisi",
    "Dividen",
    "Bunga",
    "Hadiah",
    "Warisan",
    "Penjualan",
    "Refund",
    "Kembalian",
    "Cashback",
)

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Makanan",
    "Transportasi",
    "Reimburse",
    "Sedekah",
    "Hiburan",
    "Pengembangan Keluarga",
    "Rumah Tangga",
    "Pakaian",
    "Kecantikan",
    "Kesehatan",
)

FALLBACK_CATEGORY = "Lainnya"

_CANONICAL: dict[str, str] = {
    name.lower(): name
    for name in (*INCOME_CATEGORIES, *EXPENSE_CATEGORIES, FALLBACK_CATEGORY)
}


def is_known_category(name: str) -> bool:
    return name.strip().lower() in _CANONICAL


def normalize_category(name: Optional[str]) -> str:
    """Return the canonical spelling of a category.

    Missing or blank values become FALLBACK_CATEGORY; unknown values are
    returned trimmed but otherwise unchanged.
    """
    if name is None or not name.strip():
        return FALLBACK_CATEGORY
    return _CANONICAL.get(name.strip().lower(), name.strip())
