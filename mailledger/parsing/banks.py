"""Closed registry of known bank accounts.

Structure:
BANK_REGISTRY: Dict[str, BankAccount]
  Key: canonical account label as it appears in the ledger.
  Value: {
    owner: account holder
    institution: bank or digital bank brand
  }

The parser may only emit a bank that is a key of this registry, or None.
"""

from __future__ import annotations

import logging
from typing import Mapping, Optional, TypedDict

logger = logging.getLogger(__name__)


class BankAccount(TypedDict):
    owner: str
    institution: str


BANK_REGISTRY: dict[str, BankAccount] = {
    "Mandiri Wimboro": {"owner": "Wimboro", "institution": "Mandiri"},
    "Mandiri Fara": {"owner": "Fara", "institution": "Mandiri"},
    "Seabank Fara": {"owner": "Fara", "institution": "Seabank"},
    "Jago Fara": {"owner": "Fara", "institution": "Jago"},
    "Jago Wimboro": {"owner": "Wimboro", "institution": "Jago"},
    "Blu Fara": {"owner": "Fara", "institution": "Blu"},
    "Blu Wimboro": {"owner": "Wimboro", "institution": "Blu"},
    "Neobank Fara": {"owner": "Fara", "institution": "Neobank"},
    "Neobank Wimboro": {"owner": "Wimboro", "institution": "Neobank"},
}

BANK_NAMES: list[str] = list(BANK_REGISTRY)


def resolve_bank(
    name: Optional[str], registry: Mapping[str, BankAccount] = BANK_REGISTRY
) -> Optional[str]:
    """Map a model-supplied bank string onto a registry key.

    Exact key first, then case-insensitive substring match in either
    direction, taking the first key in registry order. Never invents a name.
    """
    if name is None or not name.strip():
        return None

    candidate = name.strip()
    if candidate in registry:
        return candidate

    lowered = candidate.lower()
    for key in registry:
        key_lower = key.lower()
        if lowered in key_lower or key_lower in lowered:
            logger.info(f"[BANKS] Corrected bank name '{candidate}' to '{key}'")
            return key

    logger.warning(f"[BANKS] Unknown bank name: {candidate}")
    return None
