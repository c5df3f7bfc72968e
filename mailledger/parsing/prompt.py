"""Prompt construction for transaction extraction."""

from __future__ import annotations

import datetime as dt
from typing import Sequence

from mailledger.parsing.categories import (
    EXPENSE_CATEGORIES,
    FALLBACK_CATEGORY,
    INCOME_CATEGORIES,
)

MAX_TEXT_LENGTH = 4000


def _quoted(names: Sequence[str]) -> str:
    return ", ".join(f'"{name}"' for name in names)


def build_prompt(text: str, today: dt.date, bank_names: Sequence[str]) -> str:
    """Build the extraction prompt with a closed JSON schema contract."""
    # Truncate body if too long
    text = text[:MAX_TEXT_LENGTH]
    current_date = today.isoformat()

    return f"""You are a financial transaction expert analyzing Indonesian bank notification emails.

EMAIL CONTENT:
\"\"\"{text}\"\"\"

AVAILABLE BANK ACCOUNTS: {", ".join(bank_names)}
TODAY'S DATE: {current_date}

Extract the transaction and return ONLY a JSON object with exactly these fields:
{{
  "amount": number (no currency symbols or thousands separators),
  "category": string (one of the category options below),
  "description": string (clear, concise summary of what happened),
  "transaction_type": "income" | "expense",
  "date": "YYYY-MM-DD" (use {current_date} if no date is found),
  "bank": string (exact name from the available bank accounts, or null),
  "confidence": number (0-100, how confident you are),
  "additional_info": {{
    "recipient": string or null,
    "sender": string or null,
    "reference_number": string or null,
    "merchant": string or null,
    "location": string or null
  }}
}}

CATEGORY OPTIONS:
income: {_quoted(INCOME_CATEGORIES)}
expense: {_quoted(EXPENSE_CATEGORIES)}
If unsure use "{FALLBACK_CATEGORY}".

RULES:
- Return ONLY valid JSON, no explanations or markdown
- Set any field to null if it is truly unclear. Do not guess, never invent an amount
- Use Indonesian banking terminology and context"""
