"""LLM-backed transaction parser with deterministic post-processing."""

from __future__ import annotations

import datetime as dt
import json
import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional, Union

from pydantic import ValidationError

from mailledger.core.errors import ParseFailure
from mailledger.parsing.banks import BANK_REGISTRY, BankAccount, resolve_bank
from mailledger.parsing.categories import is_known_category, normalize_category
from mailledger.parsing.llm_client import LLMClient
from mailledger.parsing.models import (
    AdditionalInfo,
    LLMTransactionPayload,
    ParsedTransaction,
    TransactionType,
)
from mailledger.parsing.prompt import build_prompt
from mailledger.parsing.rules import OVERRIDE_RULES, OverrideRule, match_rule, DEFAULT_VERDICT

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 70

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OPEN_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)


def strip_code_fence(text: str) -> str:
    """Remove Markdown code-fence wrapping (```json ... ``` or ``` ... ```)."""
    text = text.strip()
    match = _FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    # opening fence without a closing one
    return _OPEN_FENCE_RE.sub("", text).strip()


def apply_sign(amount: Decimal, transaction_type: TransactionType) -> Decimal:
    """Force the sign of `amount` to agree with `transaction_type`."""
    magnitude = abs(amount)
    return -magnitude if transaction_type is TransactionType.EXPENSE else magnitude


def parse_amount(value: Union[int, float, str, None]) -> Decimal:
    """Convert the model's amount into a non-zero Decimal.

    Raises:
        ParseFailure: for missing, non-numeric, non-finite or zero amounts
    """
    if value is None:
        raise ParseFailure("amount missing")
    if isinstance(value, float) and not math.isfinite(value):
        raise ParseFailure(f"amount not finite: {value}")

    try:
        amount = Decimal(value.strip()) if isinstance(value, str) else Decimal(str(value))
    except InvalidOperation as e:
        raise ParseFailure(f"amount not numeric: {value!r}") from e

    if not amount.is_finite():
        raise ParseFailure(f"amount not finite: {value!r}")
    if amount == 0:
        raise ParseFailure("amount is zero")
    return amount


def parse_date(value: Optional[str], today: dt.date) -> dt.date:
    """Parse YYYY-MM-DD, falling back to `today`."""
    if value:
        try:
            return dt.date.fromisoformat(value.strip()[:10])
        except ValueError:
            logger.debug(f"[PARSER] Malformed date {value!r}, using {today}")
    return today


def clamp_confidence(value: Union[int, float, None], default: int = DEFAULT_CONFIDENCE) -> int:
    if value is None or (isinstance(value, float) and not math.isfinite(value)):
        return default
    return max(0, min(100, int(round(value))))


class TransactionParser:
    """Turns extracted message text into a ParsedTransaction.

    Pipeline:
    1. Prompt with schema contract, single LLM call
    2. Code-fence stripping and JSON decoding
    3. Boundary schema validation (any type violation fails the record)
    4. Amount, type, sign, bank, category, date and confidence normalization
    5. Contextual income/expense override from the description, applied
       only when the bank resolved to a registry account
    """

    def __init__(
        self,
        llm: LLMClient,
        registry: Mapping[str, BankAccount] = BANK_REGISTRY,
        rules: tuple[OverrideRule, ...] = OVERRIDE_RULES,
        default_confidence: int = DEFAULT_CONFIDENCE,
    ):
        self.llm = llm
        self.registry = registry
        self.rules = rules
        self.default_confidence = default_confidence

    async def parse(self, text: str, today: Optional[dt.date] = None) -> ParsedTransaction:
        """Parse `text` into a transaction.

        Raises:
            ParseFailure: on empty input, LLM failure, malformed JSON, schema
                violation, unusable amount or unresolvable transaction type
        """
        if not text or not text.strip():
            raise ParseFailure("empty input text")
        today = today or dt.date.today()

        prompt = build_prompt(text, today, list(self.registry))
        response = await self.llm.complete(prompt)

        payload = self._decode(response)
        return self._normalize(payload, today, response)

    async def try_parse(
        self, text: str, today: Optional[dt.date] = None
    ) -> Optional[ParsedTransaction]:
        """Like parse(), but returns None on ParseFailure."""
        try:
            return await self.parse(text, today)
        except ParseFailure as e:
            logger.warning(f"[PARSER] Parse failed: {e.reason}")
            return None

    def _decode(self, response: str) -> LLMTransactionPayload:
        body = strip_code_fence(response)
        try:
            data = json.loads(body)
        except json.JSONDecodeError as e:
            logger.error("[PARSER] Failed to parse LLM response as JSON")
            raise ParseFailure(f"malformed JSON: {e.msg}", raw_response=response) from e

        if not isinstance(data, dict):
            raise ParseFailure("LLM response is not a JSON object", raw_response=response)

        try:
            return LLMTransactionPayload.model_validate(data)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            raise ParseFailure(f"schema violation: {fields}", raw_response=response) from e

    def _normalize(
        self, payload: LLMTransactionPayload, today: dt.date, response: str
    ) -> ParsedTransaction:
        amount = parse_amount(payload.amount)
        description = (payload.description or "").strip()

        transaction_type = TransactionType.parse(payload.transaction_type)
        if payload.transaction_type is not None and transaction_type is None:
            logger.warning(
                f"[PARSER] Unrecognized transaction_type {payload.transaction_type!r}"
            )

        bank = resolve_bank(payload.bank, self.registry)

        # The description rules only apply to accounts in the registry.
        if bank is not None and description:
            rule = match_rule(description, self.rules)
            override = rule.verdict if rule else DEFAULT_VERDICT
            if transaction_type is not None and override is not transaction_type:
                logger.info(
                    f"[PARSER] {bank} context suggests {override.value} "
                    f"({rule.name if rule else 'default'}), adjusting from {transaction_type.value}"
                )
            transaction_type = override
        elif transaction_type is None:
            raise ParseFailure("transaction_type unresolvable", raw_response=response)

        category = normalize_category(payload.category)
        if not is_known_category(category):
            logger.info(f"[PARSER] Keeping unlisted category {category!r}")

        info = payload.additional_info
        try:
            transaction = ParsedTransaction(
                date=parse_date(payload.date, today),
                amount=apply_sign(amount, transaction_type),
                category=category,
                description=description,
                transaction_type=transaction_type,
                bank=bank,
                confidence=clamp_confidence(payload.confidence, self.default_confidence),
                additional_info=AdditionalInfo(**info.model_dump()) if info else None,
            )
        except ValidationError as e:
            raise ParseFailure(f"invalid transaction: {e}", raw_response=response) from e

        logger.info(
            f"[PARSER] ✓ Parsed {transaction.transaction_type.value} {transaction.amount} "
            f"({transaction.category}) with {transaction.confidence}% confidence"
        )
        return transaction
