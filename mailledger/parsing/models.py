"""Data models for transaction parsing."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr, model_validator


class TransactionType(str, Enum):
    """Direction of money movement."""

    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional[TransactionType]:
        """Accept English or Indonesian labels, case-insensitively."""
        if value is None:
            return None
        return _TYPE_ALIASES.get(value.strip().lower())


_TYPE_ALIASES = {
    "income": TransactionType.INCOME,
    "pemasukan": TransactionType.INCOME,
    "expense": TransactionType.EXPENSE,
    "pengeluaran": TransactionType.EXPENSE,
}


class LLMAdditionalInfo(BaseModel):
    """Best-effort sub-fields as emitted by the model."""

    model_config = ConfigDict(extra="ignore")

    recipient: Optional[str] = None
    sender: Optional[str] = None
    reference_number: Optional[str] = None
    merchant: Optional[str] = None
    location: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _stringify(cls, data: Any) -> Any:
        # reference numbers often come back as JSON numbers
        if isinstance(data, dict):
            return {
                k: (str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v)
                for k, v in data.items()
            }
        return data


class LLMTransactionPayload(BaseModel):
    """Boundary schema for the model's JSON output.

    Every field is optional and nullable. A value of the wrong type fails
    validation of the whole payload.
    """

    model_config = ConfigDict(extra="ignore")

    amount: Optional[Union[StrictInt, StrictFloat, StrictStr]] = None
    category: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    transaction_type: Optional[StrictStr] = None
    date: Optional[StrictStr] = None
    bank: Optional[StrictStr] = None
    confidence: Optional[Union[StrictInt, StrictFloat]] = None
    additional_info: Optional[LLMAdditionalInfo] = None


class AdditionalInfo(BaseModel):
    """Unstructured counterparty details carried through best-effort."""

    model_config = ConfigDict(frozen=True)

    recipient: Optional[str] = None
    sender: Optional[str] = None
    reference_number: Optional[str] = None
    merchant: Optional[str] = None
    location: Optional[str] = None


class ParsedTransaction(BaseModel):
    """Canonical, fully defaulted transaction record."""

    model_config = ConfigDict(frozen=True)

    date: dt.date = Field(..., description="Transaction date")
    amount: Decimal = Field(..., description="Signed amount, negative for expenses")
    category: str = Field(..., description="Category name")
    description: str = Field(default="", description="Human readable summary")
    transaction_type: TransactionType = Field(..., description="income or expense")
    bank: Optional[str] = Field(default=None, description="Registry bank label")
    confidence: int = Field(default=70, ge=0, le=100, description="Model certainty")
    additional_info: Optional[AdditionalInfo] = Field(default=None)

    @model_validator(mode="after")
    def _check_sign(self) -> ParsedTransaction:
        if self.amount == 0:
            raise ValueError("amount must not be zero")
        if (self.amount < 0) != (self.transaction_type is TransactionType.EXPENSE):
            raise ValueError(
                f"amount sign does not agree with transaction_type {self.transaction_type.value}"
            )
        return self
