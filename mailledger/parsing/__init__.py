"""Transaction parsing: prompt, LLM call, validation and normalization."""

from mailledger.parsing.banks import BANK_NAMES, BANK_REGISTRY, resolve_bank
from mailledger.parsing.categories import (
    EXPENSE_CATEGORIES,
    FALLBACK_CATEGORY,
    INCOME_CATEGORIES,
    normalize_category,
)
from mailledger.parsing.config import LLMConfig
from mailledger.parsing.llm_client import GeminiClient, GroqClient, LLMClient, create_llm_client
from mailledger.parsing.models import AdditionalInfo, ParsedTransaction, TransactionType
from mailledger.parsing.parser import TransactionParser, apply_sign
from mailledger.parsing.rules import OVERRIDE_RULES, classify_description

__all__ = [
    # Registry and categories
    "BANK_NAMES",
    "BANK_REGISTRY",
    "resolve_bank",
    "EXPENSE_CATEGORIES",
    "FALLBACK_CATEGORY",
    "INCOME_CATEGORIES",
    "normalize_category",
    # LLM
    "LLMConfig",
    "GeminiClient",
    "GroqClient",
    "LLMClient",
    "create_llm_client",
    # Models
    "AdditionalInfo",
    "ParsedTransaction",
    "TransactionType",
    # Parser
    "TransactionParser",
    "apply_sign",
    "OVERRIDE_RULES",
    "classify_description",
]
