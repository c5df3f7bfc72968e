from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def split_csv(value: Optional[str]) -> list[str]:
    """Split a comma separated setting into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    List-like values are kept as comma separated strings and split by the
    component configs that consume them.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging and error handling."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging."""

    # DB
    DATABASE_URL: str = "sqlite+aiosqlite:///./mailledger.db"
    """Database connection URL for the ledger."""

    # Gmail
    GMAIL_ACCOUNTS: str = "default"
    """Comma separated account identifiers to poll."""

    GMAIL_SEARCH_QUERY: str = (
        "subject:(Transfer OR Pembayaran OR Transaksi OR payment OR transaction) "
        "is:unread newer_than:1d"
    )
    """Gmail search query selecting candidate messages."""

    GMAIL_ACCESS_TOKENS: Optional[str] = None
    """Comma separated `account=token` pairs used by the static token provider."""

    GMAIL_PROCESSED_LABEL: str = "Processed-Financial"
    """Label applied to every handled message."""

    GMAIL_FETCH_CONCURRENCY: int = 10
    """Max message bodies fetched concurrently."""

    # LLM
    LLM_PROVIDER: Literal["gemini", "groq"] = "gemini"
    """LLM provider used by the transaction parser."""

    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.0-flash"

    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama-3.1-8b-instant"

    LLM_TIMEOUT_SECONDS: int = 30
    """Timeout for a single LLM call."""

    # WhatsApp (WAHA)
    ENABLE_WHATSAPP_NOTIFICATIONS: bool = False
    WHATSAPP_PHONE_NUMBERS: Optional[str] = None
    """Comma separated phone numbers receiving individual notifications."""

    WHATSAPP_GROUP_ID: Optional[str] = None
    """Shared group receiving batch summaries."""

    WAHA_BASE_URL: Optional[str] = None
    WAHA_API_KEY: Optional[str] = None
    WAHA_SESSION_NAME: str = "gmail-wa-bot"
    NOTIFICATION_TIMEOUT_SECONDS: int = 15

    BATCH_NOTIFICATION_THRESHOLD: int = 5
    """Above this many new transactions a single summary is sent instead."""

    # Processing
    PROCESSOR_USER_ID: str = "email-processor-main"
    """Prefix of the user id stored with every ledger entry."""

    EMAIL_CHECK_INTERVAL_MINUTES: int = 5
    """Minutes between automatic reconciliation cycles."""

    RUN_ON_STARTUP: bool = False
    """Start the automation loop when the application boots."""

    MARK_PROCESSED_ON_PERSIST_FAILURE: bool = True
    """Label a message processed even when its ledger write failed."""

    DEDUPE_PER_ACCOUNT: bool = False
    """Treat transactions from different accounts as distinct when deduplicating."""

    DEDUPE_INCLUDE_BANK: bool = False
    """Add the bank label to the duplicate key."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def gmail_accounts(self) -> list[str]:
        return split_csv(self.GMAIL_ACCOUNTS)


def validate_settings(settings: Settings) -> list[str]:
    """Return human readable problems with required settings.

    An empty list means every component can be constructed.
    """
    errors: list[str] = []

    if settings.LLM_PROVIDER == "gemini" and not settings.GEMINI_API_KEY:
        errors.append("GEMINI_API_KEY is not set")
    if settings.LLM_PROVIDER == "groq" and not settings.GROQ_API_KEY:
        errors.append("GROQ_API_KEY is not set")

    if not settings.gmail_accounts:
        errors.append("At least one Gmail account must be specified")

    if settings.ENABLE_WHATSAPP_NOTIFICATIONS:
        if not settings.WAHA_BASE_URL:
            errors.append("WAHA_BASE_URL is required for WhatsApp notifications")
        if not settings.WAHA_API_KEY:
            errors.append("WAHA_API_KEY is required for WhatsApp notifications")

    return errors


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly.

    Uses LRU cache to ensure only one Settings instance exists per process,
    improving performance and ensuring consistency.
    """
    return Settings()
