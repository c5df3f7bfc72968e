"""Configuration for the mail collaborator."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from mailledger.core.config import split_csv

if TYPE_CHECKING:
    from mailledger.core.config import Settings


class MailConfig(BaseModel):
    """Configuration for Gmail polling."""

    processed_label: str = Field(
        default="Processed-Financial", description="Label added to handled messages"
    )
    fetch_concurrency: int = Field(
        default=10, ge=1, le=50, description="Max message bodies fetched at once"
    )
    max_results: int = Field(
        default=50, ge=1, le=500, description="Max candidates per search"
    )
    timeout: int = Field(default=30, ge=5, le=120, description="HTTP timeout in seconds")
    access_tokens: dict[str, str] = Field(
        default_factory=dict, description="Static access token per account id"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> MailConfig:
        """Create MailConfig from app settings."""
        tokens: dict[str, str] = {}
        for pair in split_csv(settings.GMAIL_ACCESS_TOKENS):
            account, sep, token = pair.partition("=")
            if sep and account.strip() and token.strip():
                tokens[account.strip()] = token.strip()

        return cls(
            processed_label=settings.GMAIL_PROCESSED_LABEL,
            fetch_concurrency=settings.GMAIL_FETCH_CONCURRENCY,
            access_tokens=tokens,
        )
