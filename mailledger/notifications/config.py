"""Configuration for chat notifications."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from mailledger.core.config import split_csv

if TYPE_CHECKING:
    from mailledger.core.config import Settings


class NotificationConfig(BaseModel):
    """Configuration for WhatsApp notifications through WAHA."""

    enabled: bool = Field(default=False, description="Send WhatsApp notifications")
    phone_numbers: list[str] = Field(
        default_factory=list, description="Individually addressed recipients"
    )
    group_id: str | None = Field(default=None, description="Shared group recipient")

    waha_base_url: str | None = Field(default=None, description="WAHA server URL")
    waha_api_key: str | None = Field(default=None, description="WAHA API key")
    session_name: str = Field(default="gmail-wa-bot", description="WAHA session name")
    timeout: int = Field(default=15, ge=1, le=60, description="Send timeout in seconds")

    batch_threshold: int = Field(
        default=5,
        ge=0,
        description="Above this many new transactions one summary is sent instead",
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> NotificationConfig:
        """Create NotificationConfig from app settings."""
        return cls(
            enabled=settings.ENABLE_WHATSAPP_NOTIFICATIONS,
            phone_numbers=split_csv(settings.WHATSAPP_PHONE_NUMBERS),
            group_id=settings.WHATSAPP_GROUP_ID or None,
            waha_base_url=settings.WAHA_BASE_URL,
            waha_api_key=settings.WAHA_API_KEY,
            session_name=settings.WAHA_SESSION_NAME,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
            batch_threshold=settings.BATCH_NOTIFICATION_THRESHOLD,
        )
