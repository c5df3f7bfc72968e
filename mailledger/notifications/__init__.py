"""Chat notifications for newly recorded transactions."""

from mailledger.notifications.batcher import (
    NotificationBatcher,
    NotificationMode,
    NotificationTargets,
    decide_mode,
    format_phone_chat_id,
)
from mailledger.notifications.config import NotificationConfig
from mailledger.notifications.waha_client import NotificationClient, WahaClient

__all__ = [
    "NotificationBatcher",
    "NotificationMode",
    "NotificationTargets",
    "decide_mode",
    "format_phone_chat_id",
    "NotificationConfig",
    "NotificationClient",
    "WahaClient",
]
