"""
Notification mode selection and fan-out.

0 new transactions sends nothing, up to the threshold sends one message per
transaction to every target, above it sends a single summary to the group
(or the first individual recipient when no group is configured).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Sequence

from mailledger.notifications.config import NotificationConfig
from mailledger.notifications.formatter import format_batch_message, format_transaction_message
from mailledger.notifications.waha_client import NotificationClient
from mailledger.parsing.models import ParsedTransaction

logger = logging.getLogger(__name__)


class NotificationMode(str, Enum):
    NONE = "none"
    INDIVIDUAL = "individual"
    BATCH = "batch"


def decide_mode(count: int, threshold: int) -> NotificationMode:
    if count <= 0:
        return NotificationMode.NONE
    if count <= threshold:
        return NotificationMode.INDIVIDUAL
    return NotificationMode.BATCH


def format_phone_chat_id(phone: str) -> Optional[str]:
    """Turn a phone number into a WhatsApp contact chat id.

    A leading "+" is dropped; numbers without a 62 or 1 country code get 62
    in place of a leading 0.
    """
    number = phone.strip() if phone else ""
    if not number:
        return None
    if number.startswith("+"):
        number = number[1:]
    elif not number.startswith(("62", "1")):
        number = "62" + (number[1:] if number.startswith("0") else number)
    return f"{number}@c.us"


def format_group_chat_id(group_id: str) -> Optional[str]:
    group = group_id.strip() if group_id else ""
    if not group:
        return None
    return group if group.endswith("@g.us") else f"{group}@g.us"


@dataclass(frozen=True)
class NotificationTarget:
    chat_id: str
    display_name: str
    kind: str = "contact"


@dataclass
class NotificationTargets:
    """Delivery targets resolved from configuration."""

    individuals: list[NotificationTarget] = field(default_factory=list)
    group: Optional[NotificationTarget] = None

    @classmethod
    def from_config(cls, config: NotificationConfig) -> NotificationTargets:
        individuals = []
        for phone in config.phone_numbers:
            chat_id = format_phone_chat_id(phone)
            if chat_id:
                individuals.append(NotificationTarget(chat_id, phone, "contact"))

        group = None
        group_chat_id = format_group_chat_id(config.group_id or "")
        if group_chat_id:
            group = NotificationTarget(group_chat_id, "Group", "group")
        return cls(individuals=individuals, group=group)

    @property
    def is_empty(self) -> bool:
        return not self.individuals and self.group is None

    def all(self) -> list[NotificationTarget]:
        """Individuals first, then the group."""
        return [*self.individuals, *([self.group] if self.group else [])]

    def batch_target(self) -> Optional[NotificationTarget]:
        if self.group is not None:
            return self.group
        return self.individuals[0] if self.individuals else None


class NotificationBatcher:
    """Chooses the notification mode for a cycle and delivers messages.

    Delivery is fire-and-forget per target: a failed send is logged and the
    remaining targets are still attempted.
    """

    def __init__(
        self,
        client: Optional[NotificationClient],
        config: NotificationConfig,
        targets: Optional[NotificationTargets] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.config = config
        self.targets = targets or NotificationTargets.from_config(config)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        self.sent_count = 0
        self.failed_count = 0

    @property
    def active(self) -> bool:
        return self.config.enabled and self.client is not None and not self.targets.is_empty

    async def notify(
        self, transactions: Sequence[ParsedTransaction], account_id: str
    ) -> NotificationMode:
        """Notify about newly persisted transactions. Never raises."""
        mode = decide_mode(len(transactions), self.config.batch_threshold)
        if mode is NotificationMode.NONE:
            return mode

        if not self.active:
            logger.debug(
                f"[WHATSAPP] Notifications inactive, {mode.value} mode recorded, nothing sent"
            )
            return mode

        if mode is NotificationMode.INDIVIDUAL:
            for transaction in transactions:
                text = format_transaction_message(transaction, account_id)
                for target in self.targets.all():
                    await self._send(target, text)
        else:
            target = self.targets.batch_target()
            if target is not None:
                text = format_batch_message(len(transactions), account_id, self.clock())
                await self._send(target, text)

        return mode

    async def _send(self, target: NotificationTarget, text: str) -> bool:
        assert self.client is not None
        try:
            await self.client.send(target.chat_id, text)
        except Exception as e:
            self.failed_count += 1
            logger.error(f"[WHATSAPP] ✗ Failed to send to {target.display_name}: {e}")
            return False

        self.sent_count += 1
        logger.info(f"[WHATSAPP] ✓ Notification sent to {target.display_name}")
        return True
