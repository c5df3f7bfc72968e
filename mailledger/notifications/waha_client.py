"""WhatsApp delivery through a WAHA (WhatsApp HTTP API) server."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import httpx

from mailledger.core.errors import ConfigurationFailure, NotificationFailure
from mailledger.core.resources import SharedHandle
from mailledger.notifications.config import NotificationConfig

logger = logging.getLogger(__name__)


class NotificationClient(ABC):
    """Abstract notification collaborator."""

    @abstractmethod
    async def send(self, target: str, text: str) -> bool:
        """
        Deliver `text` to one chat.

        Raises:
            NotificationFailure: If delivery to `target` failed
        """
        pass

    async def close(self) -> None:
        return None


class WahaClient(NotificationClient):
    """WAHA REST client.

    The session is started once, lazily, on first send. Concurrent first
    sends share the same start attempt.
    """

    def __init__(
        self,
        config: NotificationConfig,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        if not config.waha_base_url or not config.waha_api_key:
            raise ConfigurationFailure("WAHA_BASE_URL and WAHA_API_KEY are required")
        self.config = config
        self.base_url = config.waha_base_url.rstrip("/")
        self._client_factory = client_factory or (
            lambda: httpx.AsyncClient(timeout=config.timeout)
        )
        self.session = SharedHandle(
            f"waha:{config.session_name}", self._open_session, closer=_close_client
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "X-Api-Key": self.config.waha_api_key or "",
        }

    async def _open_session(self) -> httpx.AsyncClient:
        client = self._client_factory()
        try:
            await self._start_session(client)
        except BaseException:
            await client.aclose()
            raise
        return client

    async def _start_session(self, client: httpx.AsyncClient) -> None:
        name = self.config.session_name
        try:
            response = await client.post(
                f"{self.base_url}/api/sessions/start",
                headers=self.headers,
                json={
                    "name": name,
                    "config": {"noweb": {"store": {"enabled": True, "fullSync": False}}},
                },
            )
        except httpx.HTTPError as e:
            raise NotificationFailure("session", f"WAHA session start failed: {e!r}") from e

        if response.is_success:
            logger.info(f"[WHATSAPP] ✓ WAHA session '{name}' started")
            return

        if response.status_code == 422 and "already started" in response.text:
            logger.debug(f"[WHATSAPP] WAHA session '{name}' already active")
            return

        raise NotificationFailure(
            "session", f"WAHA session start returned {response.status_code}"
        )

    async def send(self, target: str, text: str) -> bool:
        client = await self.session.acquire()
        try:
            response = await client.post(
                f"{self.base_url}/api/sendText",
                headers=self.headers,
                json={"session": self.config.session_name, "chatId": target, "text": text},
            )
        except httpx.HTTPError as e:
            raise NotificationFailure(target, f"WAHA send error: {e!r}") from e

        if not response.is_success:
            raise NotificationFailure(
                target, f"WAHA send failed: {response.status_code} {response.text[:200]}"
            )
        return True

    async def close(self) -> None:
        await self.session.close()


async def _close_client(client: httpx.AsyncClient) -> None:
    await client.aclose()
