"""
Gmail REST mail collaborator.

Defines the contract the reconciliation pipeline needs from a mailbox and
implements it over the Gmail API with httpx. OAuth token acquisition is
outside this module: tokens come from a TokenProvider.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

import httpx

from mailledger.core.errors import ConfigurationFailure, MailClientError
from mailledger.emails.config import MailConfig
from mailledger.emails.models import MessageRef, RawMessage

logger = logging.getLogger(__name__)


class MailClient(ABC):
    """Abstract mail collaborator used by the orchestrator."""

    @abstractmethod
    async def list_candidates(self, query: str) -> list[MessageRef]:
        """Return references to messages matching `query`, in provider order."""
        pass

    @abstractmethod
    async def get_message(self, message_id: str) -> RawMessage:
        """Fetch one full message."""
        pass

    @abstractmethod
    async def mark_processed(self, message_id: str) -> None:
        """Label the message processed so later polls skip it."""
        pass

    async def get_messages(
        self, refs: list[MessageRef], concurrency: int = 10
    ) -> list[RawMessage]:
        """Fetch message bodies concurrently, `concurrency` at a time.

        Output order follows `refs`. A message that fails to fetch is logged
        and left out.
        """
        messages: list[RawMessage] = []
        for start in range(0, len(refs), concurrency):
            batch = refs[start : start + concurrency]
            results = await asyncio.gather(
                *(self.get_message(ref.id) for ref in batch), return_exceptions=True
            )
            for ref, result in zip(batch, results):
                if isinstance(result, BaseException):
                    if not isinstance(result, Exception):
                        raise result
                    logger.error(f"[GMAIL] Failed to fetch message {ref.id}: {result}")
                    continue
                messages.append(result)
        return messages

    async def close(self) -> None:
        """Release any held connections."""
        return None


class TokenProvider(ABC):
    """Supplies OAuth access tokens per account."""

    @abstractmethod
    async def get_token(self, account_id: str) -> str:
        pass


class StaticTokenProvider(TokenProvider):
    """Token provider backed by tokens supplied through configuration."""

    def __init__(self, tokens: dict[str, str]):
        self._tokens = dict(tokens)

    async def get_token(self, account_id: str) -> str:
        token = self._tokens.get(account_id)
        if not token:
            raise ConfigurationFailure(f"No access token configured for account '{account_id}'")
        return token


class GmailClient(MailClient):
    """Mail collaborator over the Gmail REST API."""

    BASE_URL = "https://gmail.googleapis.com/gmail/v1/users/me"

    def __init__(
        self,
        account_id: str,
        token_provider: TokenProvider,
        config: MailConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.account_id = account_id
        self.token_provider = token_provider
        self.config = config
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout)
        self._owns_client = http_client is None
        self._label_id: Optional[str] = None
        self._label_lock = asyncio.Lock()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        token = await self.token_provider.get_token(self.account_id)
        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self.BASE_URL}/{path}"
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise MailClientError(
                f"Gmail {method} {path} failed: {e.response.status_code} {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise MailClientError(f"Gmail {method} {path} failed: {e}") from e

        if not response.content:
            return {}
        return response.json()

    async def list_candidates(self, query: str) -> list[MessageRef]:
        data = await self._request(
            "GET",
            "messages",
            params={"q": query, "maxResults": self.config.max_results},
        )
        refs = [
            MessageRef(id=m["id"], thread_id=m.get("threadId"))
            for m in data.get("messages") or []
        ]
        logger.info(f"[GMAIL] {self.account_id}: {len(refs)} candidate message(s)")
        return refs

    async def get_message(self, message_id: str) -> RawMessage:
        data = await self._request(
            "GET", f"messages/{message_id}", params={"format": "full"}
        )
        return RawMessage.from_api(data)

    async def get_messages(
        self, refs: list[MessageRef], concurrency: Optional[int] = None
    ) -> list[RawMessage]:
        return await super().get_messages(
            refs, concurrency or self.config.fetch_concurrency
        )

    async def _ensure_label(self) -> str:
        """Return the processed label id, creating the label if needed."""
        async with self._label_lock:
            if self._label_id:
                return self._label_id

            name = self.config.processed_label
            data = await self._request("GET", "labels")
            for label in data.get("labels") or []:
                if label.get("name") == name:
                    self._label_id = label["id"]
                    return self._label_id

            created = await self._request(
                "POST",
                "labels",
                json={
                    "name": name,
                    "labelListVisibility": "labelShow",
                    "messageListVisibility": "show",
                },
            )
            logger.info(f"[GMAIL] Created label '{name}'")
            self._label_id = created["id"]
            return self._label_id

    async def mark_processed(self, message_id: str) -> None:
        label_id = await self._ensure_label()
        await self._request(
            "POST",
            f"messages/{message_id}/modify",
            json={"addLabelIds": [label_id], "removeLabelIds": ["UNREAD"]},
        )
        logger.debug(f"[GMAIL] Marked {message_id} processed")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


MailClientFactory = Callable[[str], MailClient]


def gmail_client_factory(config: MailConfig) -> MailClientFactory:
    """Return a factory building one GmailClient per account id."""
    token_provider = StaticTokenProvider(config.access_tokens)

    def factory(account_id: str) -> MailClient:
        return GmailClient(account_id, token_provider, config)

    return factory
