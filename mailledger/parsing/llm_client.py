"""LLM clients for transaction extraction (Gemini and Groq REST APIs)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx

from mailledger.core.errors import ConfigurationFailure, LLMError
from mailledger.core.resources import SharedHandle
from mailledger.parsing.config import LLMConfig

logger = logging.getLogger(__name__)


class LLMClient(ABC):
    """Single-shot text completion. No streaming, no tool calls, no retry."""

    provider_name: str = "llm"

    def __init__(self, config: LLMConfig, http: Optional[SharedHandle[httpx.AsyncClient]] = None):
        """Initialize LLM client.

        Args:
            config: LLM configuration
            http: Shared httpx client handle; one is created when omitted
        """
        self.config = config
        if not self.config.api_key:
            raise ConfigurationFailure(f"{self.provider_name.upper()}_API_KEY is required")
        self.http = http or SharedHandle(
            f"{self.provider_name}-http",
            self._open_client,
            closer=_close_client,
        )

    async def _open_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.config.timeout)

    async def complete(self, prompt: str) -> str:
        """Send `prompt` once and return the response text.

        Raises:
            LLMError: on transport failure, timeout, non-2xx status or an
                envelope without text
        """
        client = await self.http.acquire()
        url, headers, payload = self._build_request(prompt)

        try:
            response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"[LLM] {self.provider_name} API failed: {e.response.status_code} {e.response.text[:200]}"
            )
            raise LLMError(f"{self.provider_name} API returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error(f"[LLM] Error calling {self.provider_name} API: {e!r}")
            raise LLMError(f"{self.provider_name} API call failed: {e!r}") from e
        except ValueError as e:
            raise LLMError(f"{self.provider_name} returned a non-JSON envelope") from e

        text = self._extract_text(data)
        if not text or not text.strip():
            logger.error(f"[LLM] No response text from {self.provider_name}")
            raise LLMError(f"Empty response from {self.provider_name}")
        return text.strip()

    async def ping(self) -> bool:
        """Connection test: True when the provider answers a trivial prompt."""
        try:
            await self.complete("Reply with OK.")
            return True
        except LLMError as e:
            logger.warning(f"[LLM] Connection test failed: {e}")
            return False

    async def close(self) -> None:
        await self.http.close()

    @abstractmethod
    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, json body)."""
        pass

    @abstractmethod
    def _extract_text(self, data: Any) -> Optional[str]:
        pass


class GeminiClient(LLMClient):
    """Google Gemini generateContent API."""

    API_BASE = "https://generativelanguage.googleapis.com/v1beta/models"
    provider_name = "gemini"

    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        url = f"{self.API_BASE}/{self.config.model}:generateContent"
        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": self.config.api_key or "",
        }
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": self.config.temperature,
                "topP": self.config.top_p,
                "maxOutputTokens": self.config.max_output_tokens,
            },
        }
        return url, headers, payload

    def _extract_text(self, data: Any) -> Optional[str]:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None


class GroqClient(LLMClient):
    """Groq OpenAI-compatible chat completions API."""

    GROQ_API_URL = "https://api.groq.com/openai/v1/chat/completions"
    provider_name = "groq"

    def _build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any]]:
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature,
            "top_p": self.config.top_p,
            "max_tokens": self.config.max_output_tokens,
        }
        return self.GROQ_API_URL, headers, payload

    def _extract_text(self, data: Any) -> Optional[str]:
        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            return None


async def _close_client(client: httpx.AsyncClient) -> None:
    await client.aclose()


def create_llm_client(
    config: LLMConfig, http: Optional[SharedHandle[httpx.AsyncClient]] = None
) -> LLMClient:
    """Build the client for `config.provider`.

    Raises:
        ConfigurationFailure: if the provider's API key is missing
    """
    if config.provider == "groq":
        return GroqClient(config, http)
    return GeminiClient(config, http)
