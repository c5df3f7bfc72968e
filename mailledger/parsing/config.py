"""Configuration for the LLM collaborator and parser."""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from mailledger.core.config import Settings


class LLMConfig(BaseModel):
    """Configuration for LLM provider."""

    provider: Literal["gemini", "groq"] = Field(default="gemini", description="LLM provider")
    model: str = Field(default="gemini-2.0-flash", description="Model name")
    api_key: str | None = Field(default=None, description="API key")
    timeout: int = Field(default=30, ge=5, le=120, description="API timeout in seconds")

    temperature: float = Field(
        default=0.1, ge=0.0, le=2.0, description="Sampling temperature"
    )
    top_p: float = Field(default=0.95, ge=0.0, le=1.0, description="Nucleus sampling")
    max_output_tokens: int = Field(
        default=1024, ge=100, le=8192, description="Max tokens in the response"
    )

    default_confidence: int = Field(
        default=70, ge=0, le=100, description="Confidence used when the model omits it"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMConfig:
        """Create LLMConfig from app settings."""
        if settings.LLM_PROVIDER == "groq":
            return cls(
                provider="groq",
                model=settings.GROQ_MODEL,
                api_key=settings.GROQ_API_KEY,
                timeout=settings.LLM_TIMEOUT_SECONDS,
            )
        return cls(
            provider="gemini",
            model=settings.GEMINI_MODEL,
            api_key=settings.GEMINI_API_KEY,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
