"""
Pydantic models for the LLM provider configuration.
"""

from typing import Literal

from pydantic import Field

from codechat.models.chat import CamelModel

ProviderName = Literal["openai", "openrouter", "anthropic", "google-gemini"]


class ProviderConfig(CamelModel):
    """The active provider configuration."""

    provider: ProviderName = "openai"
    api_key: str = ""
    base_url: str | None = None
    model: str = "gpt-4o-mini"
    temperature: float | None = None


class ProviderConfigUpdate(CamelModel):
    """Partial update for the provider configuration (PUT /config/ai)."""

    provider: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None
    temperature: float | str | None = None


class ProviderMetadata(CamelModel):
    """Static description of a supported provider."""

    id: ProviderName
    name: str
    description: str
    default_base_url: str
    documentation_url: str
    supports_streaming: bool = Field(False, description="Token-by-token delivery")
