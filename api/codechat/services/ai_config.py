"""
Provider configuration store.

Holds the single active LLM provider configuration in a JSON file. The
file is created with defaults on first read and cached in memory
afterwards. Updates are merged over the current configuration,
normalized, validated and then persisted.
"""

import json
import logging
import math
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from codechat.core.errors import ConfigValidationError
from codechat.models.config import ProviderConfig, ProviderConfigUpdate, ProviderMetadata

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TEMPERATURE = 0.2
FALLBACK_BASE_URL = "https://api.openai.com/v1"

PROVIDERS: list[ProviderMetadata] = [
    ProviderMetadata(
        id="openai",
        name="OpenAI",
        description="ChatGPT and GPT-4 family with native streaming",
        default_base_url="https://api.openai.com/v1",
        documentation_url="https://platform.openai.com/docs/overview",
        supports_streaming=True,
    ),
    ProviderMetadata(
        id="openrouter",
        name="OpenRouter",
        description="Unified access to multiple models with OpenAI-compatible API",
        default_base_url="https://openrouter.ai/api/v1",
        documentation_url="https://openrouter.ai/docs",
        supports_streaming=True,
    ),
    ProviderMetadata(
        id="anthropic",
        name="Anthropic Claude",
        description="Claude 3 family with native JSON and vision support",
        default_base_url="https://api.anthropic.com",
        documentation_url="https://docs.anthropic.com/claude/reference",
        supports_streaming=False,
    ),
    ProviderMetadata(
        id="google-gemini",
        name="Google Gemini",
        description="Gemini models with native multimodal capabilities",
        default_base_url="https://generativelanguage.googleapis.com/v1beta",
        documentation_url="https://ai.google.dev/gemini-api/docs",
        supports_streaming=False,
    ),
]


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _normalize(raw: dict[str, Any]) -> dict[str, Any]:
    """Fill defaults and trim strings. Does not validate."""
    provider = _clean(raw.get("provider")) or "openai"
    defaults = next((p for p in PROVIDERS if p.id == provider), None)

    temperature = raw.get("temperature")
    if temperature is None or temperature == "":
        temperature = DEFAULT_TEMPERATURE
    else:
        try:
            temperature = float(temperature)
        except (TypeError, ValueError):
            raise ConfigValidationError("Temperature must be a number") from None

    return {
        "provider": provider,
        "api_key": _clean(raw.get("api_key")),
        "base_url": _clean(raw.get("base_url"))
        or (defaults.default_base_url if defaults else FALLBACK_BASE_URL),
        "model": _clean(raw.get("model")) or DEFAULT_MODEL,
        "temperature": temperature,
    }


def _validate(normalized: dict[str, Any]) -> ProviderConfig:
    if not normalized["api_key"]:
        raise ConfigValidationError("API key is required")
    if not normalized["model"]:
        raise ConfigValidationError("Model is required")

    temperature = normalized["temperature"]
    if math.isnan(temperature):
        raise ConfigValidationError("Temperature must be a number")
    if temperature < 0 or temperature > 2:
        raise ConfigValidationError("Temperature must be between 0 and 2")

    try:
        return ProviderConfig(**normalized)
    except ValidationError as exc:
        supported = ", ".join(p.id for p in PROVIDERS)
        raise ConfigValidationError(
            f"Unsupported provider '{normalized['provider']}' (expected one of: {supported})"
        ) from exc


class ProviderConfigStore:
    """JSON-file backed store for the active provider configuration."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._cached: ProviderConfig | None = None

    def get(self) -> ProviderConfig:
        """Return the active configuration, reading (or creating) the file once."""
        if self._cached is None:
            self._cached = self._read()
        return self._cached

    def update(self, update: ProviderConfigUpdate) -> ProviderConfig:
        """
        Merge a partial update over the current configuration.

        Raises:
            ConfigValidationError: If the merged configuration is invalid.
        """
        current = self.get().model_dump()
        changes = update.model_dump(exclude_unset=True)
        merged = _validate(_normalize({**current, **changes}))

        self._write(merged)
        self._cached = merged
        logger.info("Provider configuration updated (provider=%s, model=%s)", merged.provider, merged.model)
        return merged

    @staticmethod
    def supported_providers() -> list[ProviderMetadata]:
        return PROVIDERS

    def _read(self) -> ProviderConfig:
        if not self._path.exists():
            defaults = ProviderConfig(**_normalize({}))
            self._write(defaults)
            logger.info("Wrote default provider configuration to %s", self._path)
            return defaults

        with open(self._path, "r", encoding="utf-8") as handle:
            data = json.load(handle)

        # Stored files use the camelCase wire names
        raw = ProviderConfigUpdate.model_validate(data).model_dump(exclude_none=True)
        return ProviderConfig(**_normalize(raw))

    def _write(self, config: ProviderConfig) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as handle:
            json.dump(config.model_dump(by_alias=True), handle, indent=2)
