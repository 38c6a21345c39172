"""
LLM provider transports.

Each provider turns the session history plus a system prompt into its own
wire format (see ``normalizer``) and returns the assistant text. Clients
are built per call from the configuration that is active at that moment,
so configuration changes take effect on the next message. SDK retries are
disabled and SDK exceptions propagate unchanged.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import httpx
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from codechat.core.errors import ProviderRequestError
from codechat.core.telemetry import get_tracer
from codechat.models.chat import Message
from codechat.models.config import ProviderConfig
from codechat.services import normalizer

logger = logging.getLogger(__name__)

OPENAI_DEFAULT_BASE_URL = "https://api.openai.com/v1"
GEMINI_DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
ANTHROPIC_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.2


class ChatProvider(ABC):
    """Base class for provider transports."""

    name: str = ""
    supports_streaming: bool = False

    def __init__(
        self,
        config: ProviderConfig,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._timeout = timeout
        self._http_client = http_client
        self._tracer = get_tracer()

    @property
    def temperature(self) -> float:
        if self._config.temperature is None:
            return DEFAULT_TEMPERATURE
        return self._config.temperature

    @abstractmethod
    def _build_client(self) -> Any:
        """Create the SDK or HTTP client for one call."""

    async def _close(self, client: Any) -> None:
        await client.close()

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[Any]:
        """Client for one call; a caller-supplied ``http_client`` is left open."""
        client = self._build_client()
        try:
            yield client
        finally:
            if self._http_client is None:
                await self._close(client)

    @abstractmethod
    async def complete(self, system_prompt: str, messages: Sequence[Message]) -> str:
        """
        Generate one assistant reply.

        Args:
            system_prompt: Instructions plus the serialized codebase context.
            messages: Session history; the newest entry is the user turn being answered.

        Returns:
            The reply text (possibly empty).
        """


class StreamingChatProvider(ChatProvider):
    """Provider that can also deliver the reply token by token."""

    supports_streaming = True

    @abstractmethod
    def stream(self, system_prompt: str, messages: Sequence[Message]) -> AsyncIterator[str]:
        """Yield non-empty reply text deltas in order."""


class OpenAICompatibleProvider(StreamingChatProvider):
    """OpenAI chat completions, also used for OpenRouter."""

    name = "openai"

    def _build_client(self) -> AsyncOpenAI:
        return AsyncOpenAI(
            api_key=self._config.api_key,
            base_url=self._config.base_url or OPENAI_DEFAULT_BASE_URL,
            timeout=self._timeout,
            max_retries=0,
            http_client=self._http_client,
        )

    def _request(self, system_prompt: str, messages: Sequence[Message]) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self._config.model,
            "messages": normalizer.to_openai_messages(system_prompt, messages),
        }
        if self._config.temperature is not None:
            request["temperature"] = self._config.temperature
        return request

    async def complete(self, system_prompt: str, messages: Sequence[Message]) -> str:
        with self._tracer.start_as_current_span("provider.openai.complete") as span:
            span.set_attribute("provider.model", self._config.model)
            span.set_attribute("provider.message_count", len(messages))

            async with self._client() as client:
                response = await client.chat.completions.create(**self._request(system_prompt, messages))

            if not response.choices:
                return ""
            answer = response.choices[0].message.content or ""
            if response.usage:
                span.set_attribute("provider.total_tokens", response.usage.total_tokens)
                logger.info("Chat completion: %d tokens used", response.usage.total_tokens)
            return answer

    async def stream(self, system_prompt: str, messages: Sequence[Message]) -> AsyncIterator[str]:
        # Not made current: the span outlives the caller's context between yields
        span = self._tracer.start_span("provider.openai.stream")
        span.set_attribute("provider.model", self._config.model)
        span.set_attribute("provider.message_count", len(messages))
        chunks = 0
        try:
            async with self._client() as client:
                stream = await client.chat.completions.create(
                    **self._request(system_prompt, messages), stream=True
                )
                try:
                    async for chunk in stream:
                        if not chunk.choices:
                            continue
                        delta = chunk.choices[0].delta
                        if delta is not None and delta.content:
                            chunks += 1
                            yield delta.content
                finally:
                    await stream.close()
        finally:
            span.set_attribute("provider.chunks", chunks)
            span.end()


class AnthropicProvider(ChatProvider):
    """Anthropic messages API."""

    name = "anthropic"

    def _build_client(self) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=self._config.api_key,
            base_url=self._config.base_url or None,
            timeout=self._timeout,
            max_retries=0,
            http_client=self._http_client,
        )

    async def complete(self, system_prompt: str, messages: Sequence[Message]) -> str:
        with self._tracer.start_as_current_span("provider.anthropic.complete") as span:
            span.set_attribute("provider.model", self._config.model)
            span.set_attribute("provider.message_count", len(messages))

            async with self._client() as client:
                response = await client.messages.create(
                    model=self._config.model,
                    max_tokens=ANTHROPIC_MAX_TOKENS,
                    temperature=self.temperature,
                    system=system_prompt,
                    messages=normalizer.to_anthropic_messages(messages),
                )

            return "".join(block.text for block in response.content if block.type == "text").strip()


class GeminiProvider(ChatProvider):
    """Google Gemini ``generateContent`` REST endpoint."""

    name = "google-gemini"

    def _build_client(self) -> httpx.AsyncClient:
        return self._http_client or httpx.AsyncClient(timeout=self._timeout)

    async def _close(self, client: httpx.AsyncClient) -> None:
        await client.aclose()

    def _url(self) -> str:
        base_url = (self._config.base_url or GEMINI_DEFAULT_BASE_URL).rstrip("/")
        return f"{base_url}/models/{quote(self._config.model, safe='')}:generateContent"

    def _payload(self, system_prompt: str, messages: Sequence[Message]) -> dict[str, Any]:
        return {
            "contents": normalizer.to_gemini_contents(messages),
            "systemInstruction": {"role": "system", "parts": [{"text": system_prompt}]},
            "generationConfig": {"temperature": self.temperature},
        }

    async def complete(self, system_prompt: str, messages: Sequence[Message]) -> str:
        with self._tracer.start_as_current_span("provider.gemini.complete") as span:
            span.set_attribute("provider.model", self._config.model)
            span.set_attribute("provider.message_count", len(messages))

            async with self._client() as http:
                response = await http.post(
                    self._url(),
                    params={"key": self._config.api_key},
                    json=self._payload(system_prompt, messages),
                )

            span.set_attribute("http.status_code", response.status_code)
            if not response.is_success:
                raise ProviderRequestError(self.name, self._error_message(response), response.status_code)

            data = response.json()
            candidates = data.get("candidates") or [{}]
            parts = (candidates[0].get("content") or {}).get("parts") or []
            return "".join(part.get("text", "") for part in parts).strip()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            data = None
        error = data.get("error") if isinstance(data, dict) else None
        message = error.get("message") if isinstance(error, dict) else None
        logger.warning("Gemini request failed with HTTP %d", response.status_code)
        return message or "Gemini request failed"


def build_provider(
    config: ProviderConfig,
    timeout: float | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> ChatProvider:
    """Pick the transport for the configured provider."""
    if config.provider in ("openai", "openrouter"):
        return OpenAICompatibleProvider(config, timeout, http_client)
    if config.provider == "anthropic":
        return AnthropicProvider(config, timeout, http_client)
    return GeminiProvider(config, timeout, http_client)
