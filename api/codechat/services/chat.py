"""
Chat adapter — provider-agnostic conversation pipeline.

For every turn:
1. Resolve (or create) the container's session and hold its lock.
2. Append the user message.
3. Read the active provider configuration.
4. Build the system prompt from the container's codebase context.
5. Call the configured provider with the session history.
6. Append the assistant reply (a fixed fallback replaces empty output).

A failed provider call leaves the user message in the session so the turn
can be retried.
"""

import json
import logging
import time
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import aclosing

from codechat.core.telemetry import get_tracer
from codechat.models.chat import Attachment, ChatExchange, ChatSession, Message, StreamEvent
from codechat.models.config import ProviderConfig
from codechat.services.ai_config import ProviderConfigStore
from codechat.services.context import ContextProvider
from codechat.services.providers import ChatProvider, build_provider
from codechat.services.sessions import SessionStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """\
You are a senior software engineer embedded in the user's development \
container. You can see every source file of the project below.

## Rules
1. Ground your answers in the files shown; quote paths when you refer to them.
2. When you propose changes, show complete, working code for the affected parts.
3. If something is not in the codebase, say so instead of guessing.
4. Treat attached documents and images as additional context from the user.
5. Be concise and precise.
"""

CONTEXT_HEADER = "Current codebase structure and content:"

FALLBACK_RESPONSE = "Sorry, I could not generate a response."

ProviderFactory = Callable[[ProviderConfig, float | None], ChatProvider]


def _message_id(role: str) -> str:
    return f"{role}-{int(time.time() * 1000)}"


def build_user_message(text: str, attachments: Sequence[Attachment] = ()) -> Message:
    return Message(
        id=_message_id("user"),
        role="user",
        content=text,
        attachments=list(attachments) or None,
    )


class ChatAdapter:
    """Runs chat turns for containers against the configured LLM provider."""

    def __init__(
        self,
        sessions: SessionStore,
        config_store: ProviderConfigStore,
        context_provider: ContextProvider,
        provider_factory: ProviderFactory = build_provider,
        provider_timeout: float | None = None,
    ) -> None:
        self._sessions = sessions
        self._config_store = config_store
        self._context = context_provider
        self._provider_factory = provider_factory
        self._provider_timeout = provider_timeout
        self._tracer = get_tracer()

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    async def build_system_prompt(self, container_id: str) -> str:
        """Instruction template followed by the serialized context tree."""
        tree = await self._context.get_context_tree(container_id)
        return f"{SYSTEM_PROMPT}\n\n{CONTEXT_HEADER}\n{json.dumps(tree, indent=2, ensure_ascii=False)}"

    async def send_message(
        self,
        container_id: str,
        text: str,
        attachments: Sequence[Attachment] = (),
    ) -> ChatExchange:
        """
        Send one user message and wait for the complete reply.

        Args:
            container_id: Container whose session and codebase are used.
            text: The user's message.
            attachments: Images and documents attached to the message.

        Returns:
            ChatExchange with the appended user and assistant messages.
        """
        session = self._sessions.get_or_create(container_id)
        async with self._sessions.turn(session.id):
            return await self._exchange(session, text, attachments)

    async def _exchange(
        self,
        session: ChatSession,
        text: str,
        attachments: Sequence[Attachment],
    ) -> ChatExchange:
        with self._tracer.start_as_current_span("chat.send_message") as span:
            span.set_attribute("chat.container_id", session.container_id)
            span.set_attribute("chat.attachment_count", len(attachments))

            user_message = session.append(build_user_message(text, attachments))

            config = self._config_store.get()
            span.set_attribute("chat.provider", config.provider)
            span.set_attribute("chat.model", config.model)

            system_prompt = await self.build_system_prompt(session.container_id)
            provider = self._provider_factory(config, self._provider_timeout)
            content = await provider.complete(system_prompt, list(session.messages))

            if not content:
                logger.warning("Empty reply from %s for session %s", config.provider, session.id)
                content = FALLBACK_RESPONSE

            assistant_message = session.append(
                Message(id=_message_id("assistant"), role="assistant", content=content)
            )
            logger.info(
                "Chat turn completed (session=%s, provider=%s, messages=%d)",
                session.id,
                config.provider,
                len(session.messages),
            )
            return ChatExchange(user_message=user_message, assistant_message=assistant_message)

    async def send_message_stream(
        self,
        container_id: str,
        text: str,
        attachments: Sequence[Attachment] = (),
    ) -> AsyncIterator[StreamEvent]:
        """
        Send one user message and yield the reply incrementally.

        Yields a ``user`` event, then ``assistant`` snapshots, then ``done``.
        Providers without token streaming produce exactly one ``assistant``
        snapshot (the final reply). The session receives the assistant
        message only when the stream is drained; closing the iterator early
        discards the partial reply.
        """
        config = self._config_store.get()
        provider = self._provider_factory(config, self._provider_timeout)

        if not provider.supports_streaming:
            exchange = await self.send_message(container_id, text, attachments)
            yield StreamEvent(type="user", data=exchange.user_message)
            yield StreamEvent(type="assistant", data=exchange.assistant_message)
            yield StreamEvent(type="done", data=exchange.assistant_message)
            return

        session = self._sessions.get_or_create(container_id)
        span = self._tracer.start_span("chat.send_message_stream")
        span.set_attribute("chat.container_id", container_id)
        span.set_attribute("chat.provider", config.provider)
        span.set_attribute("chat.model", config.model)
        try:
            async with self._sessions.turn(session.id):
                user_message = session.append(build_user_message(text, attachments))
                yield StreamEvent(type="user", data=user_message)

                system_prompt = await self.build_system_prompt(container_id)
                assistant_id = _message_id("assistant")
                content = ""

                async with aclosing(provider.stream(system_prompt, list(session.messages))) as deltas:
                    async for delta in deltas:
                        if not delta:
                            continue
                        content += delta
                        yield StreamEvent(
                            type="assistant",
                            data=Message(id=assistant_id, role="assistant", content=content),
                        )

                if not content:
                    logger.warning("Empty streamed reply from %s for session %s", config.provider, session.id)
                    content = FALLBACK_RESPONSE

                final_message = session.append(Message(id=assistant_id, role="assistant", content=content))
                span.set_attribute("chat.reply_chars", len(content))
                logger.info(
                    "Streamed chat turn completed (session=%s, provider=%s, chars=%d)",
                    session.id,
                    config.provider,
                    len(content),
                )
                yield StreamEvent(type="done", data=final_message)
        finally:
            span.end()
