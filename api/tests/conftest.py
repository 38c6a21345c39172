"""
Shared mock collaborators for the chat service tests.
"""

import asyncio
import base64

import pytest

from codechat.models.chat import Attachment
from codechat.models.config import ProviderConfig
from codechat.services.chat import ChatAdapter
from codechat.services.sessions import SessionStore


class MockContextProvider:
    """Mock codebase context provider."""

    def __init__(self, tree=None, error=None):
        self._tree = tree if tree is not None else {}
        self._error = error
        self.calls = []

    async def get_context_tree(self, container_id):
        self.calls.append(container_id)
        if self._error is not None:
            raise self._error
        return self._tree


class MockConfigStore:
    """Mock provider configuration store."""

    def __init__(self, config):
        self.config = config

    def get(self):
        return self.config


class MockProvider:
    """Mock provider transport that records what it was asked."""

    def __init__(self, reply="Here are your files.", deltas=None, error=None, delay=0.0):
        self._reply = reply
        self._deltas = deltas
        self._error = error
        self._delay = delay
        self.supports_streaming = deltas is not None
        self.calls = []

    async def complete(self, system_prompt, messages):
        self.calls.append((system_prompt, list(messages)))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return self._reply

    async def stream(self, system_prompt, messages):
        self.calls.append((system_prompt, list(messages)))
        for delta in self._deltas:
            if isinstance(delta, Exception):
                raise delta
            yield delta


@pytest.fixture
def context_tree():
    return {"src": {"main.py": "print('hello')\n"}, "README.md": "# Demo\n"}


@pytest.fixture
def context_provider(context_tree):
    return MockContextProvider(context_tree)


@pytest.fixture
def openai_config():
    return ProviderConfig(
        provider="openai",
        api_key="sk-test",
        base_url="https://api.openai.com/v1",
        model="gpt-4o-mini",
        temperature=0.2,
    )


@pytest.fixture
def make_adapter(context_provider, openai_config):
    """Build a ChatAdapter whose provider factory always returns ``provider``."""

    def _make(provider, config=None, sessions=None, context=None):
        return ChatAdapter(
            sessions if sessions is not None else SessionStore(),
            MockConfigStore(config or openai_config),
            context or context_provider,
            provider_factory=lambda cfg, timeout: provider,
        )

    return _make


@pytest.fixture
def image_attachment():
    return Attachment(
        type="image",
        data=base64.b64encode(b"\x89PNG fake").decode(),
        name="screenshot.png",
        mime_type="image/png",
        size=9,
    )


@pytest.fixture
def document_attachment():
    return Attachment(
        type="document",
        data=base64.b64encode("TODO: fix the login flow".encode()).decode(),
        name="notes.txt",
        mime_type="text/plain",
        size=24,
    )
