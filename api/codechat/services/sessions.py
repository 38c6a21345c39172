"""
In-memory chat session registry.

Sessions are keyed by session id and looked up by container id. Each
session has an asyncio lock that callers hold for a whole turn (see
``turn``) so that concurrent sends to the same container cannot
interleave their appends. Optional capacity and idle-expiry limits keep
the registry bounded; both are off by default. A session with a turn
running or queued is never evicted or expired.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from codechat.models.chat import ChatSession, utcnow

logger = logging.getLogger(__name__)


class SessionStore:
    """Registry of chat sessions, one active session per container."""

    def __init__(
        self,
        max_sessions: int | None = None,
        ttl_seconds: float | None = None,
    ) -> None:
        self._sessions: dict[str, ChatSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._in_flight: dict[str, int] = {}
        self._max_sessions = max_sessions
        self._ttl_seconds = ttl_seconds

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, container_id: str) -> ChatSession:
        """Register a new session, even if the container already has one."""
        self._purge_expired()
        if self._max_sessions is not None:
            while len(self._sessions) >= self._max_sessions and self._evict_oldest():
                pass

        stamp = int(time.time() * 1000)
        while f"{container_id}-{stamp}" in self._sessions:
            stamp += 1
        session = ChatSession(id=f"{container_id}-{stamp}", container_id=container_id)
        self._sessions[session.id] = session
        logger.info("Created chat session %s", session.id)
        return session

    def get(self, session_id: str) -> ChatSession | None:
        self._purge_expired()
        return self._sessions.get(session_id)

    def get_or_create(self, container_id: str) -> ChatSession:
        """Return the first session registered for the container, creating one if needed."""
        self._purge_expired()
        for session in self._sessions.values():
            if session.container_id == container_id:
                return session
        return self.create(container_id)

    def lock(self, session_id: str) -> asyncio.Lock:
        """Single-writer lock for a session."""
        return self._locks.setdefault(session_id, asyncio.Lock())

    @asynccontextmanager
    async def turn(self, session_id: str) -> AsyncIterator[None]:
        """
        Hold the session's lock for one turn.

        The turn counts as in flight from the moment it starts waiting for
        the lock, so a queued turn also keeps its session registered.
        """
        self._in_flight[session_id] = self._in_flight.get(session_id, 0) + 1
        try:
            async with self.lock(session_id):
                yield
        finally:
            remaining = self._in_flight[session_id] - 1
            if remaining:
                self._in_flight[session_id] = remaining
            else:
                del self._in_flight[session_id]

    def _is_busy(self, session_id: str) -> bool:
        return self._in_flight.get(session_id, 0) > 0

    def _remove(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)

    def _purge_expired(self) -> None:
        if self._ttl_seconds is None:
            return
        cutoff = utcnow() - timedelta(seconds=self._ttl_seconds)
        expired = [
            sid
            for sid, session in self._sessions.items()
            if session.updated_at < cutoff and not self._is_busy(sid)
        ]
        for sid in expired:
            self._remove(sid)
        if expired:
            logger.info("Expired %d idle chat sessions", len(expired))

    def _evict_oldest(self) -> bool:
        candidates = [s for s in self._sessions.values() if not self._is_busy(s.id)]
        if not candidates:
            logger.warning("Session capacity reached but every session is busy")
            return False
        oldest = min(candidates, key=lambda s: s.updated_at)
        self._remove(oldest.id)
        logger.info("Evicted chat session %s (capacity %d)", oldest.id, self._max_sessions)
        return True
