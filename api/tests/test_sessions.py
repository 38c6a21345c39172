"""
Unit tests for the in-memory session store.
"""

import asyncio
from datetime import timedelta

import pytest

from codechat.services.sessions import SessionStore


class TestSessionStore:
    def test_get_or_create_is_idempotent(self):
        store = SessionStore()
        first = store.get_or_create("c1")
        second = store.get_or_create("c1")

        assert first is second
        assert len(store) == 1

    def test_create_always_registers_new_session(self):
        """Explicit create adds a session; lookup keeps returning the first one."""
        store = SessionStore()
        first = store.get_or_create("c1")
        extra = store.create("c1")

        assert extra is not first
        assert extra.id != first.id
        assert store.get_or_create("c1") is first
        assert len(store) == 2

    def test_session_id_derived_from_container(self):
        session = SessionStore().create("abc123")
        assert session.id.startswith("abc123-")
        assert session.container_id == "abc123"
        assert session.messages == []

    def test_get_unknown_session(self):
        assert SessionStore().get("missing") is None

    def test_get_by_id(self):
        store = SessionStore()
        session = store.create("c1")
        assert store.get(session.id) is session

    def test_lock_is_per_session(self):
        store = SessionStore()
        a = store.create("a")
        b = store.create("b")

        assert store.lock(a.id) is store.lock(a.id)
        assert store.lock(a.id) is not store.lock(b.id)

    def test_capacity_evicts_least_recently_updated(self):
        store = SessionStore(max_sessions=2)
        old = store.create("old")
        newer = store.create("newer")
        old.updated_at -= timedelta(minutes=5)

        store.create("newest")

        assert store.get(old.id) is None
        assert store.get(newer.id) is newer
        assert len(store) == 2

    @pytest.mark.asyncio
    async def test_capacity_skips_busy_sessions(self):
        store = SessionStore(max_sessions=1)
        busy = store.create("busy")

        async with store.turn(busy.id):
            store.create("other")
            assert store.get(busy.id) is busy
            assert len(store) == 2

    @pytest.mark.asyncio
    async def test_queued_turn_keeps_session_registered(self):
        """A turn waiting for the lock protects its session from eviction."""
        store = SessionStore(max_sessions=1)
        session = store.get_or_create("c1")

        async def first():
            async with store.turn(session.id):
                await asyncio.sleep(0.01)
            # The second turn is still queued or running here.
            store.create("c2")

        async def second():
            async with store.turn(session.id):
                await asyncio.sleep(0.01)

        await asyncio.gather(first(), second())

        assert store.get(session.id) is session

    @pytest.mark.asyncio
    async def test_idle_session_evictable_after_turn(self):
        store = SessionStore(max_sessions=1)
        session = store.create("c1")

        async with store.turn(session.id):
            pass
        store.create("c2")

        assert store.get(session.id) is None

    def test_ttl_expires_idle_sessions(self):
        store = SessionStore(ttl_seconds=60)
        stale = store.create("c1")
        stale.updated_at -= timedelta(minutes=10)

        fresh = store.get_or_create("c1")

        assert fresh is not stale
        assert store.get(stale.id) is not stale
