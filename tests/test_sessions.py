# -*- coding: utf-8 -*-
"""
Tests for the Session Store

Covers:
- create: generated and caller-supplied ids, duplicates, capacity
- delete: exactly-once release, release failures, unknown ids
- append_turn / history / list_sessions / stale / delete_if_stale / clear
"""

from __future__ import annotations

import time
import uuid

import pytest

from auxilium.errors import CapacityExceeded, DuplicateId, EngineFailure, NotFound


# =============================================================================
# Create
# =============================================================================

class TestCreate:
    """Tests for SessionStore.create."""

    @pytest.mark.asyncio
    async def test_generates_uuid_when_no_id(self, store, engine):
        session_id = await store.create()

        assert str(uuid.UUID(session_id)) == session_id
        assert session_id in store
        assert len(engine.contexts) == 1

    @pytest.mark.asyncio
    async def test_uses_caller_supplied_id(self, store):
        session_id = await store.create("s1")

        session = store.get("s1")
        assert session_id == "s1"
        assert session.history == []
        assert session.created_at == session.last_activity

    @pytest.mark.asyncio
    async def test_passes_system_prompt_to_context(self, store, engine):
        await store.create("s1", system_prompt="Be brief.")

        assert engine.contexts[0].system_prompt == "Be brief."

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store, engine):
        await store.create("s1")

        with pytest.raises(DuplicateId):
            await store.create("s1")
        assert len(engine.contexts) == 1

    @pytest.mark.asyncio
    async def test_capacity_enforced_then_freed(self, store):
        for i in range(store.max_sessions):
            await store.create(f"s{i}")

        with pytest.raises(CapacityExceeded):
            await store.create("extra")

        await store.delete("s0")
        assert await store.create("extra") == "extra"
        assert store.count == store.max_sessions

    @pytest.mark.asyncio
    async def test_capacity_checked_before_duplicate(self, store):
        for i in range(store.max_sessions):
            await store.create(f"s{i}")

        with pytest.raises(CapacityExceeded):
            await store.create("s0")

    @pytest.mark.asyncio
    async def test_context_failure_leaves_no_entry(self, store, engine):
        engine.fail_create = True

        with pytest.raises(EngineFailure):
            await store.create("s1")
        assert "s1" not in store


# =============================================================================
# Delete
# =============================================================================

class TestDelete:
    """Tests for SessionStore.delete."""

    @pytest.mark.asyncio
    async def test_releases_context_once(self, store, engine):
        await store.create("s1")

        await store.delete("s1")

        assert "s1" not in store
        assert engine.contexts[0].release_count == 1
        with pytest.raises(NotFound):
            await store.delete("s1")
        assert engine.contexts[0].release_count == 1

    @pytest.mark.asyncio
    async def test_unknown_id(self, store):
        with pytest.raises(NotFound):
            await store.delete("missing")

    @pytest.mark.asyncio
    async def test_release_failure_still_removes(self, store, engine):
        await store.create("s1")
        engine.fail_release = True

        await store.delete("s1")

        assert "s1" not in store
        assert engine.contexts[0].release_count == 1

    @pytest.mark.asyncio
    async def test_marks_session_tombstoned(self, store):
        await store.create("s1")
        session = store.get("s1")

        await store.delete("s1")

        assert session.tombstoned is True

    @pytest.mark.asyncio
    async def test_clear_deletes_everything(self, store, engine):
        await store.create("a")
        await store.create("b")

        assert await store.clear() == 2
        assert store.count == 0
        assert all(c.release_count == 1 for c in engine.contexts)


# =============================================================================
# History & Snapshots
# =============================================================================

class TestHistory:
    """Tests for append_turn, history, list_sessions and stale."""

    @pytest.mark.asyncio
    async def test_append_turn_orders_user_before_assistant(self, store):
        await store.create("s1")
        before = store.get("s1").last_activity

        store.append_turn("s1", "hello", "hi there")

        history = store.history("s1")
        assert [(e.role, e.content) for e in history] == [
            ("user", "hello"),
            ("assistant", "hi there"),
        ]
        assert store.get("s1").last_activity >= before
        assert store.get("s1").message_count == 2

    @pytest.mark.asyncio
    async def test_history_is_a_copy(self, store):
        await store.create("s1")
        store.history("s1").append("junk")

        assert store.history("s1") == []

    @pytest.mark.asyncio
    async def test_append_turn_unknown_session(self, store):
        with pytest.raises(NotFound):
            store.append_turn("missing", "hello", "hi")

    @pytest.mark.asyncio
    async def test_get_and_history_unknown_session(self, store):
        with pytest.raises(NotFound):
            store.get("missing")
        with pytest.raises(NotFound):
            store.history("missing")

    @pytest.mark.asyncio
    async def test_list_sessions_snapshot(self, store):
        await store.create("s1")
        store.append_turn("s1", "hello", "hi")

        (summary,) = store.list_sessions()

        assert summary["id"] == "s1"
        assert summary["message_count"] == 2
        assert set(summary) == {"id", "created_at", "last_activity", "message_count"}

    @pytest.mark.asyncio
    async def test_stale_uses_strict_age(self, store):
        await store.create("old")
        await store.create("young")
        now = time.time()
        store.get("old").last_activity = now - 120
        store.get("young").last_activity = now - 30

        assert store.stale(60, now=now) == ["old"]
        assert store.stale(120, now=now) == []

    @pytest.mark.asyncio
    async def test_delete_if_stale_rechecks_age(self, store, engine):
        await store.create("s1")
        now = time.time()
        store.get("s1").last_activity = now - 30

        assert await store.delete_if_stale("s1", 60, now=now) is False
        assert "s1" in store

        assert await store.delete_if_stale("s1", 10, now=now) is True
        assert "s1" not in store
        assert engine.contexts[0].release_count == 1
        assert await store.delete_if_stale("s1", 10, now=now) is False
