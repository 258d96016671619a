"""Unit tests for replica state, the pending-push queue and identity resolution."""

import pytest

from common.constants import PROFILE_CACHE_KEY
from common.exceptions import RecordNotFoundError
from record_store.memory_store import InMemoryRecordStoreClient
from replica.identity import IdentityResolver
from replica.push_queue import PendingPushQueue
from replica.state import ReplicaState


class TestReplicaState:
    """In-memory collection state."""

    def test_append_and_get(self, make_record):
        state = ReplicaState("entries")
        record = make_record("1")

        state.append(record)

        assert state.get("1") == record
        assert len(state) == 1
        assert list(state) == [record]

    def test_require_missing_raises(self):
        state = ReplicaState("entries")

        with pytest.raises(RecordNotFoundError):
            state.require("missing")

    def test_put_replaces_in_place(self, make_record):
        state = ReplicaState("entries", [make_record("1"), make_record("2")])

        assert state.put(make_record("1", activity="chess")) is True

        assert [r.id for r in state] == ["1", "2"]
        assert state.get("1").payload.get("activity") == "chess"

    def test_put_unknown_id_is_noop(self, make_record):
        state = ReplicaState("entries")

        assert state.put(make_record("9")) is False
        assert len(state) == 0

    def test_remove_where(self, make_record):
        state = ReplicaState("entries", [
            make_record("1", author_id="u1"),
            make_record("2", author_id="u2"),
            make_record("3", author_id="u1"),
        ])

        removed = state.remove_where(lambda r: r.author_id == "u1")

        assert [r.id for r in removed] == ["1", "3"]
        assert [r.id for r in state] == ["2"]

    def test_set_remote_ref_keeps_last_modified(self, make_record):
        record = make_record("1", last_modified=3)
        state = ReplicaState("entries", [record])

        updated = state.set_remote_ref("1", "ref-1")

        assert updated.remote_ref == "ref-1"
        assert updated.last_modified == record.last_modified

    def test_set_remote_ref_on_deleted_record_returns_none(self):
        state = ReplicaState("entries")

        assert state.set_remote_ref("gone", "ref") is None

    def test_listeners_see_every_change(self, make_record):
        state = ReplicaState("entries")
        seen = []
        unsubscribe = state.subscribe(lambda s: seen.append(len(s)))

        state.append(make_record("1"))
        state.append(make_record("2"))
        unsubscribe()
        state.remove("1")

        assert seen == [1, 2]

    def test_failing_listener_does_not_block_others(self, make_record):
        state = ReplicaState("entries")
        seen = []

        def broken(_):
            raise RuntimeError("boom")

        state.subscribe(broken)
        state.subscribe(lambda s: seen.append(len(s)))

        state.append(make_record("1"))

        assert seen == [1]


class TestPendingPushQueue:
    """Persistent queue of ids awaiting a push."""

    def test_add_is_idempotent_and_ordered(self, cache):
        queue = PendingPushQueue("entries", cache)

        queue.add("b")
        queue.add("a")
        queue.add("b")

        assert queue.ids() == ["b", "a"]
        assert "a" in queue

    def test_discard_and_clear(self, cache):
        queue = PendingPushQueue("entries", cache)
        queue.add("a")
        queue.add("b")

        queue.discard("a")
        queue.discard("missing")
        assert queue.ids() == ["b"]

        queue.clear()
        assert len(queue) == 0
        assert cache.load("pending_pushes:entries") == []

    def test_queues_are_per_collection(self, cache):
        PendingPushQueue("entries", cache).add("x")

        assert PendingPushQueue("activities", cache).ids() == []

    def test_garbage_in_cache_is_ignored(self, cache):
        cache.save("pending_pushes:entries", {"not": "a list"})

        assert PendingPushQueue("entries", cache).ids() == []


class TestIdentityResolver:
    """Current author lookup."""

    @pytest.mark.asyncio
    async def test_resolve_asks_store_once(self, client, cache):
        identity = IdentityResolver(client, cache)

        assert await identity.resolve() == "u1"
        assert await identity.resolve() == "u1"

        assert client.calls.count('current_author_id') == 1
        assert identity.current_author_id() == "u1"

    @pytest.mark.asyncio
    async def test_unreachable_store_leaves_identity_unknown(self, client, cache):
        identity = IdentityResolver(client, cache)
        client.offline = True

        assert await identity.resolve() is None
        assert identity.current_author_id() is None

        client.offline = False
        assert await identity.resolve() == "u1"

    @pytest.mark.asyncio
    async def test_signed_out_store_leaves_identity_unknown(self, store, cache):
        identity = IdentityResolver(InMemoryRecordStoreClient(store, author_id=None), cache)

        assert await identity.resolve() is None

    @pytest.mark.asyncio
    async def test_owns_requires_matching_author(self, client, cache, make_record):
        identity = IdentityResolver(client, cache)
        assert identity.owns(make_record("1", author_id="u1")) is False

        await identity.resolve()

        assert identity.owns(make_record("1", author_id="u1")) is True
        assert identity.owns(make_record("2", author_id="u2")) is False
        assert identity.owns(make_record("3", author_id=None)) is False

    def test_display_name_comes_from_cached_profile(self, client, cache):
        identity = IdentityResolver(client, cache)
        assert identity.current_display_name() is None

        cache.save(PROFILE_CACHE_KEY, {"name": "Alice"})

        assert identity.current_display_name() == "Alice"
