"""Tests for the read-through caching store."""

from unittest.mock import MagicMock

import pytest

from drivecore.cache import CacheManager, node_key, search_key, user_key
from drivecore.errors import UpstreamError, UpstreamUnavailable
from drivecore.models import Node, NodeType
from drivecore.remote import CachedNodeStore, InMemoryNodeStore


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    store = InMemoryNodeStore()
    store.create_user({"username": "alice"})
    store.create_user({"username": "bob"})
    return store


@pytest.fixture
def cache(clock):
    return CacheManager(clock=clock)


@pytest.fixture
def store(backend, cache):
    return CachedNodeStore(backend, cache)


class TestReadThrough:
    """Test that reads populate and use the cache."""

    def test_node_read_is_cached(self, store, backend, cache):
        """Test a second read does not reach the backend."""
        node = backend.create_node("alice", {"type": "file", "name": "a", "text": "v1"})
        store.get_node("alice", node.id)

        # Change behind the cache's back
        backend.update_node("alice", node.id, {"text": "v2"})

        assert store.get_node("alice", node.id).text == "v1"
        assert cache.contains(node_key("alice", node.id))

    def test_expired_entry_refetched(self, store, backend, clock):
        """Test that reads go back to the backend after the TTL."""
        node = backend.create_node("alice", {"type": "file", "name": "a", "text": "v1"})
        store.get_node("alice", node.id)
        backend.update_node("alice", node.id, {"text": "v2"})

        clock.now += 300

        assert store.get_node("alice", node.id).text == "v2"

    def test_get_nodes_fetches_only_missing(self, store, backend):
        """Test batched reads only ask the backend for uncached ids."""
        first = backend.create_node("alice", {"type": "file", "name": "a"})
        second = backend.create_node("alice", {"type": "file", "name": "b"})
        store.get_node("alice", first.id)

        spy = MagicMock(wraps=backend.get_nodes)
        store.store.get_nodes = spy

        nodes = store.get_nodes("alice", [first.id, second.id])

        assert [n.id for n in nodes] == [first.id, second.id]
        spy.assert_called_once_with("alice", [second.id])

    def test_returned_nodes_do_not_alias_cache(self, store, backend):
        """Test that mutating a returned node leaves the cached copy alone."""
        node = backend.create_node("alice", {"type": "directory", "name": "d"})
        store.get_node("alice", node.id).contents.append("x")
        assert store.get_node("alice", node.id).contents == []

    def test_search_cached_per_query(self, store, backend, cache):
        """Test each distinct search is cached under its own key."""
        backend.create_node("alice", {"type": "file", "name": "a"})
        store.search_nodes("alice")
        store.search_nodes("alice", match={"type": "file"})

        assert cache.contains(search_key("alice", {"after": None, "match": None, "regexMatch": None}))
        assert len([k for k in cache.keys() if k.startswith("search:alice:")]) == 2

    def test_user_profile_cached(self, store, cache):
        """Test user reads are cached under the profile key."""
        store.get_user("alice")
        assert cache.contains(user_key("alice", "profile"))


class TestInvalidation:
    """Test that writes drop stale entries."""

    def test_update_invalidates_node_and_searches(self, store, backend, cache):
        """Test scenario: cached node is a miss after update."""
        node = backend.create_node("alice", {"type": "file", "name": "n1"})
        cache.set(node_key("alice", node.id), node.to_dict(), 300)
        assert cache.get(node_key("alice", node.id)) is not None
        store.search_nodes("alice")
        store.search_nodes("alice", match={"name": "n1"})

        store.update_node("alice", node.id, {"name": "x"})

        assert cache.get(node_key("alice", node.id)) is None
        assert [k for k in cache.keys() if k.startswith("search:alice:")] == []
        assert store.get_node("alice", node.id).name == "x"

    def test_create_and_delete_invalidate(self, store, backend, cache):
        """Test that create and delete drop the user's searches."""
        store.search_nodes("alice")
        node = store.create_node("alice", {"type": "file", "name": "new"})
        assert cache.keys() == []

        assert len(store.search_nodes("alice")) == 1
        store.delete_nodes("alice", node.id)
        assert store.search_nodes("alice") == []

    def test_other_users_untouched(self, store, backend, cache):
        """Test that a write by alice keeps bob's entries."""
        bob_node = backend.create_node("bob", {"type": "file", "name": "b"})
        store.get_node("bob", bob_node.id)
        store.create_node("alice", {"type": "file", "name": "a"})
        assert cache.contains(node_key("bob", bob_node.id))

    def test_user_update_invalidates_profile(self, store, cache):
        """Test that updating a profile drops the cached profile."""
        store.get_user("alice")
        store.update_user("alice", {"email": "new@example.com"})
        assert not cache.contains(user_key("alice", "profile"))
        assert store.get_user("alice")["email"] == "new@example.com"

    def test_rejected_write_keeps_cache(self, store, backend, cache):
        """Test that a rejected write leaves entries alone."""
        node = backend.create_node("bob", {"type": "file", "name": "b"})
        store.search_nodes("alice")

        with pytest.raises(UpstreamError):
            store.update_node("alice", node.id, {"name": "x"})

        assert len(cache.keys()) == 1

    def test_unavailable_write_invalidates(self, cache):
        """Test entries are dropped when the write outcome is unknown."""
        backend = MagicMock()
        backend.update_node.side_effect = UpstreamUnavailable(3, "HTTP 555")
        store = CachedNodeStore(backend, cache)
        cache.set(node_key("alice", "n1"), {"node_id": "n1"})

        with pytest.raises(UpstreamUnavailable):
            store.update_node("alice", "n1", {"text": "x"})

        assert cache.keys() == []

    def test_invalidation_happens_after_write(self, cache):
        """Test the cache is only touched once the backend returned."""
        events = []
        backend = MagicMock()
        backend.update_node.side_effect = lambda *a: events.append("write")
        cache_spy = MagicMock(wraps=cache)
        cache_spy.invalidate_namespace.side_effect = lambda u: events.append("invalidate")

        CachedNodeStore(backend, cache_spy).update_node("alice", "n1", {"text": "x"})

        assert events == ["write", "invalidate"]


class TestCacheFailures:
    """Test that a broken cache never breaks reads or writes."""

    @pytest.fixture
    def broken_cache(self):
        cache = MagicMock(spec=CacheManager)
        cache.get.side_effect = RuntimeError("cache down")
        cache.set.side_effect = RuntimeError("cache down")
        cache.invalidate_namespace.side_effect = RuntimeError("cache down")
        return cache

    def test_reads_fall_through(self, backend, broken_cache):
        """Test reads go to the backend when the cache fails."""
        node = backend.create_node("alice", {"type": "file", "name": "a"})
        store = CachedNodeStore(backend, broken_cache)

        assert store.get_node("alice", node.id).name == "a"
        assert len(store.search_nodes("alice")) == 1
        assert store.get_user("alice")["username"] == "alice"

    def test_writes_still_succeed(self, backend, broken_cache):
        """Test writes are applied even when invalidation fails."""
        store = CachedNodeStore(backend, broken_cache)
        node = store.create_node("alice", {"type": "file", "name": "a"})
        store.update_node("alice", node.id, {"name": "b"})
        assert backend.get_node("alice", node.id).name == "b"


def test_node_round_trip_through_cache(store, backend):
    """Test cached symlink nodes keep their target."""
    target = backend.create_node("alice", {"type": "file", "name": "t"})
    link = backend.create_node("alice", {"type": "symlink", "name": "l", "contents": [target.id]})
    store.get_node("alice", link.id)
    cached = store.get_node("alice", link.id)
    assert cached.type is NodeType.SYMLINK
    assert cached.contents == [target.id]
    assert isinstance(cached, Node)
