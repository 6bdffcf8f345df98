"""Tests for the in-memory node store."""

import pytest

from drivecore.errors import NotFound, UpstreamError
from drivecore.models import Node, NodeType
from drivecore.remote import InMemoryNodeStore


@pytest.fixture
def store():
    store = InMemoryNodeStore(clock=lambda: 1000.0)
    store.create_user({"username": "alice", "email": "a@example.com", "key": "k1"})
    store.create_user({"username": "bob", "key": "k2"})
    return store


class TestUsers:
    """Test user operations."""

    def test_get_user_hides_key(self, store):
        """Test that the stored key is never returned."""
        user = store.get_user("alice")
        assert user["email"] == "a@example.com"
        assert "key" not in user

    def test_duplicate_user(self, store):
        """Test that usernames are unique."""
        with pytest.raises(UpstreamError):
            store.create_user({"username": "alice"})

    def test_missing_user(self, store):
        """Test NotFound for unknown users."""
        with pytest.raises(NotFound):
            store.get_user("carol")

    def test_authenticate(self, store):
        """Test key comparison."""
        assert store.authenticate_user("alice", "k1") is True
        assert store.authenticate_user("alice", "k2") is False
        assert store.authenticate_user("carol", "k1") is False

    def test_delete_user_removes_nodes(self, store):
        """Test that deleting a user deletes their nodes."""
        store.create_node("alice", {"type": "file", "name": "a"})
        store.create_node("bob", {"type": "file", "name": "b"})
        store.delete_user("alice")
        assert len(store) == 1


class TestNodes:
    """Test node operations."""

    def test_create_sets_owner_and_size(self, store):
        """Test that created files get an owner, id and size."""
        node = store.create_node("alice", {"type": "file", "name": "a.md", "text": "héllo"})
        assert node.owner == "alice"
        assert node.id
        assert node.size == 6
        assert node.created_at == 1000.0

    def test_returned_nodes_are_copies(self, store):
        """Test that mutating a returned node does not change the store."""
        node = store.create_node("alice", {"type": "directory", "name": "d"})
        node.contents.append("x")
        assert store.get_node("alice", node.id).contents == []

    def test_ownership_enforced(self, store):
        """Test that other users cannot read or write a node."""
        node = store.create_node("alice", {"type": "file", "name": "a"})
        with pytest.raises(UpstreamError) as exc_info:
            store.get_node("bob", node.id)
        assert exc_info.value.status_code == 403
        with pytest.raises(UpstreamError):
            store.update_node("bob", node.id, {"text": "x"})

    def test_update_fields(self, store):
        """Test updating text recomputes size."""
        node = store.create_node("alice", {"type": "file", "name": "a"})
        store.update_node("alice", node.id, {"text": "abc", "tags": ["t"], "owner": "bob"})
        updated = store.get_node("alice", node.id)
        assert updated.text == "abc"
        assert updated.size == 3
        assert updated.tags == ["t"]
        assert updated.owner == "alice"

    def test_delete_is_all_or_nothing(self, store):
        """Test that a bad id aborts the whole delete."""
        node = store.create_node("alice", {"type": "file", "name": "a"})
        with pytest.raises(NotFound):
            store.delete_nodes("alice", [node.id, "ghost"])
        assert store.get_node("alice", node.id).id == node.id

    def test_search_filters(self, store):
        """Test owner scoping, match, regex and after."""
        first = store.create_node("alice", {"type": "file", "name": "alpha"})
        store.create_node("alice", {"type": "directory", "name": "beta"})
        third = store.create_node("alice", {"type": "file", "name": "gamma"})
        store.create_node("bob", {"type": "file", "name": "alpha"})

        assert len(store.search_nodes("alice")) == 3
        assert [n.name for n in store.search_nodes("alice", match={"type": "file"})] == [
            "alpha",
            "gamma",
        ]
        assert [n.name for n in store.search_nodes("alice", regex_match={"name": "^g"})] == [
            "gamma"
        ]
        assert [n.id for n in store.search_nodes("alice", after=first.id)][-1] == third.id
        assert store.search_nodes("alice", after="ghost") == []

    def test_from_nodes(self):
        """Test preloading a store from nodes."""
        nodes = [Node("n1", NodeType.FILE, "alice", name="a")]
        store = InMemoryNodeStore.from_nodes(nodes)
        assert store.get_node("alice", "n1").name == "a"
        assert store.get_user("alice")["username"] == "alice"
