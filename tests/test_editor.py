"""Tests for editor sessions."""

import threading
from unittest.mock import MagicMock

import pytest

from drivecore.config import DriveConfig
from drivecore.editor import EditorService
from drivecore.errors import (
    HolderKind,
    LockConflict,
    NotFound,
    PermissionDenied,
    UpstreamError,
    ValidationError,
)
from drivecore.locks import LockManager
from drivecore.remote import InMemoryNodeStore, NodeStore


@pytest.fixture
def store():
    store = InMemoryNodeStore()
    store.create_user({"username": "alice"})
    store.create_user({"username": "bob"})
    return store


@pytest.fixture
def file_id(store):
    return store.create_node("alice", {"type": "file", "name": "notes.md", "text": "v0"}).id


@pytest.fixture
def editor(store):
    return EditorService(store, LockManager(timeout=300), DriveConfig())


class TestOpen:
    """Test starting edit sessions."""

    def test_open_acquires_lock(self, editor, file_id):
        """Test that opening returns the node with this session's lock."""
        node = editor.open("alice", "tabA", file_id, now=0)
        assert node.text == "v0"
        assert node.lock.is_held_by("alice", "tabA")

    def test_second_tab_conflicts(self, editor, file_id):
        """Test that a second tab of the same user is told about the first."""
        editor.open("alice", "tabA", file_id, now=0)

        with pytest.raises(LockConflict) as exc_info:
            editor.open("alice", "tabB", file_id, now=60)

        assert exc_info.value.kind is HolderKind.SELF_OTHER_TAB
        assert exc_info.value.remaining_seconds == 240
        assert "another tab" in str(exc_info.value)

    def test_stale_lock_reclaimed(self, editor, file_id):
        """Test that an abandoned session no longer blocks opening."""
        editor.open("alice", "tabA", file_id, now=0)
        node = editor.open("alice", "tabB", file_id, now=300)
        assert node.lock.client == "tabB"

    def test_directories_cannot_be_edited(self, editor, store):
        """Test that only files are editable."""
        directory = store.create_node("alice", {"type": "directory", "name": "d"})
        with pytest.raises(ValidationError, match="text files"):
            editor.open("alice", "tabA", directory.id)

    def test_missing_node(self, editor):
        """Test NotFound for unknown ids."""
        with pytest.raises(NotFound):
            editor.open("alice", "tabA", "ghost")


class TestAutosave:
    """Test lock-guarded writes."""

    def test_autosave_writes_and_refreshes(self, editor, store, file_id):
        """Test that content is written and the lock timestamp advances."""
        editor.open("alice", "tabA", file_id, now=0)

        saved = editor.autosave("alice", "tabA", file_id, text="v1", tags="Work, draft", now=100)

        assert saved.text == "v1"
        assert saved.tags == ["work", "draft"]
        assert saved.lock.acquired_at == 100
        assert store.get_node("alice", file_id).size == 2

    def test_autosave_conflict_does_not_write(self, editor, store, file_id):
        """Test that a save from a displaced session leaves content alone."""
        editor.open("alice", "tabA", file_id, now=0)
        editor.take_over("alice", "tabB", file_id, now=10)

        with pytest.raises(LockConflict):
            editor.autosave("alice", "tabA", file_id, text="stale", now=20)

        assert store.get_node("alice", file_id).text == "v0"

    def test_autosave_reclaims_expired_lock(self, editor, file_id):
        """Test that the next autosave after expiry re-takes the lock."""
        editor.open("alice", "tabA", file_id, now=0)
        saved = editor.autosave("alice", "tabA", file_id, text="late", now=301)
        assert saved.text == "late"
        assert saved.lock.acquired_at == 301

    def test_rename(self, editor, file_id):
        """Test that a non-blank new name is applied and stripped."""
        saved = editor.autosave("alice", "tabA", file_id, name="  renamed.md ", now=0)
        assert saved.name == "renamed.md"

    def test_blank_name_ignored(self, editor, file_id):
        """Test that a blank name keeps the current one."""
        saved = editor.autosave("alice", "tabA", file_id, name="   ", now=0)
        assert saved.name == "notes.md"

    def test_invalid_tags_rejected_before_locking(self, editor, file_id):
        """Test that validation fails without taking the lock."""
        with pytest.raises(ValidationError):
            editor.autosave("alice", "tabA", file_id, tags=["a", "b", "c", "d", "e", "f"])
        assert editor.locks.get(file_id) is None

    def test_text_limit(self, store, file_id):
        """Test the configured text limit."""
        editor = EditorService(store, config=DriveConfig(max_text_bytes=4))
        with pytest.raises(ValidationError):
            editor.autosave("alice", "tabA", file_id, text="12345", now=0)

    def test_other_user_cannot_save(self, editor, file_id):
        """Test that the store's ownership check stops other users."""
        with pytest.raises(UpstreamError) as exc_info:
            editor.autosave("bob", "tabC", file_id, text="x", now=0)
        assert exc_info.value.status_code == 403


class TestSessions:
    """Test polling, takeover and release."""

    def test_check_reports_takeover(self, editor, file_id):
        """Test that the displaced tab sees the new holder."""
        editor.open("alice", "tabA", file_id, now=0)
        editor.take_over("alice", "tabB", file_id, now=30)

        status = editor.check("alice", "tabA", file_id, now=40)

        assert status.conflict is True
        assert status.holder.client == "tabB"
        assert status.remaining_seconds == 290

    def test_check_own_lock(self, editor, file_id):
        """Test that the holder sees no conflict."""
        editor.open("alice", "tabA", file_id, now=0)
        assert editor.check("alice", "tabA", file_id, now=10).conflict is False

    def test_release_only_own_lock(self, editor, file_id):
        """Test that a late release from a displaced tab is a no-op."""
        editor.open("alice", "tabA", file_id, now=0)
        editor.take_over("alice", "tabB", file_id, now=10)

        assert editor.release("alice", "tabA", file_id) is False
        assert editor.locks.get(file_id, now=20).client == "tabB"
        assert editor.release("alice", "tabB", file_id) is True
        assert editor.locks.get(file_id, now=20) is None


class TestDelete:
    """Test deletion guarded by locks."""

    def test_delete_unlocked(self, editor, store, file_id):
        """Test deleting a file nobody edits."""
        editor.delete("alice", "tabA", file_id, now=0)
        assert len(store) == 0

    def test_delete_own_session(self, editor, store, file_id):
        """Test that the editing session may delete and its lock is dropped."""
        editor.open("alice", "tabA", file_id, now=0)
        editor.delete("alice", "tabA", file_id, now=5)
        assert len(store) == 0
        assert editor.locks.get(file_id, now=5) is None

    def test_delete_blocked_by_other_session(self, editor, store, file_id):
        """Test that a live lock from another tab blocks deletion."""
        editor.open("alice", "tabA", file_id, now=0)
        with pytest.raises(LockConflict):
            editor.delete("alice", "tabB", file_id, now=5)
        assert len(store) == 1

    def test_delete_other_users_node(self, store, file_id):
        """Test PermissionDenied when the node belongs to someone else."""
        shared = MagicMock(spec=NodeStore)
        shared.get_node.return_value = store.get_node("alice", file_id)

        with pytest.raises(PermissionDenied):
            EditorService(shared).delete("bob", "tabC", file_id)
        shared.delete_nodes.assert_not_called()

    def test_lock_cannot_be_taken_mid_delete(self, editor, store, file_id):
        """Test another tab cannot lock a node while it is being deleted."""
        delete_nodes = store.delete_nodes
        acquired = []
        seen_during_delete = []

        def other_tab():
            acquired.append(editor.locks.acquire(file_id, "alice", "tabB", now=10))

        racer = threading.Thread(target=other_tab)

        def slow_delete(username, node_ids):
            racer.start()
            racer.join(timeout=0.2)
            seen_during_delete.append(list(acquired))
            delete_nodes(username, node_ids)

        store.delete_nodes = slow_delete

        editor.delete("alice", "tabA", file_id, now=5)
        racer.join()

        assert seen_during_delete == [[]]
        assert len(store) == 0
        assert acquired[0].client == "tabB"
