"""Editor session operations: open, autosave, conflict polling, takeover, release."""

import logging
from typing import Any, Dict, List, Optional, Union

from drivecore.config import DriveConfig
from drivecore.errors import PermissionDenied, ValidationError
from drivecore.locks import LockManager, LockStatus
from drivecore.models import Node, parse_tags, validate_tags, validate_text
from drivecore.remote.base import NodeStore

logger = logging.getLogger(__name__)


class EditorService:
    """Ties the lock manager to remote store reads and writes.

    Every method takes the acting ``username`` and the session's ``client``
    id. Nodes returned carry their live lock in ``node.lock``.

    Examples:
        >>> editor = EditorService(store, LockManager())
        >>> node = editor.open("alice", "tabA", "n1")
        >>> editor.autosave("alice", "tabA", "n1", text="hello")
        >>> editor.release("alice", "tabA", "n1")
    """

    def __init__(
        self,
        store: NodeStore,
        locks: Optional[LockManager] = None,
        config: Optional[DriveConfig] = None,
    ):
        self.store = store
        self.config = config or DriveConfig()
        self.locks = locks or LockManager(timeout=self.config.lock_timeout)

    def _owned_file(self, username: str, node_id: str) -> Node:
        node = self.store.get_node(username, node_id)
        if not node.is_file:
            raise ValidationError("Can only edit text files")
        if node.owner != username:
            raise PermissionDenied("You can only edit files you own")
        return node

    def open(self, username: str, client: str, node_id: str, now: Optional[float] = None) -> Node:
        """Start (or resume) an edit session on a file.

        Raises:
            NotFound: If the node does not exist
            ValidationError: If the node is not a file
            PermissionDenied: If ``username`` does not own it
            LockConflict: If another session is editing it
        """
        node = self._owned_file(username, node_id)
        node.lock = self.locks.acquire(node_id, username, client, now)
        return node

    def autosave(
        self,
        username: str,
        client: str,
        node_id: str,
        text: Optional[str] = None,
        tags: Union[str, List[str], None] = None,
        name: Optional[str] = None,
        now: Optional[float] = None,
    ) -> Node:
        """Save editor content while holding the lock.

        A stale or missing lock is reclaimed for this session. When another
        session holds a live lock nothing is written.

        Args:
            text: New file text
            tags: Tag list, or a comma-separated string
            name: New name (ignored if blank or unchanged)

        Returns:
            The node as stored after the write

        Raises:
            LockConflict: If another session holds a live lock
            ValidationError: If text or tags are invalid
        """
        node = self._owned_file(username, node_id)

        changes: Dict[str, Any] = {}
        if text is not None:
            changes["text"] = validate_text(text, self.config.max_text_bytes)
        if tags is not None:
            if isinstance(tags, str):
                tags = parse_tags(tags)
            changes["tags"] = validate_tags(tags, self.config.max_tags)
        if name is not None and name.strip() and name.strip() != node.name:
            changes["name"] = name.strip()

        def write():
            if changes:
                self.store.update_node(username, node_id, changes)

        lock = self.locks.autosave(node_id, username, client, write=write, now=now)
        logger.debug(f"Autosaved {node_id} for {username}/{client}: {sorted(changes)}")

        saved = self.store.get_node(username, node_id)
        saved.lock = lock
        return saved

    def check(
        self, username: str, client: str, node_id: str, now: Optional[float] = None
    ) -> LockStatus:
        """Poll whether another session has taken the file."""
        return self.locks.check_conflict(node_id, username, client, now)

    def take_over(
        self, username: str, client: str, node_id: str, now: Optional[float] = None
    ) -> Node:
        """Force this session to hold the lock, for the file's owner only."""
        node = self._owned_file(username, node_id)
        node.lock = self.locks.force_acquire(node_id, username, client, now)
        return node

    def release(self, username: str, client: str, node_id: str) -> bool:
        """End this session's edit. Another session's lock is left alone."""
        return self.locks.release(node_id, username, client)

    def delete(
        self, username: str, client: str, node_id: str, now: Optional[float] = None
    ) -> None:
        """Delete a node the user owns unless another session is editing it.

        Raises:
            PermissionDenied: If ``username`` does not own the node
            LockConflict: If another session holds a live lock
        """
        node = self.store.get_node(username, node_id)
        if node.owner != username:
            raise PermissionDenied("You can only delete files you own")

        self.locks.remove(
            node_id,
            username,
            client,
            delete=lambda: self.store.delete_nodes(username, node_id),
            now=now,
        )
