"""Process-local stand-in for the remote store, used by tests and the CLI."""

import re
import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

from drivecore.errors import NotFound, UpstreamError
from drivecore.models import Node, NodeType
from drivecore.remote.base import NodeIds, NodeStore, as_id_list

_UPDATABLE_FIELDS = ("name", "text", "tags", "contents", "lock")


class InMemoryNodeStore(NodeStore):
    """Keeps users and nodes in dicts and enforces ownership like the API.

    Nodes are returned as fresh ``Node`` objects, so callers can mutate what
    they get back without touching the stored copy.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._users: Dict[str, Dict[str, Any]] = {}
        self._nodes: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_nodes(cls, nodes: Iterable[Node]) -> "InMemoryNodeStore":
        """Build a store pre-loaded with ``nodes`` (owners become users)."""
        store = cls()
        for node in nodes:
            store._users.setdefault(node.owner, {"username": node.owner})
            store._nodes[node.id] = node.to_dict()
        return store

    # Users

    def create_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        username = user_data.get("username")
        if not username:
            raise UpstreamError(400, "username is required")
        with self._lock:
            if username in self._users:
                raise UpstreamError(400, "Username already exists")
            user = dict(user_data, createdAt=self._clock())
            self._users[username] = user
        return {"username": username, "email": user.get("email")}

    def get_user(self, username: str) -> Dict[str, Any]:
        with self._lock:
            user = self._users.get(username)
            if user is None:
                raise NotFound("user", username)
            return {k: v for k, v in user.items() if k != "key"}

    def update_user(self, username: str, user_data: Dict[str, Any]) -> None:
        with self._lock:
            if username not in self._users:
                raise NotFound("user", username)
            self._users[username].update(user_data)

    def delete_user(self, username: str) -> None:
        with self._lock:
            if self._users.pop(username, None) is None:
                raise NotFound("user", username)
            for node_id in [i for i, n in self._nodes.items() if n["owner"] == username]:
                del self._nodes[node_id]

    def authenticate_user(self, username: str, key: str) -> bool:
        with self._lock:
            user = self._users.get(username)
            return user is not None and user.get("key") == key

    # Nodes

    def _owned(self, username: str, node_id: str) -> Dict[str, Any]:
        data = self._nodes.get(node_id)
        if data is None:
            raise NotFound("node", node_id)
        if data["owner"] != username:
            raise UpstreamError(403, f"{username} does not own node {node_id}")
        return data

    def search_nodes(
        self,
        username: str,
        after: Optional[str] = None,
        match: Optional[Dict[str, Any]] = None,
        regex_match: Optional[Dict[str, str]] = None,
    ) -> List[Node]:
        with self._lock:
            owned = [data for data in self._nodes.values() if data["owner"] == username]

        if after:
            ids = [data["node_id"] for data in owned]
            owned = owned[ids.index(after) + 1 :] if after in ids else []
        if match:
            owned = [
                data
                for data in owned
                if all(data.get(field) == value for field, value in match.items())
            ]
        if regex_match:
            patterns = {field: re.compile(p) for field, p in regex_match.items()}
            owned = [
                data
                for data in owned
                if all(
                    isinstance(data.get(field), str) and pattern.search(data[field])
                    for field, pattern in patterns.items()
                )
            ]
        return [Node.from_dict(data) for data in owned]

    def create_node(self, username: str, node_data: Dict[str, Any]) -> Node:
        now = self._clock()
        node = Node.from_dict(
            dict(
                node_data,
                node_id=uuid.uuid4().hex,
                owner=username,
                createdAt=now,
                modifiedAt=now,
            )
        )
        if node.is_file:
            node.size = len(node.text.encode("utf-8"))
        with self._lock:
            if username not in self._users:
                raise NotFound("user", username)
            self._nodes[node.id] = node.to_dict()
        return Node.from_dict(node.to_dict())

    def get_nodes(self, username: str, node_ids: NodeIds) -> List[Node]:
        with self._lock:
            return [Node.from_dict(self._owned(username, i)) for i in as_id_list(node_ids)]

    def update_node(self, username: str, node_id: str, node_data: Dict[str, Any]) -> None:
        with self._lock:
            data = self._owned(username, node_id)
            for field in _UPDATABLE_FIELDS:
                if field in node_data:
                    data[field] = node_data[field]
            if data["type"] == NodeType.FILE.value:
                data["size"] = len((data.get("text") or "").encode("utf-8"))
            data["modifiedAt"] = self._clock()

    def delete_nodes(self, username: str, node_ids: NodeIds) -> None:
        ids = as_id_list(node_ids)
        with self._lock:
            for node_id in ids:
                self._owned(username, node_id)
            for node_id in ids:
                del self._nodes[node_id]

    def __len__(self) -> int:
        return len(self._nodes)
