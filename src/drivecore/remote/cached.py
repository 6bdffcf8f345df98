"""Read-through caching in front of a ``NodeStore``."""

import logging
from typing import Any, Callable, Dict, List, Optional

from drivecore.cache.keys import node_key, search_key, user_key
from drivecore.cache.manager import CacheManager
from drivecore.errors import UpstreamUnavailable
from drivecore.models import Node
from drivecore.remote.base import NodeIds, NodeStore, as_id_list

logger = logging.getLogger(__name__)

_MISSING = object()


class CachedNodeStore(NodeStore):
    """Serve reads from the cache and invalidate a user's entries on writes.

    Values are cached as plain dicts and rebuilt into ``Node`` objects on
    every read, so callers never share mutable state with the cache.

    A failing cache is logged and bypassed: reads go to the wrapped store and
    writes still succeed.
    """

    def __init__(self, store: NodeStore, cache: CacheManager, ttl: Optional[float] = None):
        """Initialize the caching wrapper.

        Args:
            store: Store of truth
            cache: Cache to read through
            ttl: TTL for cached reads (cache default if None)
        """
        self.store = store
        self.cache = cache
        self.ttl = ttl

    def _cache_get(self, key: str) -> Any:
        try:
            return self.cache.get(key, _MISSING)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}, using remote store: {e}")
            return _MISSING

    def _cache_set(self, key: str, value: Any) -> None:
        try:
            self.cache.set(key, value, self.ttl)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    def _invalidate(self, username: str) -> None:
        try:
            self.cache.invalidate_namespace(username)
        except Exception as e:
            logger.warning(f"Cache invalidation failed for {username}: {e}")

    def _write(self, username: str, operation: Callable[[], Any]) -> Any:
        """Run a write, then drop the user's cached entries.

        Entries are also dropped when the store stayed unavailable, since the
        write may have been applied.
        """
        try:
            result = operation()
        except UpstreamUnavailable:
            self._invalidate(username)
            raise
        self._invalidate(username)
        return result

    # Users

    def create_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        username = user_data.get("username", "")
        return self._write(username, lambda: self.store.create_user(user_data))

    def get_user(self, username: str) -> Dict[str, Any]:
        key = user_key(username, "profile")
        cached = self._cache_get(key)
        if cached is not _MISSING:
            return dict(cached)
        user = self.store.get_user(username)
        self._cache_set(key, dict(user))
        return user

    def update_user(self, username: str, user_data: Dict[str, Any]) -> None:
        self._write(username, lambda: self.store.update_user(username, user_data))

    def delete_user(self, username: str) -> None:
        self._write(username, lambda: self.store.delete_user(username))

    def authenticate_user(self, username: str, key: str) -> bool:
        return self.store.authenticate_user(username, key)

    # Nodes

    def search_nodes(
        self,
        username: str,
        after: Optional[str] = None,
        match: Optional[Dict[str, Any]] = None,
        regex_match: Optional[Dict[str, str]] = None,
    ) -> List[Node]:
        key = search_key(
            username, {"after": after, "match": match, "regexMatch": regex_match}
        )
        cached = self._cache_get(key)
        if cached is not _MISSING:
            return [Node.from_dict(data) for data in cached]
        nodes = self.store.search_nodes(
            username, after=after, match=match, regex_match=regex_match
        )
        self._cache_set(key, [node.to_dict() for node in nodes])
        return nodes

    def get_nodes(self, username: str, node_ids: NodeIds) -> List[Node]:
        ids = as_id_list(node_ids)
        found: Dict[str, Node] = {}
        missing = []
        for node_id in ids:
            cached = self._cache_get(node_key(username, node_id))
            if cached is _MISSING:
                missing.append(node_id)
            else:
                found[node_id] = Node.from_dict(cached)

        if missing:
            for node in self.store.get_nodes(username, missing):
                self._cache_set(node_key(username, node.id), node.to_dict())
                found[node.id] = node

        return [found[node_id] for node_id in ids if node_id in found]

    def create_node(self, username: str, node_data: Dict[str, Any]) -> Node:
        return self._write(username, lambda: self.store.create_node(username, node_data))

    def update_node(self, username: str, node_id: str, node_data: Dict[str, Any]) -> None:
        self._write(username, lambda: self.store.update_node(username, node_id, node_data))

    def delete_nodes(self, username: str, node_ids: NodeIds) -> None:
        self._write(username, lambda: self.store.delete_nodes(username, node_ids))
