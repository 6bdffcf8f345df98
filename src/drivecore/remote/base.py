"""Interface of the remote node/user store."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from drivecore.errors import NotFound
from drivecore.models import Node

NodeIds = Union[str, Sequence[str]]


class NodeStore(ABC):
    """Authoritative store for users and nodes.

    Implementations raise ``NotFound`` for missing users or nodes,
    ``UpstreamError`` for rejected requests and ``UpstreamUnavailable``
    when the store cannot be reached.

    Examples:
        Wrap any store with the cache:
        >>> store = CachedNodeStore(HttpNodeStore(config), CacheManager(config))
        >>> store.get_node("alice", "n1")
    """

    # Users

    @abstractmethod
    def create_user(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    def get_user(self, username: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def update_user(self, username: str, user_data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_user(self, username: str) -> None:
        pass

    @abstractmethod
    def authenticate_user(self, username: str, key: str) -> bool:
        pass

    # Nodes

    @abstractmethod
    def search_nodes(
        self,
        username: str,
        after: Optional[str] = None,
        match: Optional[Dict[str, Any]] = None,
        regex_match: Optional[Dict[str, str]] = None,
    ) -> List[Node]:
        """List a user's nodes, optionally filtered.

        Args:
            username: Owner whose nodes are searched
            after: Only return nodes after this node id (pagination cursor)
            match: Field/value pairs that must be equal
            regex_match: Field/pattern pairs that must match
        """
        pass

    @abstractmethod
    def create_node(self, username: str, node_data: Dict[str, Any]) -> Node:
        pass

    @abstractmethod
    def get_nodes(self, username: str, node_ids: NodeIds) -> List[Node]:
        pass

    @abstractmethod
    def update_node(self, username: str, node_id: str, node_data: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def delete_nodes(self, username: str, node_ids: NodeIds) -> None:
        pass

    def get_node(self, username: str, node_id: str) -> Node:
        """Fetch one node.

        Raises:
            NotFound: If the store returns nothing for ``node_id``
        """
        nodes = self.get_nodes(username, node_id)
        if not nodes:
            raise NotFound("node", node_id)
        return nodes[0]


def as_id_list(node_ids: NodeIds) -> List[str]:
    if isinstance(node_ids, str):
        return [node_ids]
    return list(node_ids)
