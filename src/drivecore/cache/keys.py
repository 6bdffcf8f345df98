"""Cache key construction.

Keys have the form ``<namespace>:<username>:<rest>``. Username and id
segments are percent-encoded so a ``:`` inside them cannot shift segment
boundaries, and search queries are folded in as base64 of canonical JSON.
"""

import base64
import json
from typing import Any, Dict, Iterable
from urllib.parse import quote

USER_NAMESPACE = "user"
NODE_NAMESPACE = "node"
SEARCH_NAMESPACE = "search"

# Namespaces dropped together when a user's data changes
OWNER_SCOPED_NAMESPACES = (USER_NAMESPACE, NODE_NAMESPACE, SEARCH_NAMESPACE)


def _segment(value: Any) -> str:
    return quote(str(value), safe="")


def user_key(username: str, resource: str, params: str = "") -> str:
    """Key for user-scoped data such as the profile.

    Examples:
        >>> user_key("alice", "profile")
        'user:alice:profile:'
    """
    return f"{USER_NAMESPACE}:{_segment(username)}:{_segment(resource)}:{_segment(params)}"


def node_key(username: str, node_id: str) -> str:
    """Key for a single node.

    Examples:
        >>> node_key("alice", "n1")
        'node:alice:n1'
    """
    return f"{NODE_NAMESPACE}:{_segment(username)}:{_segment(node_id)}"


def search_key(username: str, query: Dict[str, Any]) -> str:
    """Key for a search or listing query.

    The query is serialized with sorted keys, so two dicts with the same
    content map to the same key regardless of insertion order.
    """
    canonical = json.dumps(query, sort_keys=True, separators=(",", ":"), default=str)
    encoded = base64.urlsafe_b64encode(canonical.encode("utf-8")).decode("ascii")
    return f"{SEARCH_NAMESPACE}:{_segment(username)}:{encoded}"


def namespace_prefixes(
    username: str, namespaces: Iterable[str] = OWNER_SCOPED_NAMESPACES
) -> tuple:
    """Prefixes covering every key owned by ``username``."""
    return tuple(f"{namespace}:{_segment(username)}:" for namespace in namespaces)
