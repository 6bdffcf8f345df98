"""Tree views derived from a flat, owner-scoped node list.

The remote store has no parent pointers: a node's parent is whichever
directory lists its id in ``contents``. Everything here is a pure function of
the node list passed in.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from drivecore.models import Node

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

SORT_KEYS = ("name", "createdAt", "modifiedAt", "size")


@dataclass(frozen=True)
class Crumb:
    """One breadcrumb segment: the component name and its path prefix."""

    name: str
    path: str


@dataclass(frozen=True)
class Page:
    """A slice of a listing plus its pagination metadata."""

    items: List[Any]
    page: int
    limit: int
    total_items: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def start_item(self) -> int:
        return (self.page - 1) * self.limit + 1 if self.total_items > 0 else 0

    @property
    def end_item(self) -> int:
        return min(self.page * self.limit, self.total_items)


def contained_ids(nodes: Iterable[Node]) -> Set[str]:
    """Ids referenced by any directory's contents."""
    ids: Set[str] = set()
    for node in nodes:
        if node.is_directory:
            ids.update(node.contents)
    return ids


def root_nodes(nodes: Sequence[Node]) -> List[Node]:
    """Nodes that no directory lists, in input order.

    A node listed by a directory is excluded even if that directory is
    itself nested. For ``[D(contents=[n2, n3]), n2, n3, n4]`` the roots are
    ``[D, n4]``.
    """
    contained = contained_ids(nodes)
    return [node for node in nodes if node.id not in contained]


def children_of(directory: Node, nodes: Sequence[Node]) -> List[Node]:
    """Nodes listed by ``directory``, in ``contents`` order.

    Ids without a matching node are skipped.
    """
    by_id = {node.id: node for node in nodes}
    return [by_id[node_id] for node_id in directory.contents if node_id in by_id]


def parents_of(node_id: str, nodes: Iterable[Node]) -> List[Node]:
    """Directories whose contents list ``node_id``.

    More than one result means the node is shared between directories.
    """
    return [node for node in nodes if node.is_directory and node_id in node.contents]


def breadcrumb(path: str) -> List[Crumb]:
    """Split a ``/``-delimited path into successive prefixes.

    Examples:
        >>> breadcrumb("/docs//work/")
        [Crumb(name='docs', path='docs'), Crumb(name='work', path='docs/work')]
    """
    crumbs = []
    parts = [part for part in (path or "").split("/") if part]
    for index, part in enumerate(parts):
        crumbs.append(Crumb(name=part, path="/".join(parts[: index + 1])))
    return crumbs


def is_broken(symlink: Node, nodes: Iterable[Node], owning_user: str) -> bool:
    """Check a symlink's single target.

    Broken when it points nowhere, points at itself, points at a missing
    node, or points at a node owned by someone else. Only one hop is
    evaluated: a link to a valid link is not broken.
    """
    if not symlink.contents:
        return True

    target_id = symlink.contents[0]
    if target_id == symlink.id:
        return True

    target = next((node for node in nodes if node.id == target_id), None)
    if target is None:
        return True

    return target.owner != owning_user


def resolve_symlink(symlink: Node, nodes: Iterable[Node], owning_user: str) -> Optional[Node]:
    """Return the symlink's target node, or None if the link is broken."""
    nodes = list(nodes)
    if is_broken(symlink, nodes, owning_user):
        return None
    target_id = symlink.contents[0]
    return next(node for node in nodes if node.id == target_id)


def sort_nodes(nodes: Iterable[Node], sort_by: str = "name") -> List[Node]:
    """Sort for display.

    ``name`` sorts ascending, case-insensitively. ``createdAt``,
    ``modifiedAt`` and ``size`` sort newest/largest first. Unknown keys
    fall back to ``name``.
    """
    nodes = list(nodes)
    if sort_by == "createdAt":
        return sorted(nodes, key=lambda n: _timestamp(n.created_at), reverse=True)
    if sort_by == "modifiedAt":
        return sorted(nodes, key=lambda n: _timestamp(n.modified_at), reverse=True)
    if sort_by == "size":
        return sorted(nodes, key=lambda n: n.size or 0, reverse=True)
    return sorted(nodes, key=lambda n: (n.name.casefold(), n.name))


def _timestamp(value: Any) -> float:
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    # ISO strings from the store
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def parse_page_params(query: Dict[str, Any]) -> Dict[str, int]:
    """Clamp ``page`` and ``limit`` request parameters.

    Page is at least 1, limit is between 1 and ``MAX_PAGE_SIZE`` and
    defaults to ``DEFAULT_PAGE_SIZE`` when missing or unparseable.

    Returns:
        Dict with ``page``, ``limit`` and ``offset``
    """
    page = max(1, _to_int(query.get("page"), 1))
    limit = min(MAX_PAGE_SIZE, max(1, _to_int(query.get("limit"), DEFAULT_PAGE_SIZE)))
    return {"page": page, "limit": limit, "offset": (page - 1) * limit}


def _to_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed or default


def paginate(items: Sequence[Any], page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Page:
    """Slice ``items`` for one page."""
    start = (page - 1) * limit
    total_pages = math.ceil(len(items) / limit) if limit else 0
    return Page(
        items=list(items[start : start + limit]),
        page=page,
        limit=limit,
        total_items=len(items),
        total_pages=total_pages,
    )
