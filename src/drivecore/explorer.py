"""Directory listings for the file explorer."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from drivecore.cache.keys import search_key
from drivecore.cache.manager import CacheManager
from drivecore.config import DriveConfig
from drivecore.errors import NotFound, ValidationError
from drivecore.models import Node, format_file_size
from drivecore.remote.base import NodeStore
from drivecore.tree import (
    DEFAULT_PAGE_SIZE,
    Crumb,
    Page,
    breadcrumb,
    children_of,
    is_broken,
    paginate,
    parse_page_params,
    root_nodes,
    sort_nodes,
)

logger = logging.getLogger(__name__)


@dataclass
class Entry:
    """One row of a listing."""

    node: Node
    broken: bool = False

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.node.size) if self.node.size else "-"


@dataclass
class Listing:
    """A page of entries from the root or from one directory."""

    entries: List[Entry]
    page: Page
    directory: Optional[Node] = None
    crumbs: List[Crumb] = field(default_factory=list)


class ExplorerService:
    """Builds root and directory listings from a user's flat node list.

    Sorted listings are cached under a search key for ``listing_ttl``
    seconds, so they are dropped with the rest of the user's namespace
    whenever one of their nodes changes.
    """

    def __init__(
        self,
        store: NodeStore,
        cache: Optional[CacheManager] = None,
        config: Optional[DriveConfig] = None,
    ):
        self.store = store
        self.config = config or DriveConfig()
        self.cache = cache

    def list(
        self,
        username: str,
        directory_id: Optional[str] = None,
        path: str = "",
        sort: str = "name",
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Listing:
        """List the root or one directory of ``username``'s tree.

        Args:
            username: Owner of the listing
            directory_id: Directory to list (root if None)
            path: Display path of the directory, used for the breadcrumb
            sort: Sort key (see ``tree.sort_nodes``)
            page: 1-based page number (clamped to at least 1)
            limit: Entries per page (clamped to 1..100, default if 0)

        Raises:
            NotFound: If ``directory_id`` does not exist
            ValidationError: If ``directory_id`` is not a directory
        """
        paging = parse_page_params({"page": page, "limit": limit})
        key = search_key(username, {"view": "explorer", "dir": directory_id, "sort": sort})
        cached = self._cached(key)
        if cached is None:
            cached = self._build(username, directory_id, sort)
            self._store(key, cached)

        directory = Node.from_dict(cached["directory"]) if cached["directory"] else None
        entries = [
            Entry(node=Node.from_dict(row["node"]), broken=row["broken"])
            for row in cached["entries"]
        ]
        return Listing(
            entries=entries,
            page=paginate(entries, paging["page"], paging["limit"]),
            directory=directory,
            crumbs=breadcrumb(path) if directory is not None else [],
        )

    def _build(self, username: str, directory_id: Optional[str], sort: str) -> Dict[str, Any]:
        all_nodes = self.store.search_nodes(username)

        directory = None
        if directory_id:
            directory = next((n for n in all_nodes if n.id == directory_id), None)
            if directory is None:
                raise NotFound("directory", directory_id)
            if not directory.is_directory:
                raise ValidationError(f"Not a directory: {directory_id}")
            visible = children_of(directory, all_nodes)
        else:
            visible = root_nodes(all_nodes)

        rows = [
            {
                "node": node.to_dict(),
                "broken": node.is_symlink and is_broken(node, all_nodes, username),
            }
            for node in sort_nodes(visible, sort)
        ]
        return {"entries": rows, "directory": directory.to_dict() if directory else None}

    def broken_links(self, username: str) -> List[Node]:
        """All of ``username``'s symlinks that fail the single-hop check."""
        all_nodes = self.store.search_nodes(username)
        return [
            node
            for node in all_nodes
            if node.is_symlink and is_broken(node, all_nodes, username)
        ]

    def _cached(self, key: str) -> Optional[Dict[str, Any]]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning(f"Listing cache read failed, rebuilding: {e}")
            return None

    def _store(self, key: str, value: Dict[str, Any]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, value, self.config.listing_ttl)
        except Exception as e:
            logger.warning(f"Listing cache write failed: {e}")
