"""Node and lock models shared by the lock, cache and tree layers."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from drivecore.errors import ValidationError

MAX_TAGS = 5
MAX_TEXT_BYTES = 10 * 1024  # 10 KiB

_TAG_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")


class NodeType(str, Enum):
    """Kinds of node stored by the remote store."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class Lock:
    """Advisory edit lock held by one (owner, client) session.

    Attributes:
        owner: Username holding the lock
        client: Session-scoped client id (one per browser tab)
        acquired_at: Epoch seconds of acquisition or last refresh
    """

    owner: str
    client: str
    acquired_at: float

    def is_held_by(self, owner: str, client: str) -> bool:
        return self.owner == owner and self.client == client

    def age(self, now: float) -> float:
        return now - self.acquired_at

    def to_dict(self) -> Dict[str, Any]:
        return {"user": self.owner, "client": self.client, "createdAt": self.acquired_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Lock":
        return cls(
            owner=data.get("owner", data.get("user")),
            client=data["client"],
            acquired_at=float(data.get("acquired_at", data.get("createdAt", 0))),
        )


@dataclass
class Node:
    """A file, directory or symlink as returned by the remote store.

    ``contents`` lists child ids for a directory and holds at most one target
    id for a symlink. For files the text body lives in ``text``.
    """

    id: str
    type: NodeType
    owner: str
    name: str = ""
    tags: List[str] = field(default_factory=list)
    text: str = ""
    contents: List[str] = field(default_factory=list)
    size: int = 0
    created_at: Any = None
    modified_at: Any = None
    lock: Optional[Lock] = None

    @property
    def is_file(self) -> bool:
        return self.type is NodeType.FILE

    @property
    def is_directory(self) -> bool:
        return self.type is NodeType.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.type is NodeType.SYMLINK

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        """Build a node from the remote store's JSON form.

        Accepts both ``id`` and ``node_id`` and both camelCase and snake_case
        timestamp keys.
        """
        node_type = NodeType(data["type"])
        contents = data.get("contents")
        text = data.get("text", "")
        # Older file nodes keep their body in ``contents``
        if node_type is NodeType.FILE and isinstance(contents, str):
            text = text or contents
            contents = []
        lock = data.get("lock")
        return cls(
            id=data.get("node_id", data.get("id")),
            type=node_type,
            owner=data.get("owner", ""),
            name=data.get("name", ""),
            tags=list(data.get("tags") or []),
            text=text or "",
            contents=list(contents or []),
            size=data.get("size") or 0,
            created_at=data.get("createdAt", data.get("created_at")),
            modified_at=data.get("modifiedAt", data.get("modified_at")),
            lock=Lock.from_dict(lock) if lock else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "node_id": self.id,
            "type": self.type.value,
            "owner": self.owner,
            "name": self.name,
            "tags": list(self.tags),
            "size": self.size,
            "createdAt": self.created_at,
            "modifiedAt": self.modified_at,
            "lock": self.lock.to_dict() if self.lock else None,
        }
        if self.is_file:
            data["text"] = self.text
        else:
            data["contents"] = list(self.contents)
        return data


def validate_tags(tags: Any, max_tags: int = MAX_TAGS) -> List[str]:
    """Validate a tag list and return it lower-cased.

    Args:
        tags: List of tag strings
        max_tags: Maximum number of tags allowed

    Returns:
        Lower-cased tags

    Raises:
        ValidationError: If tags is not a list, has too many entries, or
            contains a non-alphanumeric word

    Examples:
        >>> validate_tags(["Work", "draft2"])
        ['work', 'draft2']
    """
    if not isinstance(tags, (list, tuple)):
        raise ValidationError("Tags must be an array")
    if len(tags) > max_tags:
        raise ValidationError(f"Maximum of {max_tags} tags allowed")
    for tag in tags:
        if not isinstance(tag, str) or not _TAG_PATTERN.match(tag):
            raise ValidationError("Tags must be alphanumeric words")
    return [tag.lower() for tag in tags]


def parse_tags(raw: Optional[str]) -> List[str]:
    """Split a comma-separated tag field, dropping blanks."""
    if not raw:
        return []
    return [tag.strip() for tag in raw.split(",") if tag.strip()]


def validate_text(text: Any, max_bytes: int = MAX_TEXT_BYTES) -> str:
    """Check that file text is a string within the size bound.

    Raises:
        ValidationError: If text is not a string or too large
    """
    if not isinstance(text, str):
        raise ValidationError("Text content must be a string")
    if len(text.encode("utf-8")) > max_bytes:
        raise ValidationError(
            f"File content exceeds maximum size of {format_file_size(max_bytes)}"
        )
    return text


def format_file_size(num_bytes: int) -> str:
    """Format a byte count for display.

    Examples:
        >>> format_file_size(0)
        '0 B'
        >>> format_file_size(1536)
        '1.5 KB'
    """
    if not num_bytes:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    exponent = 0
    while num_bytes >= 1024 ** (exponent + 1) and exponent < len(units) - 1:
        exponent += 1
    value = round(num_bytes / (1024**exponent), 2)
    if value == int(value):
        value = int(value)
    return f"{value} {units[exponent]}"
