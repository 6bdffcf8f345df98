"""drivecore: edit locks, read caching and tree views over a remote node store."""

__version__ = "0.1.0"

from drivecore.cache import CacheManager
from drivecore.config import DriveConfig
from drivecore.editor import EditorService
from drivecore.errors import (
    DriveError,
    HolderKind,
    LockConflict,
    NotFound,
    UpstreamError,
    UpstreamUnavailable,
)
from drivecore.explorer import ExplorerService
from drivecore.locks import LockManager
from drivecore.models import Lock, Node, NodeType

__all__ = [
    "CacheManager",
    "DriveConfig",
    "DriveError",
    "EditorService",
    "ExplorerService",
    "HolderKind",
    "Lock",
    "LockConflict",
    "LockManager",
    "Node",
    "NodeType",
    "NotFound",
    "UpstreamError",
    "UpstreamUnavailable",
    "__version__",
]
