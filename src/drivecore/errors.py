"""Error types raised by drivecore.

LockConflict, NotFound and PermissionDenied are meant to be shown to the
user. UpstreamUnavailable is only raised after the retry budget of the remote
store client is exhausted. CacheMiss never leaves the cache layer's callers.
"""

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from drivecore.models import Lock


class HolderKind(str, Enum):
    """Who holds a conflicting lock, relative to the caller."""

    SELF_OTHER_TAB = "self-other-tab"
    OTHER_USER = "other-user"


class DriveError(Exception):
    """Base exception for drivecore errors."""

    pass


class LockConflict(DriveError):
    """Raised when another session holds a live lock on a node."""

    def __init__(
        self,
        node_id: str,
        remaining_seconds: int,
        holder: "Lock",
        kind: HolderKind,
    ):
        self.node_id = node_id
        self.remaining_seconds = remaining_seconds
        self.holder = holder
        self.kind = kind
        if kind is HolderKind.SELF_OTHER_TAB:
            who = "You are editing this file in another tab or browser"
        else:
            who = f"This file is being edited by {holder.owner}"
        super().__init__(
            f"{who}. The lock expires in {remaining_seconds} seconds."
        )


class NotFound(DriveError):
    """Raised when a node or user does not exist."""

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind.capitalize()} not found: {identifier}")


class UpstreamUnavailable(DriveError):
    """Raised when the remote store keeps failing transiently."""

    def __init__(self, attempts: int, last_error: Optional[str] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Service temporarily unavailable after {attempts} attempts, "
            f"please try again ({last_error})"
        )


class UpstreamError(DriveError):
    """Raised when the remote store rejects a request."""

    def __init__(self, status_code: Optional[int], message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"API Error ({status_code}): {message}")


class ValidationError(DriveError, ValueError):
    """Raised when node fields fail validation before a write."""

    pass


class PermissionDenied(DriveError):
    """Raised when a user acts on a node they do not own."""

    pass


class CacheMiss(DriveError, KeyError):
    """Internal signal that a key is absent or expired."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(key)
