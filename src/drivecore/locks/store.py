"""Storage for the lock table.

The lock manager only needs a narrow interface: read, write and delete one
node's lock, and obtain the mutex that serializes work on that node. Replacing
``InMemoryLockStore`` with a shared backend is how multiple instances would
coordinate.
"""

import threading
from abc import ABC, abstractmethod
from typing import ContextManager, Dict, Iterator, Optional, Tuple

from drivecore.models import Lock

DEFAULT_STRIPES = 64


class LockStore(ABC):
    """Abstract lock table keyed by node id."""

    @abstractmethod
    def get(self, node_id: str) -> Optional[Lock]:
        """Return the stored lock, expired or not."""
        pass

    @abstractmethod
    def set(self, node_id: str, lock: Lock) -> None:
        pass

    @abstractmethod
    def delete(self, node_id: str) -> None:
        """Remove the stored lock. Absent ids are ignored."""
        pass

    @abstractmethod
    def items(self) -> Iterator[Tuple[str, Lock]]:
        pass

    @abstractmethod
    def key_lock(self, node_id: str) -> ContextManager:
        """Mutex held while reading and updating one node's lock."""
        pass


class InMemoryLockStore(LockStore):
    """Process-local lock table.

    Node ids share a fixed pool of striped mutexes, so memory stays bounded
    no matter how many ids are touched. Two ids on the same stripe serialize
    each other but never deadlock, since no operation holds two node mutexes.
    """

    def __init__(self, stripes: int = DEFAULT_STRIPES):
        if stripes < 1:
            raise ValueError("At least one mutex stripe is required")
        self._locks: Dict[str, Lock] = {}
        self._stripes = tuple(threading.RLock() for _ in range(stripes))

    def get(self, node_id: str) -> Optional[Lock]:
        return self._locks.get(node_id)

    def set(self, node_id: str, lock: Lock) -> None:
        self._locks[node_id] = lock

    def delete(self, node_id: str) -> None:
        self._locks.pop(node_id, None)

    def items(self) -> Iterator[Tuple[str, Lock]]:
        # Snapshot so callers may delete while iterating
        return iter(list(self._locks.items()))

    def key_lock(self, node_id: str) -> ContextManager:
        return self._stripes[hash(node_id) % len(self._stripes)]

    @property
    def stripes(self) -> int:
        return len(self._stripes)

    def __len__(self) -> int:
        return len(self._locks)
