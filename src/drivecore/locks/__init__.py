"""Advisory edit locks for file nodes.

Key components:
- LockManager: acquire / force_acquire / check_conflict / release / autosave
- LockStore: Injectable lock table interface
- InMemoryLockStore: Process-local lock table with striped mutexes
"""

from drivecore.locks.manager import DEFAULT_LOCK_TIMEOUT, LockManager, LockStatus
from drivecore.locks.store import InMemoryLockStore, LockStore

__all__ = [
    "LockManager",
    "LockStatus",
    "LockStore",
    "InMemoryLockStore",
    "DEFAULT_LOCK_TIMEOUT",
]
