"""Advisory edit locks with expiry and forced takeover."""

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from drivecore.errors import HolderKind, LockConflict
from drivecore.locks.store import InMemoryLockStore, LockStore
from drivecore.models import Lock, Node

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 300  # 5 minutes


@dataclass(frozen=True)
class LockStatus:
    """Result of a read-only conflict check.

    Attributes:
        conflict: True if another session holds a live lock
        holder: The live lock, if any (may be the caller's own)
        kind: Holder classification when conflict is True
        remaining_seconds: Seconds until the live lock expires (0 if none)
    """

    conflict: bool
    holder: Optional[Lock] = None
    kind: Optional[HolderKind] = None
    remaining_seconds: int = 0


class LockManager:
    """Per-node advisory locks for editor sessions.

    A node is either unlocked or locked by one (owner, client) pair. A lock
    older than ``timeout`` seconds counts as abandoned: it is ignored by
    checks and silently replaced by the next acquire. Nothing runs in the
    background; staleness is only evaluated when someone touches the node.

    Every operation reads and updates a node's lock while holding that
    node's mutex from the store, so two concurrent acquires on the same node
    cannot both win.

    Examples:
        >>> locks = LockManager(timeout=300)
        >>> locks.acquire("n1", "alice", "tabA", now=0)
        Lock(owner='alice', client='tabA', acquired_at=0)
        >>> locks.check_conflict("n1", "alice", "tabB", now=60).remaining_seconds
        240
    """

    def __init__(
        self,
        store: Optional[LockStore] = None,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        if timeout <= 0:
            raise ValueError("Lock timeout must be positive")
        self.store = store if store is not None else InMemoryLockStore()
        self.timeout = timeout
        self._clock = clock

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def is_expired(self, lock: Lock, now: float) -> bool:
        return lock.age(now) >= self.timeout

    def remaining(self, lock: Lock, now: float) -> int:
        """Whole seconds (rounded up) until ``lock`` expires."""
        return max(0, math.ceil(self.timeout - lock.age(now)))

    @staticmethod
    def classify(holder: Lock, owner: str) -> HolderKind:
        if holder.owner == owner:
            return HolderKind.SELF_OTHER_TAB
        return HolderKind.OTHER_USER

    def _live(self, node_id: str, now: float) -> Optional[Lock]:
        current = self.store.get(node_id)
        if current is None or self.is_expired(current, now):
            return None
        return current

    def _conflict(self, node_id: str, holder: Lock, owner: str, now: float) -> LockConflict:
        return LockConflict(
            node_id,
            self.remaining(holder, now),
            holder,
            self.classify(holder, owner),
        )

    def _take(self, node_id: str, owner: str, client: str, now: float) -> Lock:
        """Acquire, reclaim or refresh with the node's mutex already held."""
        current = self.store.get(node_id)
        if current is not None and not current.is_held_by(owner, client):
            if not self.is_expired(current, now):
                raise self._conflict(node_id, current, owner, now)
            logger.info(
                f"Reclaiming stale lock on {node_id} from {current.owner}/{current.client}"
            )

        lock = Lock(owner=owner, client=client, acquired_at=now)
        self.store.set(node_id, lock)
        logger.debug(f"Lock on {node_id} held by {owner}/{client} at {now}")
        return lock

    def acquire(
        self, node_id: str, owner: str, client: str, now: Optional[float] = None
    ) -> Lock:
        """Acquire the lock for an editor session.

        Succeeds when the node is unlocked, when the existing lock is stale,
        or when the same owner and client already hold it (refresh).

        Args:
            node_id: Node to lock
            owner: Username of the editor
            client: Session-scoped client id
            now: Current epoch seconds (clock if None)

        Returns:
            The new lock

        Raises:
            LockConflict: If another session holds a live lock
        """
        now = self._now(now)
        with self.store.key_lock(node_id):
            return self._take(node_id, owner, client, now)

    def force_acquire(
        self, node_id: str, owner: str, client: str, now: Optional[float] = None
    ) -> Lock:
        """Take the lock regardless of who holds it.

        Ownership of the node must be checked by the caller.
        """
        now = self._now(now)
        with self.store.key_lock(node_id):
            previous = self._live(node_id, now)
            lock = Lock(owner=owner, client=client, acquired_at=now)
            self.store.set(node_id, lock)
        if previous is not None and not previous.is_held_by(owner, client):
            logger.info(
                f"{owner}/{client} took over lock on {node_id} "
                f"from {previous.owner}/{previous.client}"
            )
        return lock

    def check_conflict(
        self, node_id: str, owner: str, client: str, now: Optional[float] = None
    ) -> LockStatus:
        """Report whether another session holds a live lock. Never mutates."""
        now = self._now(now)
        with self.store.key_lock(node_id):
            holder = self._live(node_id, now)
        if holder is None:
            return LockStatus(conflict=False)
        remaining = self.remaining(holder, now)
        if holder.is_held_by(owner, client):
            return LockStatus(conflict=False, holder=holder, remaining_seconds=remaining)
        return LockStatus(
            conflict=True,
            holder=holder,
            kind=self.classify(holder, owner),
            remaining_seconds=remaining,
        )

    def release(self, node_id: str, owner: str, client: str) -> bool:
        """Clear the lock if this exact session holds it.

        A release from any other session is a no-op, so a late release from
        a closed tab cannot drop a lock someone else has since taken.

        Returns:
            True if a lock was removed
        """
        with self.store.key_lock(node_id):
            current = self.store.get(node_id)
            if current is None or not current.is_held_by(owner, client):
                return False
            self.store.delete(node_id)
        logger.debug(f"Lock on {node_id} released by {owner}/{client}")
        return True

    def autosave(
        self,
        node_id: str,
        owner: str,
        client: str,
        write: Optional[Callable[[], Any]] = None,
        now: Optional[float] = None,
    ) -> Lock:
        """Refresh or reclaim the session's lock, then run ``write``.

        ``write`` runs while the node's mutex is held, so no other session
        can take the lock between the check and the content write. If
        another session holds a live lock, ``LockConflict`` is raised and
        ``write`` is not called.

        Every other operation on the node (including ``check_conflict``
        polls) blocks until ``write`` returns. With ``HttpNodeStore`` that
        can be up to ``retry_attempts`` request timeouts plus the backoff
        sleeps, so keep ``write`` to the single remote update.

        Returns:
            The refreshed lock
        """
        now = self._now(now)
        with self.store.key_lock(node_id):
            lock = self._take(node_id, owner, client, now)
            if write is not None:
                write()
        return lock

    def remove(
        self,
        node_id: str,
        owner: str,
        client: str,
        delete: Callable[[], Any],
        now: Optional[float] = None,
    ) -> None:
        """Run ``delete`` for a node and drop its lock.

        The conflict check, ``delete`` and the lock removal all happen under
        the node's mutex, so no session can take the lock of a node that is
        being deleted. Like ``autosave``, the mutex is held for the duration
        of the remote call.

        Raises:
            LockConflict: If another session holds a live lock (``delete``
                is not called)
        """
        now = self._now(now)
        with self.store.key_lock(node_id):
            holder = self._live(node_id, now)
            if holder is not None and not holder.is_held_by(owner, client):
                raise self._conflict(node_id, holder, owner, now)
            delete()
            self.store.delete(node_id)
        logger.debug(f"Lock on {node_id} dropped with the node by {owner}/{client}")

    def get(self, node_id: str, now: Optional[float] = None) -> Optional[Lock]:
        """Return the live lock on a node, or None."""
        now = self._now(now)
        with self.store.key_lock(node_id):
            return self._live(node_id, now)

    def annotate(self, node: Node, now: Optional[float] = None) -> Node:
        """Set ``node.lock`` to the node's live lock (or None) and return it."""
        node.lock = self.get(node.id, now)
        return node

    def purge_expired(self, now: Optional[float] = None) -> int:
        """Delete stale locks from the store.

        Returns:
            Number of locks removed
        """
        now = self._now(now)
        removed = 0
        for node_id, _ in self.store.items():
            with self.store.key_lock(node_id):
                current = self.store.get(node_id)
                if current is not None and self.is_expired(current, now):
                    self.store.delete(node_id)
                    removed += 1
        return removed
