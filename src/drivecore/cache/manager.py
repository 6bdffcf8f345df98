"""In-process TTL cache for users, nodes and search results."""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from drivecore.cache.keys import namespace_prefixes
from drivecore.cache.validation import expires_at, get_ttl_remaining, is_expired
from drivecore.config import DriveConfig
from drivecore.errors import CacheMiss, DriveError

logger = logging.getLogger(__name__)

_MISSING = object()


class CacheError(DriveError):
    """Base exception for cache-related errors."""

    pass


class CacheManager:
    """Namespaced key/value cache with per-entry expiry.

    Expiry is checked lazily on every read, so an expired entry behaves
    exactly like an absent one. ``sweep()`` (optionally run by a background
    thread) only reclaims memory.

    All table operations run under one re-entrant lock and complete in a
    single step.

    Examples:
        >>> cache = CacheManager()
        >>> cache.set("node:alice:n1", {"name": "a"}, ttl=300)
        >>> cache.get("node:alice:n1")
        {'name': 'a'}
        >>> cache.invalidate_namespace("alice")
        1
    """

    def __init__(
        self,
        config: Optional[DriveConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache manager.

        Args:
            config: Configuration (defaults if None)
            clock: Monotonic clock returning seconds
        """
        self.config = config or DriveConfig()
        self.default_ttl = self.config.cache_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._sweeper: Optional[threading.Thread] = None
        self._stop_sweeper = threading.Event()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a live value.

        Args:
            key: Cache key
            default: Returned on a miss

        Returns:
            Cached value, or ``default`` if absent or expired
        """
        value = self._get(key)
        return default if value is _MISSING else value

    def lookup(self, key: str) -> Any:
        """Get a live value or raise.

        Raises:
            CacheMiss: If the key is absent or expired
        """
        value = self._get(key)
        if value is _MISSING:
            raise CacheMiss(key)
        return value

    def _get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                logger.debug(f"Cache miss: {key}")
                return _MISSING

            value, expiry = entry
            if is_expired(expiry, self._clock()):
                del self._entries[key]
                self._misses += 1
                logger.debug(f"Cache entry expired: {key}")
                return _MISSING

            self._hits += 1
            return value

    def contains(self, key: str) -> bool:
        """Check for a live entry without touching hit/miss stats."""
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not is_expired(entry[1], self._clock())

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value, replacing any entry and resetting its expiry.

        Args:
            key: Cache key
            value: Value to store
            ttl: Time-to-live in seconds (uses the configured default if None)
        """
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[key] = (value, expires_at(self._clock(), ttl))

    def delete(self, key: str) -> None:
        """Remove a single entry. Absent keys are ignored."""
        with self._lock:
            self._entries.pop(key, None)

    def invalidate_prefix(self, *prefixes: str) -> int:
        """Remove every entry whose key starts with any of ``prefixes``.

        Returns:
            Number of entries removed
        """
        with self._lock:
            stale = [key for key in self._entries if key.startswith(prefixes)]
            for key in stale:
                del self._entries[key]
        return len(stale)

    def invalidate_namespace(self, username: str) -> int:
        """Remove every user, node and search entry owned by ``username``.

        Must be called after the remote store acknowledged a write to the
        user's nodes or profile, never before.

        Returns:
            Number of entries removed
        """
        removed = self.invalidate_prefix(*namespace_prefixes(username))
        logger.info(f"Invalidated {removed} cache entries for {username}")
        return removed

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[str]:
        """List keys of live entries."""
        with self._lock:
            now = self._clock()
            return [
                key
                for key, (_, expiry) in self._entries.items()
                if not is_expired(expiry, now)
            ]

    def ttl_remaining(self, key: str) -> Optional[int]:
        """Seconds left for a live entry.

        Raises:
            CacheMiss: If the key is absent or expired
        """
        with self._lock:
            entry = self._entries.get(key)
            now = self._clock()
            if entry is None or is_expired(entry[1], now):
                raise CacheMiss(key)
            return get_ttl_remaining(entry[1], now)

    def sweep(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries reclaimed
        """
        with self._lock:
            now = self._clock()
            expired = [
                key
                for key, (_, expiry) in self._entries.items()
                if is_expired(expiry, now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")
        return len(expired)

    def start_sweeper(self, interval: Optional[float] = None) -> None:
        """Run ``sweep()`` every ``interval`` seconds on a daemon thread."""
        interval = interval if interval is not None else self.config.sweep_interval
        if interval is None:
            return
        if self._sweeper is not None and self._sweeper.is_alive():
            raise CacheError("Cache sweeper is already running")

        self._stop_sweeper.clear()

        def _run():
            while not self._stop_sweeper.wait(interval):
                self.sweep()

        self._sweeper = threading.Thread(target=_run, name="drivecore-cache-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        """Stop the background sweeper if it is running."""
        self._stop_sweeper.set()
        if self._sweeper is not None:
            self._sweeper.join()
            self._sweeper = None

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics.

        Returns:
            Statistics dict
        """
        with self._lock:
            total_requests = self._hits + self._misses
            return {
                "entries": len(self._entries),
                "cache_hits": self._hits,
                "cache_misses": self._misses,
                "cache_hit_rate": self._hits / total_requests if total_requests > 0 else 0.0,
                "default_ttl_seconds": self.default_ttl,
            }
