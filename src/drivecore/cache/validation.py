"""TTL helpers for cache entries."""

from typing import Optional


def expires_at(now: float, ttl_seconds: Optional[float]) -> Optional[float]:
    """Compute an entry's expiry time.

    Args:
        now: Current clock reading
        ttl_seconds: Time-to-live in seconds (None means never expire)

    Returns:
        Expiry clock reading, or None if the entry never expires
    """
    if ttl_seconds is None:
        return None
    if ttl_seconds < 0:
        raise ValueError(f"TTL must not be negative: {ttl_seconds}")
    return now + ttl_seconds


def is_expired(expiry: Optional[float], now: float) -> bool:
    """Check whether an entry is logically absent.

    An entry is expired from the instant ``now`` reaches its expiry time.
    """
    if expiry is None:
        return False
    return now >= expiry


def get_ttl_remaining(expiry: Optional[float], now: float) -> Optional[int]:
    """Get remaining whole seconds until expiry.

    Returns:
        Seconds remaining (never negative), or None if never expires
    """
    if expiry is None:
        return None
    return max(0, int(expiry - now))
