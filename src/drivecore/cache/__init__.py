"""In-process caching of remote store reads.

Entries expire after a TTL and are invalidated per user after writes.

Key components:
- CacheManager: Main cache interface
- user_key / node_key / search_key: Collision-free key builders
"""

from drivecore.cache.keys import node_key, search_key, user_key
from drivecore.cache.manager import CacheError, CacheManager

__all__ = [
    "CacheManager",
    "CacheError",
    "user_key",
    "node_key",
    "search_key",
]
