"""Clients for the remote node/user store.

This module provides the store interface, an HTTP implementation with
transient-failure retries, an in-memory implementation, and a caching
wrapper that invalidates per user after writes.
"""

from drivecore.remote.base import NodeStore
from drivecore.remote.cached import CachedNodeStore
from drivecore.remote.http import TRANSIENT_STATUS, HttpNodeStore
from drivecore.remote.memory import InMemoryNodeStore

__all__ = [
    "NodeStore",
    "HttpNodeStore",
    "InMemoryNodeStore",
    "CachedNodeStore",
    "TRANSIENT_STATUS",
]
