"""
Filesystem-backed key/value cache with expiry, exclusive creation and
cooperative locks shared between processes.
"""

from __future__ import annotations

from pathcache.cache import AsyncCache, Cache
from pathcache.codec import EntryCodec
from pathcache.errors import (
    DecodeError,
    EncodeError,
    LockCancelledError,
    LockError,
    LockOwnershipError,
    LockTimeoutError,
    PathCacheError,
    ProducerDeadError,
)
from pathcache.lock import LockManager
from pathcache.memoize import Memoizer
from pathcache.paths import PathMapper
from pathcache.store import FileStore
from pathcache.types import CacheEntry, LockToken

__all__ = [
    "AsyncCache",
    "Cache",
    "CacheEntry",
    "DecodeError",
    "EncodeError",
    "EntryCodec",
    "FileStore",
    "LockCancelledError",
    "LockError",
    "LockManager",
    "LockOwnershipError",
    "LockTimeoutError",
    "LockToken",
    "Memoizer",
    "PathCacheError",
    "PathMapper",
    "ProducerDeadError",
]
