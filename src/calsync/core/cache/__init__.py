"""
TTL-bounded cache of last-synced event payloads.

This module provides:
- CacheStore: Protocol every store implements
- CacheKey: (destination, stable id) identity of a cached event
- MemoryCacheStore: In-process store
- JsonFileCacheStore: Store persisted across runs in a JSON file
"""

from calsync.core.cache.base import CacheKey, CacheStore
from calsync.core.cache.file import JsonFileCacheStore
from calsync.core.cache.memory import MemoryCacheStore

__all__ = [
    "CacheKey",
    "CacheStore",
    "JsonFileCacheStore",
    "MemoryCacheStore",
]
