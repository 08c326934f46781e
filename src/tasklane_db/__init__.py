"""
tasklane_db - Key-value storage layer for Tasklane.

Provides the abstract StorageProvider contract plus in-memory and Redis
implementations used by the storage-backed task store.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from tasklane_db.in_memory_provider import InMemoryStorageProvider
from tasklane_db.redis_cache.cache_client import (
    CacheError,
    DeserializationError,
    RedisClient,
    RedisConnectionError,
    SerializationError,
)
from tasklane_db.redis_provider import RedisStorageProvider
from tasklane_db.storage_factory import create_storage_provider
from tasklane_db.storage_provider import StorageProvider

__all__ = [
    "StorageProvider",
    "InMemoryStorageProvider",
    "RedisStorageProvider",
    "RedisClient",
    "create_storage_provider",
    "CacheError",
    "SerializationError",
    "DeserializationError",
    "RedisConnectionError",
]
