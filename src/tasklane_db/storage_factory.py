"""
Storage provider factory.

Builds the configured StorageProvider implementation by name.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from typing import Optional

import structlog

from tasklane_db.in_memory_provider import InMemoryStorageProvider
from tasklane_db.redis_cache.cache_client import RedisClient
from tasklane_db.redis_provider import RedisStorageProvider
from tasklane_db.storage_provider import StorageProvider

logger = structlog.get_logger(__name__)

PROVIDER_TYPES = ("in-memory", "redis")


def create_storage_provider(
    provider_type: str = "in-memory",
    *,
    redis_host: str = "localhost",
    redis_port: int = 6380,
    redis_db: int = 0,
    redis_password: Optional[str] = None,
    redis_ttl_seconds: Optional[int] = None,
) -> StorageProvider:
    """
    Create a StorageProvider.

    Args:
        provider_type: "in-memory" or "redis"
        redis_host: Redis host (redis only)
        redis_port: Redis port (redis only)
        redis_db: Redis database number (redis only)
        redis_password: Optional Redis password (redis only)
        redis_ttl_seconds: Default TTL for keys written without one (redis only)

    Returns:
        Configured StorageProvider

    Raises:
        ValueError: If provider_type is unknown
        RedisConnectionError: If the Redis server is unreachable
    """
    if provider_type == "in-memory":
        provider: StorageProvider = InMemoryStorageProvider()
    elif provider_type == "redis":
        client = RedisClient(
            host=redis_host,
            port=redis_port,
            db=redis_db,
            ttl_seconds=redis_ttl_seconds,
            password=redis_password,
        )
        provider = RedisStorageProvider(client)
    else:
        raise ValueError(f"provider_type must be one of {list(PROVIDER_TYPES)}, got '{provider_type}'")

    logger.info("storage_provider_created", provider_type=provider_type)
    return provider
