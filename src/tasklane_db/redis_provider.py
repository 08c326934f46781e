"""
RedisStorageProvider - StorageProvider on top of the synchronous RedisClient.

Blocking Redis calls run in a worker thread via asyncio.to_thread so they
never stall the event loop.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

import asyncio
from typing import Any, List, Optional

import structlog

from tasklane_db.redis_cache.cache_client import RedisClient
from tasklane_db.storage_provider import StorageProvider

logger = structlog.get_logger(__name__)


class RedisStorageProvider(StorageProvider):
    """
    Durable key-value provider backed by Redis.

    TTLs are delegated to Redis (SET ... EX), so expired keys are
    reclaimed by the server. Prefix listing uses SCAN, which is
    non-blocking on the server but walks the whole keyspace.

    Example:
        ```python
        provider = RedisStorageProvider(RedisClient(host="localhost", port=6380))
        await provider.set("tenant:tasks:task_1", {"status": "working"}, ttl=60)
        keys = await provider.list("tenant:tasks:")
        await provider.close()
        ```
    """

    def __init__(self, client: RedisClient) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._client.get, key)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        await asyncio.to_thread(self._client.set, key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await asyncio.to_thread(self._client.delete, key)

    async def list(self, prefix: str) -> List[str]:
        return await asyncio.to_thread(self._client.scan_prefix, prefix)

    async def close(self) -> None:
        await asyncio.to_thread(self._client.close)
        logger.info("redis_storage_provider_closed")
