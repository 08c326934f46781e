"""
RedisClient - Lightweight wrapper for Redis key-value operations.

Provides JSON (de)serialization, optional per-key TTL, prefix scans and
bounded retry with exponential backoff on connection errors. Used by the
Redis storage provider to persist task records.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

import json
import time
from typing import Any, Callable, List, Optional, TypeVar

import redis
import structlog
from redis import ConnectionPool, Redis

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_GLOB_SPECIAL_CHARS = "\\*?[]"


# Custom Exceptions
class CacheError(Exception):
    """Raised when Redis cache operation fails."""

    pass


class SerializationError(CacheError):
    """Raised when value cannot be serialized to JSON."""

    pass


class DeserializationError(CacheError):
    """Raised when cached data cannot be deserialized from JSON."""

    pass


class RedisConnectionError(CacheError):
    """Raised when cannot connect to Redis server."""

    pass


def escape_glob(text: str) -> str:
    """Escape Redis glob metacharacters so ``text`` matches literally."""
    return "".join("\\" + ch if ch in _GLOB_SPECIAL_CHARS else ch for ch in text)


class RedisClient:
    """
    Synchronous Redis wrapper with connection pooling.

    Attributes:
        host: Redis server host address
        port: Redis server port
        db: Redis database number (0-15)
        ttl_seconds: Default TTL for entries written without one (None = no expiry)
        password: Optional Redis password for authentication
        client: Redis client instance

    Example:
        ```python
        client = RedisClient(host="localhost", port=6380)
        client.set("system-tasks:tasks:task_abc", {"status": "working"}, ttl=60)
        record = client.get("system-tasks:tasks:task_abc")
        keys = client.scan_prefix("system-tasks:tasks:")
        client.close()
        ```
    """

    # Class constants
    DEFAULT_DB: int = 0
    MAX_RETRIES: int = 3
    CONNECTION_TIMEOUT: int = 5
    SCAN_COUNT: int = 100

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6380,
        db: int = 0,
        ttl_seconds: Optional[int] = None,
        password: Optional[str] = None,
        max_connections: int = 10,
    ) -> None:
        """
        Initialize Redis client with connection pooling.

        Args:
            host: Redis server host address (default: "localhost")
            port: Redis server port (default: 6380)
            db: Redis database number 0-15 (default: 0)
            ttl_seconds: Default TTL in seconds, None keeps keys forever
            password: Optional Redis password for authentication
            max_connections: Maximum connections in pool (default: 10)

        Raises:
            RedisConnectionError: If cannot connect to Redis server
            ValueError: If db, port or ttl_seconds is out of range
        """
        if db < 0 or db > 15:
            raise ValueError(f"db must be in range 0-15, got {db}")

        if port <= 0 or port > 65535:
            raise ValueError(f"port must be in range 1-65535, got {port}")

        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.host = host
        self.port = port
        self.db = db
        self.ttl_seconds = ttl_seconds
        self.password = password
        self.max_connections = max_connections

        self._pool: Optional[ConnectionPool] = None
        self.client: Optional[Redis] = None
        self._closed = False
        self._logger = logger.bind(host=host, port=port, db=db)

        try:
            self._init_connection()
            self._logger.info("redis_client_initialized")
        except redis.ConnectionError as e:
            self._logger.error("connection_failed", error=str(e))
            raise RedisConnectionError(f"Failed to connect to Redis: {e}")

    def _init_connection(self) -> None:
        """Initialize Redis connection with pooling and test connectivity."""
        self._pool = ConnectionPool(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            max_connections=self.max_connections,
            socket_connect_timeout=self.CONNECTION_TIMEOUT,
            socket_keepalive=True,
            decode_responses=False,
        )
        self.client = Redis(connection_pool=self._pool)
        self.client.ping()

    def ping(self) -> bool:
        """
        Test Redis connectivity with ping command.

        Raises:
            CacheError: If ping fails
        """
        try:
            response = self.client.ping()
            return response is True or response == b"PONG" or response == "PONG"
        except redis.RedisError as e:
            self._logger.error("redis_error_ping", error=str(e))
            raise CacheError(f"Redis PING failed: {e}")

    def get(self, key: str) -> Optional[Any]:
        """
        Get a JSON value by key. Returns None if missing or expired.

        Raises:
            ValueError: If key is empty
            DeserializationError: If stored data is corrupted
            CacheError: If Redis operation fails after retries
        """
        _validate_key(key)
        data = self._with_retry("get", key, lambda: self.client.get(key))
        if data is None:
            self._logger.debug("cache_miss", key=key)
            return None
        return self._deserialize(data)

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a JSON value, expiring after ``ttl`` seconds when given.

        Falls back to the client's default TTL; with neither set the key
        never expires.

        Raises:
            ValueError: If key is empty or ttl is not positive
            SerializationError: If value cannot be serialized to JSON
            CacheError: If Redis write operation fails after retries
        """
        _validate_key(key)
        effective_ttl = ttl if ttl is not None else self.ttl_seconds
        if effective_ttl is not None and effective_ttl <= 0:
            raise ValueError(f"ttl must be positive, got {effective_ttl}")

        # Serialization errors are not retried
        serialized = self._serialize(value)

        result = self._with_retry(
            "set", key, lambda: self.client.set(key, serialized, ex=effective_ttl)
        )
        if not result:
            self._logger.warning("cache_set_failed", key=key)
            return False
        self._logger.debug("cache_set", key=key, ttl=effective_ttl)
        return True

    def delete(self, key: str) -> bool:
        """
        Delete a key. Returns True if it existed.

        Raises:
            ValueError: If key is empty
            CacheError: If Redis delete operation fails after retries
        """
        _validate_key(key)
        removed = self._with_retry("delete", key, lambda: self.client.delete(key))
        return removed > 0

    def scan_prefix(self, prefix: str) -> List[str]:
        """
        List keys starting with ``prefix`` using cursor-based SCAN.

        Raises:
            CacheError: If Redis scan operation fails
        """
        pattern = escape_glob(prefix) + "*"
        try:
            keys = [
                key if isinstance(key, str) else key.decode()
                for key in self.client.scan_iter(match=pattern, count=self.SCAN_COUNT)
            ]
        except redis.RedisError as e:
            self._logger.error("redis_error_scan", prefix=prefix, error=str(e))
            raise CacheError(f"Redis SCAN operation failed: {e}")

        self._logger.debug("scan_complete", prefix=prefix, count=len(keys))
        return keys

    def close(self) -> None:
        """
        Close Redis connection and release pooled connections. Idempotent.

        Raises:
            CacheError: If connection close fails
        """
        if self._closed:
            return

        try:
            if self.client:
                self.client.close()
            if self._pool:
                self._pool.disconnect()
            self._closed = True
            self._logger.info("connection_closed")
        except redis.RedisError as e:
            self._logger.error("redis_error_close", error=str(e))
            raise CacheError(f"Redis close operation failed: {e}")

    def _with_retry(self, operation: str, key: str, call: Callable[[], T]) -> T:
        """Run ``call``, retrying connection errors with exponential backoff."""
        retry_count = 0
        while True:
            try:
                return call()
            except redis.ConnectionError as e:
                retry_count += 1
                if retry_count > self.MAX_RETRIES:
                    self._logger.error(
                        f"{operation}_failed_after_retries", key=key, retries=retry_count
                    )
                    raise CacheError(
                        f"Redis {operation.upper()} operation failed after "
                        f"{self.MAX_RETRIES} retries: {e}"
                    )
                backoff_seconds = 2 ** (retry_count - 1)
                self._logger.warning(
                    f"{operation}_retry", key=key, attempt=retry_count, delay=backoff_seconds
                )
                time.sleep(backoff_seconds)
            except redis.RedisError as e:
                self._logger.error(f"redis_error_{operation}", key=key, error=str(e))
                raise CacheError(f"Redis {operation.upper()} operation failed: {e}")

    def _serialize(self, value: Any) -> str:
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            self._logger.error("serialization_failed", error=str(e))
            raise SerializationError(f"Failed to serialize value to JSON: {e}")

    def _deserialize(self, data: Any) -> Any:
        try:
            if isinstance(data, bytes):
                data = data.decode("utf-8")
            return json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._logger.error("deserialization_failed", error=str(e))
            raise DeserializationError(f"Failed to deserialize cached data: {e}")


def _validate_key(key: str) -> None:
    if not key or not isinstance(key, str):
        raise ValueError("key must be non-empty string")
