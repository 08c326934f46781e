"""
InMemoryStorageProvider - dict-backed StorageProvider with TTL support.

Ideal for development, testing, or deployments where persistence is not
required. Expired entries are removed lazily on access.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

import copy
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from tasklane_db.storage_provider import StorageProvider

logger = structlog.get_logger(__name__)


@dataclass
class _StoreEntry:
    value: Any
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryStorageProvider(StorageProvider):
    """
    Process-local key-value provider.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store, mirroring the copy semantics of a real
    serializing backend.
    """

    def __init__(self) -> None:
        self._store: Dict[str, _StoreEntry] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[Any]:
        _validate_key(key)
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if entry.is_expired(time.monotonic()):
                del self._store[key]
                logger.debug("key_expired", key=key)
                return None
            return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        _validate_key(key)
        if ttl is not None and ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")

        expires_at = time.monotonic() + ttl if ttl is not None else None
        with self._lock:
            self._store[key] = _StoreEntry(value=copy.deepcopy(value), expires_at=expires_at)
        logger.debug("key_set", key=key, ttl=ttl)

    async def delete(self, key: str) -> bool:
        _validate_key(key)
        with self._lock:
            return self._store.pop(key, None) is not None

    async def list(self, prefix: str) -> List[str]:
        now = time.monotonic()
        keys: List[str] = []
        with self._lock:
            for key, entry in list(self._store.items()):
                if not key.startswith(prefix):
                    continue
                if entry.is_expired(now):
                    del self._store[key]
                else:
                    keys.append(key)
        logger.debug("keys_listed", prefix=prefix, count=len(keys))
        return keys


def _validate_key(key: str) -> None:
    if not key or not isinstance(key, str):
        raise ValueError("key must be non-empty string")
