"""
StorageProvider - abstract persistent key-value contract.

Any backend (in-memory map, Redis, ...) that implements these four
coroutines can back the storage-backed task store.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional


class StorageProvider(ABC):
    """
    Generic key-value storage contract.

    Values are JSON-compatible Python objects (dicts, lists, str, numbers,
    bool, None). Backends are shared across tenants; callers are
    responsible for namespacing their keys.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """
        Store ``value`` under ``key``.

        Args:
            key: Storage key
            value: JSON-compatible value
            ttl: Time-to-live in seconds (None = no expiry)
        """

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete ``key``. Returns True if something was deleted."""

    @abstractmethod
    async def list(self, prefix: str) -> List[str]:
        """Return all live keys beginning with ``prefix``."""

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
