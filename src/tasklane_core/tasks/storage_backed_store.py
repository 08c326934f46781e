"""
StorageBackedTaskStore - tenant-scoped task store over a key-value provider.

Persists each task as a single serialized record through any
StorageProvider (in-memory, Redis, ...), so tasks survive process restarts
when the provider is durable.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

import asyncio
import math
import weakref
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError as RecordValidationError

from tasklane_core.exceptions import ConfigurationError, ValidationError
from tasklane_db.redis_cache.cache_client import DeserializationError
from tasklane_db.storage_provider import StorageProvider

from .models import (
    DEFAULT_PAGE_SIZE,
    DEFAULT_POLL_INTERVAL_MS,
    CreateTaskOptions,
    ListTasksResult,
    RequestId,
    TaskRecord,
    TaskStatus,
    generate_task_id,
    next_timestamp,
    utc_now,
)
from .store import (
    TaskStore,
    apply_result,
    apply_status_update,
    coerce_options,
    decode_cursor,
    encode_cursor,
    read_result,
    require_task,
)

logger = structlog.get_logger(__name__)

DEFAULT_TENANT_ID = "system-tasks"
DEFAULT_KEY_PREFIX = "tasks"
KEY_SEPARATOR = ":"


class StorageBackedTaskStore(TaskStore):
    """
    TaskStore persisting records through a StorageProvider.

    Records live under ``{tenant_id}:{key_prefix}:{task_id}``. Neither
    tenant_id nor key_prefix may contain the separator, so the prefix of one
    tenant/namespace can never match keys of another: every read, list and
    delete is confined to this store's scope.

    The whole record, including the terminal result, is one value; result
    reads load the same object as task reads.

    TTL is passed to the provider (rounded up to whole seconds) so native
    expiry reclaims space, and every read also checks the record's own
    expiry so an expired task is never returned even if the provider has
    not evicted it yet.

    Read-modify-write cycles on the same task_id are serialized with a
    per-task asyncio.Lock.

    A value under this scope that is not a valid task record raises
    DeserializationError when read by id; list_tasks and purge_expired log
    and skip it.

    Example:
        ```python
        store = StorageBackedTaskStore(
            InMemoryStorageProvider(),
            tenant_id="acme",
            default_ttl=3_600_000,  # 1 hour
        )
        task = await store.create_task({"poll_interval": 2000}, 7, {"method": "export"})
        page = await store.list_tasks()
        ```
    """

    def __init__(
        self,
        storage: Optional[StorageProvider],
        tenant_id: str = DEFAULT_TENANT_ID,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        default_ttl: Optional[int] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        default_poll_interval: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        """
        Initialize the store.

        Args:
            storage: Key-value provider shared by all tenants
            tenant_id: Isolation namespace (default: "system-tasks")
            key_prefix: Namespace within the tenant (default: "tasks")
            default_ttl: TTL in ms for tasks created without one (None = forever)
            page_size: Maximum tasks per list_tasks page (default: 10)
            default_poll_interval: Poll interval in ms when not supplied (default: 1000)

        Raises:
            ConfigurationError: Missing provider or invalid options
        """
        if storage is None:
            raise ConfigurationError(
                "StorageBackedTaskStore requires a storage provider", error_code="CONF_002"
            )
        _validate_namespace("tenant_id", tenant_id)
        _validate_namespace("key_prefix", key_prefix)
        if default_ttl is not None and default_ttl <= 0:
            raise ConfigurationError(f"default_ttl must be positive or None, got {default_ttl}")
        if page_size < 1:
            raise ConfigurationError(f"page_size must be >= 1, got {page_size}")
        if default_poll_interval < 0:
            raise ConfigurationError(
                f"default_poll_interval must be >= 0, got {default_poll_interval}"
            )

        self._storage = storage
        self.tenant_id = tenant_id
        self.key_prefix = key_prefix
        self.default_ttl = default_ttl
        self.page_size = page_size
        self.default_poll_interval = default_poll_interval

        self._scope = f"{tenant_id}{KEY_SEPARATOR}{key_prefix}{KEY_SEPARATOR}"
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._logger = logger.bind(tenant_id=tenant_id, key_prefix=key_prefix)

    async def create_task(
        self,
        options: Union[CreateTaskOptions, Dict[str, Any], None] = None,
        request_id: Optional[RequestId] = None,
        request: Any = None,
    ) -> TaskRecord:
        opts = coerce_options(options)
        ttl = opts.ttl if opts.ttl is not None else self.default_ttl
        poll_interval = (
            opts.poll_interval if opts.poll_interval is not None else self.default_poll_interval
        )

        while True:
            task_id = generate_task_id()
            async with self._lock_for(task_id):
                if await self._storage.get(self._task_key(task_id)) is not None:
                    continue
                now = next_timestamp()
                record = TaskRecord(
                    task_id=task_id,
                    status=TaskStatus.WORKING,
                    ttl=ttl,
                    poll_interval=poll_interval,
                    created_at=now,
                    last_updated_at=now,
                    originating_request_id=request_id,
                    originating_request=request,
                )
                await self._save(record)
                break

        self._logger.debug("task_created", task_id=task_id, ttl=ttl)
        return record.model_copy(deep=True)

    async def get_task(self, task_id: str) -> Optional[TaskRecord]:
        return await self._load(task_id)

    async def update_task_status(
        self,
        task_id: str,
        status: Union[TaskStatus, str],
        status_message: Optional[str] = None,
    ) -> None:
        async with self._lock_for(task_id):
            record = require_task(await self._load(task_id), task_id)
            apply_status_update(record, status, status_message)
            await self._save(record)

        self._logger.debug("task_status_updated", task_id=task_id, status=record.status.value)

    async def store_task_result(
        self,
        task_id: str,
        status: Union[TaskStatus, str],
        result: Any,
    ) -> None:
        async with self._lock_for(task_id):
            record = require_task(await self._load(task_id), task_id)
            apply_result(record, status, result)
            await self._save(record)

        self._logger.debug("task_result_stored", task_id=task_id, status=record.status.value)

    async def get_task_result(self, task_id: str) -> Any:
        record = require_task(await self._load(task_id), task_id)
        return read_result(record)

    async def list_tasks(self, cursor: Optional[str] = None) -> ListTasksResult:
        after_key: Optional[str] = None
        if cursor is not None:
            after_key = decode_cursor(cursor)
            if not after_key.startswith(self._scope):
                raise ValidationError(f"Invalid cursor: {cursor!r}", error_code="VAL_004")

        keys = sorted(await self._storage.list(self._scope))
        if after_key is not None:
            keys = [key for key in keys if key > after_key]

        now = utc_now()
        page: List[TaskRecord] = []
        last_key: Optional[str] = None
        has_more = False

        for key in keys:
            if len(page) == self.page_size:
                has_more = True
                break
            data = await self._storage.get(key)
            if data is None:
                continue
            try:
                record = self._decode(key, data)
            except DeserializationError:
                self._logger.warning("malformed_task_record_skipped", key=key)
                continue
            if record.is_expired(now):
                continue
            page.append(record)
            last_key = key

        return ListTasksResult(
            tasks=page,
            next_cursor=encode_cursor(last_key) if has_more and last_key else None,
        )

    async def delete_task(self, task_id: str) -> None:
        async with self._lock_for(task_id):
            deleted = await self._storage.delete(self._task_key(task_id))
        if deleted:
            self._logger.debug("task_deleted", task_id=task_id)

    async def clear_all_tasks(self) -> None:
        keys = await self._storage.list(self._scope)
        await asyncio.gather(*(self._storage.delete(key) for key in keys))
        self._logger.info("tasks_cleared", count=len(keys))

    async def purge_expired(self) -> int:
        removed = 0
        for key in await self._storage.list(self._scope):
            task_id = key[len(self._scope) :]
            async with self._lock_for(task_id):
                data = await self._storage.get(key)
                if data is None:
                    continue
                try:
                    record = self._decode(key, data)
                except DeserializationError:
                    self._logger.warning("malformed_task_record_skipped", key=key)
                    continue
                if record.is_expired():
                    await self._storage.delete(key)
                    removed += 1
        if removed:
            self._logger.info("expired_tasks_purged", count=removed)
        return removed

    def _task_key(self, task_id: str) -> str:
        if not task_id:
            raise ValidationError("task_id cannot be empty", error_code="VAL_001")
        return f"{self._scope}{task_id}"

    def _lock_for(self, task_id: str) -> asyncio.Lock:
        lock = self._locks.get(task_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[task_id] = lock
        return lock

    async def _load(self, task_id: str) -> Optional[TaskRecord]:
        data = await self._storage.get(self._task_key(task_id))
        if data is None:
            return None
        record = self._decode(self._task_key(task_id), data)
        if record.is_expired():
            self._logger.debug("task_expired", task_id=task_id)
            return None
        return record

    def _decode(self, key: str, data: Any) -> TaskRecord:
        try:
            return TaskRecord.from_storage(data)
        except RecordValidationError as e:
            raise DeserializationError(f"Malformed task record under {key}: {e}") from e

    async def _save(self, record: TaskRecord) -> None:
        ttl_seconds = math.ceil(record.ttl / 1000) if record.ttl is not None else None
        await self._storage.set(self._task_key(record.task_id), record.to_storage(), ttl=ttl_seconds)


def _validate_namespace(name: str, value: str) -> None:
    if not value:
        raise ConfigurationError(f"{name} cannot be empty")
    if KEY_SEPARATOR in value:
        raise ConfigurationError(f"{name} cannot contain '{KEY_SEPARATOR}', got '{value}'")
