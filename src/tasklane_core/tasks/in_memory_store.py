"""
InMemoryTaskStore - process-local task store.

Fast and non-durable: records live in a dict guarded by a re-entrant lock.
Suitable for single-tenant, development and test deployments.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

import copy
import itertools
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import structlog

from tasklane_core.exceptions import ConfigurationError, ValidationError

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


@dataclass
class _Entry:
    sequence: int
    record: TaskRecord


class InMemoryTaskStore(TaskStore):
    """
    TaskStore backed by a lock-protected dict keyed by task_id.

    Every public method takes the same lock for its whole critical section,
    so check-and-set on one task is atomic: of two racing terminal
    transitions exactly one succeeds. Pagination follows insertion order via
    a monotonically increasing sequence number, which keeps cursors valid
    even when earlier tasks are deleted.

    Expired records are dropped lazily on access, and eagerly by
    purge_expired().

    Example:
        ```python
        store = InMemoryTaskStore(default_ttl=60_000)
        task = await store.create_task({"poll_interval": 500}, "req-1", {"op": "export"})
        await store.update_task_status(task.task_id, "working", "50% done")
        await store.store_task_result(task.task_id, "completed", {"rows": 42})
        ```
    """

    def __init__(
        self,
        default_ttl: Optional[int] = None,
        default_poll_interval: int = DEFAULT_POLL_INTERVAL_MS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if default_ttl is not None and default_ttl <= 0:
            raise ConfigurationError(f"default_ttl must be positive or None, got {default_ttl}")
        if default_poll_interval < 0:
            raise ConfigurationError(
                f"default_poll_interval must be >= 0, got {default_poll_interval}"
            )
        if page_size < 1:
            raise ConfigurationError(f"page_size must be >= 1, got {page_size}")

        self.default_ttl = default_ttl
        self.default_poll_interval = default_poll_interval
        self.page_size = page_size

        self._tasks: Dict[str, _Entry] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()

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

        with self._lock:
            task_id = generate_task_id()
            while task_id in self._tasks:
                task_id = generate_task_id()

            now = next_timestamp()
            record = TaskRecord(
                task_id=task_id,
                status=TaskStatus.WORKING,
                ttl=ttl,
                poll_interval=poll_interval,
                created_at=now,
                last_updated_at=now,
                originating_request_id=request_id,
                originating_request=copy.deepcopy(request),
            )
            self._tasks[task_id] = _Entry(sequence=next(self._sequence), record=record)

        logger.debug("task_created", task_id=task_id, ttl=ttl, poll_interval=poll_interval)
        return record.model_copy(deep=True)

    async def get_task(self, task_id: str) -> Optional[TaskRecord]:
        with self._lock:
            record = self._get_live(task_id)
            return record.model_copy(deep=True) if record is not None else None

    async def update_task_status(
        self,
        task_id: str,
        status: Union[TaskStatus, str],
        status_message: Optional[str] = None,
    ) -> None:
        with self._lock:
            record = require_task(self._get_live(task_id), task_id)
            apply_status_update(record, status, status_message)
            new_status = record.status

        logger.debug("task_status_updated", task_id=task_id, status=new_status.value)

    async def store_task_result(
        self,
        task_id: str,
        status: Union[TaskStatus, str],
        result: Any,
    ) -> None:
        with self._lock:
            record = require_task(self._get_live(task_id), task_id)
            apply_result(record, status, result)
            new_status = record.status

        logger.debug("task_result_stored", task_id=task_id, status=new_status.value)

    async def get_task_result(self, task_id: str) -> Any:
        with self._lock:
            record = require_task(self._get_live(task_id), task_id)
            return read_result(record.model_copy(deep=True))

    async def list_tasks(self, cursor: Optional[str] = None) -> ListTasksResult:
        after = 0
        if cursor is not None:
            marker = decode_cursor(cursor)
            try:
                after = int(marker)
            except ValueError:
                raise ValidationError(f"Invalid cursor: {cursor!r}", error_code="VAL_004") from None

        now = utc_now()
        page: List[TaskRecord] = []
        last_sequence = after
        has_more = False

        with self._lock:
            for task_id, entry in list(self._tasks.items()):
                if entry.sequence <= after:
                    continue
                if entry.record.is_expired(now):
                    del self._tasks[task_id]
                    continue
                if len(page) == self.page_size:
                    has_more = True
                    break
                page.append(entry.record.model_copy(deep=True))
                last_sequence = entry.sequence

        return ListTasksResult(
            tasks=page,
            next_cursor=encode_cursor(str(last_sequence)) if has_more else None,
        )

    async def delete_task(self, task_id: str) -> None:
        with self._lock:
            removed = self._tasks.pop(task_id, None)
        if removed is not None:
            logger.debug("task_deleted", task_id=task_id)

    async def clear_all_tasks(self) -> None:
        with self._lock:
            cleared = len(self._tasks)
            self._tasks.clear()
        logger.debug("tasks_cleared", count=cleared)

    async def purge_expired(self) -> int:
        now = utc_now()
        with self._lock:
            expired = [
                task_id for task_id, entry in self._tasks.items() if entry.record.is_expired(now)
            ]
            for task_id in expired:
                del self._tasks[task_id]
        if expired:
            logger.info("expired_tasks_purged", count=len(expired))
        return len(expired)

    def count(self) -> int:
        """Exact number of live (non-expired, non-deleted) tasks."""
        now = utc_now()
        with self._lock:
            return sum(1 for entry in self._tasks.values() if not entry.record.is_expired(now))

    def get_all_tasks(self) -> List[TaskRecord]:
        """Copies of every live task, in creation order."""
        now = utc_now()
        with self._lock:
            return [
                entry.record.model_copy(deep=True)
                for entry in self._tasks.values()
                if not entry.record.is_expired(now)
            ]

    def cleanup(self) -> None:
        """Drop all in-memory state. Used on manager shutdown."""
        with self._lock:
            self._tasks.clear()

    def _get_live(self, task_id: str) -> Optional[TaskRecord]:
        # Caller holds self._lock
        entry = self._tasks.get(task_id)
        if entry is None:
            return None
        if entry.record.is_expired():
            del self._tasks[task_id]
            logger.debug("task_expired", task_id=task_id)
            return None
        return entry.record
