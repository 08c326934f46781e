"""
TaskManager - owns the task store and message queue for one process.

Selects the task store implementation from configuration, hands it to
callers, runs launched work in the background and tears everything down
on shutdown.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog

from tasklane_core.config import TasklaneSettings, validate_configuration
from tasklane_core.exceptions import ConfigurationError
from tasklane_db.storage_factory import create_storage_provider
from tasklane_db.storage_provider import StorageProvider

from .context import TaskContext
from .exceptions import (
    InvalidTaskTransitionError,
    TaskManagerShutdownError,
    TaskNotFoundError,
    TaskQueueFullError,
)
from .in_memory_store import InMemoryTaskStore
from .message_queue import CANCEL_MESSAGE, QueuedMessage, TaskMessageQueue
from .models import CreateTaskOptions, RequestId, TaskRecord, TaskStatus
from .storage_backed_store import StorageBackedTaskStore
from .store import TaskStore

logger = structlog.get_logger(__name__)

TaskWork = Callable[[TaskContext], Awaitable[Any]]


class TaskManager:
    """
    Manages the task store and message queue of one server process.

    Provides:
        - One TaskStore ("in-memory" or "storage"), chosen at construction
        - One TaskMessageQueue for side-channel signals to running work
        - launch_task / cancel_task helpers for background execution
        - An optional periodic sweep of expired tasks
        - Idempotent cleanup for graceful shutdown

    Pass the manager (or its store and queue) explicitly to whatever needs
    them; there is no module-level instance.

    Example:
        ```python
        manager = TaskManager(TasklaneSettings())

        async def export(ctx: TaskContext) -> dict:
            for step in range(10):
                if await ctx.is_cancelled():
                    return {"cancelled_at": step}
                await ctx.update_status(f"step {step + 1}/10")
                await asyncio.sleep(1)
            return {"rows": 1000}

        task = await manager.launch_task(export, {"ttl": 60_000})
        # Later, from a polling endpoint:
        record = await manager.get_task_store().get_task(task.task_id)
        ```

    Thread Safety:
        Store and queue methods are safe to call concurrently. launch_task,
        start_sweeper and shutdown must run on the event loop that owns the
        launched work.
    """

    def __init__(
        self,
        config: TasklaneSettings,
        storage: Optional[StorageProvider] = None,
        owns_storage: bool = False,
    ) -> None:
        """
        Initialize TaskManager.

        Args:
            config: Settings selecting and configuring the task store
            storage: Key-value provider, required when task_store_type is "storage"
            owns_storage: Close the provider on shutdown()

        Raises:
            ConfigurationError: "storage" store requested without a provider
        """
        self._config = config
        self._store_type = config.task_store_type
        self._message_queue = TaskMessageQueue(max_size=config.task_message_queue_max_size)
        self._in_memory_store: Optional[InMemoryTaskStore] = None
        self._storage = storage
        self._owns_storage = owns_storage

        if self._store_type == "storage":
            if storage is None:
                raise ConfigurationError(
                    "task_store_type 'storage' requires a storage provider",
                    error_code="CONF_002",
                )
            self._task_store: TaskStore = StorageBackedTaskStore(
                storage,
                tenant_id=config.task_store_tenant_id,
                key_prefix=config.task_store_key_prefix,
                default_ttl=config.task_store_default_ttl_ms,
                page_size=config.task_store_page_size,
                default_poll_interval=config.task_default_poll_interval_ms,
            )
        else:
            self._in_memory_store = InMemoryTaskStore(
                default_ttl=config.task_store_default_ttl_ms,
                default_poll_interval=config.task_default_poll_interval_ms,
                page_size=config.task_store_page_size,
            )
            self._task_store = self._in_memory_store

        self._is_shutting_down = False
        self._sweeper_task: Optional[asyncio.Task] = None
        self._running: Dict[str, asyncio.Task] = {}

        logger.info(
            "task_manager_initialized",
            store_type=self._store_type,
            tenant_id=config.task_store_tenant_id if self._store_type == "storage" else None,
        )

    def get_task_store(self) -> TaskStore:
        return self._task_store

    def get_message_queue(self) -> TaskMessageQueue:
        return self._message_queue

    def get_store_type(self) -> str:
        return self._store_type

    def get_task_count(self) -> Optional[int]:
        """
        Number of live tasks, or None when the store cannot count cheaply.

        Only the in-memory store can enumerate its records; the
        storage-backed store would need a full prefix scan.
        """
        if self._in_memory_store is not None:
            return self._in_memory_store.count()
        return None

    def is_cleaning_up(self) -> bool:
        return self._is_shutting_down

    # ========================================================================
    # Background execution
    # ========================================================================

    async def launch_task(
        self,
        work: TaskWork,
        options: Union[CreateTaskOptions, Dict[str, Any], None] = None,
        request_id: Optional[RequestId] = None,
        request: Any = None,
    ) -> TaskRecord:
        """
        Create a task and run ``work`` for it in the background.

        Returns as soon as the task exists. The value returned by ``work``
        is stored as the "completed" result (None becomes ``{}``); an
        exception is stored as a "failed" result. If the task reached a
        terminal state meanwhile (e.g. it was cancelled) the late result is
        dropped.

        Args:
            work: Coroutine function receiving a TaskContext
            options: ttl / poll_interval for the new task
            request_id: Id of the operation that spawned the task
            request: Payload of that operation

        Returns:
            The created TaskRecord (status "working")

        Raises:
            TaskManagerShutdownError: cleanup() has already been called
        """
        if self._is_shutting_down:
            raise TaskManagerShutdownError("TaskManager is shutting down; not launching new tasks")

        task = await self._task_store.create_task(options, request_id, request)
        context = TaskContext(task.task_id, self._task_store, self._message_queue)

        runner = asyncio.create_task(self._run(task.task_id, work, context))
        self._running[task.task_id] = runner
        runner.add_done_callback(lambda _: self._running.pop(task.task_id, None))

        logger.info("task_launched", task_id=task.task_id, request_id=request_id)
        return task

    async def cancel_task(self, task_id: str, reason: Optional[str] = None) -> None:
        """
        Move a task to "cancelled" and signal its running work.

        The cancel message is queued only while work launched for the task
        is still running; nothing else would ever consume it.

        Raises:
            TaskNotFoundError: Unknown or expired task_id
            InvalidTaskTransitionError: Task is already terminal
        """
        await self._task_store.update_task_status(
            task_id, TaskStatus.CANCELLED, reason or "Cancelled"
        )
        runner = self._running.get(task_id)
        if runner is not None and not runner.done():
            try:
                self._message_queue.enqueue(
                    task_id, QueuedMessage(type=CANCEL_MESSAGE, payload=reason)
                )
            except TaskQueueFullError:
                # Running work still sees the cancelled status via the store
                logger.warning("cancel_signal_not_queued", task_id=task_id)

        logger.info("task_cancelled", task_id=task_id, reason=reason)

    def running_task_ids(self) -> list[str]:
        return list(self._running)

    async def _run(self, task_id: str, work: TaskWork, context: TaskContext) -> None:
        try:
            result = await work(context)
        except asyncio.CancelledError:
            logger.info("task_execution_interrupted", task_id=task_id)
            await self._settle_cancelled(task_id)
            raise
        except Exception as e:
            logger.error("task_execution_failed", task_id=task_id, error=str(e), exc_info=True)
            await self._settle(
                task_id,
                TaskStatus.FAILED,
                {"error": str(e), "error_type": type(e).__name__},
            )
        else:
            await self._settle(task_id, TaskStatus.COMPLETED, result if result is not None else {})
        finally:
            self._message_queue.clear(task_id)

    async def _settle(self, task_id: str, status: TaskStatus, result: Any) -> None:
        try:
            await self._task_store.store_task_result(task_id, status, result)
        except InvalidTaskTransitionError as e:
            logger.warning("late_task_result_dropped", task_id=task_id, reason=e.message)
            return
        except TaskNotFoundError:
            logger.warning("task_gone_before_result", task_id=task_id)
            return
        logger.info("task_execution_finished", task_id=task_id, status=status.value)

    async def _settle_cancelled(self, task_id: str) -> None:
        try:
            await self._task_store.update_task_status(
                task_id, TaskStatus.CANCELLED, "Interrupted by shutdown"
            )
        except (InvalidTaskTransitionError, TaskNotFoundError) as e:
            logger.debug("interrupted_task_not_marked", task_id=task_id, reason=e.message)

    # ========================================================================
    # Expired-task sweep
    # ========================================================================

    def start_sweeper(self) -> bool:
        """
        Start the periodic purge of expired tasks on the running event loop.

        Returns:
            True if a sweeper is running after the call
        """
        interval = self._config.task_sweep_interval_seconds
        if interval <= 0 or self._is_shutting_down:
            return False
        if self._sweeper_task is not None and not self._sweeper_task.done():
            return True

        try:
            self._sweeper_task = asyncio.get_running_loop().create_task(self._sweep_loop(interval))
        except RuntimeError:
            logger.warning("sweeper_not_started", reason="no running event loop")
            return False

        logger.info("sweeper_started", interval_seconds=interval)
        return True

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self._task_store.purge_expired()
            except Exception as e:
                logger.error("expired_task_sweep_failed", error=str(e), exc_info=True)

    # ========================================================================
    # Shutdown
    # ========================================================================

    def cleanup(self) -> None:
        """
        Release task resources. Safe to call more than once.

        Stops the sweeper, cancels launched work, drops pending messages and
        clears the in-memory store. Storage-backed records are kept.
        """
        if self._is_shutting_down:
            return

        self._is_shutting_down = True
        logger.info("task_manager_cleanup_started", running=len(self._running))

        if self._sweeper_task is not None and not self._sweeper_task.done():
            self._sweeper_task.cancel()

        for runner in list(self._running.values()):
            runner.cancel()

        self._message_queue.clear()

        if self._in_memory_store is not None:
            self._in_memory_store.cleanup()

        logger.info("task_manager_cleanup_complete")

    async def shutdown(self) -> None:
        """
        cleanup(), then wait for cancelled work and close an owned provider.
        """
        pending = [task for task in self._running.values() if not task.done()]
        if self._sweeper_task is not None:
            pending.append(self._sweeper_task)

        self.cleanup()

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._sweeper_task = None

        if self._owns_storage and self._storage is not None:
            await self._storage.close()
            self._owns_storage = False


def create_task_manager(config: Optional[TasklaneSettings] = None) -> TaskManager:
    """
    Build a TaskManager, creating the storage provider when the config asks for one.

    Args:
        config: Settings (default: loaded from environment / .env)

    Returns:
        TaskManager that owns any provider it created

    Raises:
        ConfigurationError: The storage settings are inconsistent, e.g. a
            Redis key TTL that would expire tasks created without a TTL
    """
    config = config or TasklaneSettings()
    if config.task_store_type != "storage":
        return TaskManager(config)

    is_valid, errors = validate_configuration(config)
    if not is_valid:
        raise ConfigurationError(
            f"Invalid task storage configuration: {'; '.join(errors)}",
            details={"errors": errors},
        )

    password = config.redis_password.get_secret_value() if config.redis_password else None
    provider = create_storage_provider(
        config.storage_provider_type,
        redis_host=config.redis_host,
        redis_port=config.redis_port,
        redis_db=config.redis_db,
        redis_password=password,
        redis_ttl_seconds=config.redis_ttl_seconds,
    )
    return TaskManager(config, provider, owns_storage=True)
