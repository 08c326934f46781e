"""
Task lifecycle management for Tasklane.

Provides the TaskStore contract with in-memory and storage-backed
implementations, the per-task message queue, and the TaskManager that owns
them for one process ("call now, fetch later" operations).

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from .context import TaskContext
from .exceptions import (
    InvalidTaskTransitionError,
    NoResultStoredError,
    ResultAlreadyStoredError,
    TaskError,
    TaskManagerShutdownError,
    TaskNotFoundError,
    TaskQueueFullError,
)
from .in_memory_store import InMemoryTaskStore
from .message_queue import CANCEL_MESSAGE, PROGRESS_MESSAGE, QueuedMessage, TaskMessageQueue
from .models import (
    CreateTaskOptions,
    ListTasksResult,
    TaskRecord,
    TaskStatus,
    generate_task_id,
    is_terminal,
)
from .storage_backed_store import StorageBackedTaskStore
from .store import TaskStore
from .task_manager import TaskManager, create_task_manager

__all__ = [
    "TaskStore",
    "InMemoryTaskStore",
    "StorageBackedTaskStore",
    "TaskManager",
    "create_task_manager",
    "TaskMessageQueue",
    "QueuedMessage",
    "CANCEL_MESSAGE",
    "PROGRESS_MESSAGE",
    "TaskContext",
    "TaskRecord",
    "TaskStatus",
    "CreateTaskOptions",
    "ListTasksResult",
    "is_terminal",
    "generate_task_id",
    "TaskError",
    "TaskNotFoundError",
    "InvalidTaskTransitionError",
    "ResultAlreadyStoredError",
    "NoResultStoredError",
    "TaskQueueFullError",
    "TaskManagerShutdownError",
]
