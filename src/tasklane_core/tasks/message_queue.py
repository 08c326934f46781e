"""
TaskMessageQueue - per-task FIFO side channel.

Carries signals (cancellation requests, progress hints, ...) from a
polling/control path into the code executing a task. In-process only.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

import structlog

from tasklane_core.exceptions import ConfigurationError

from .exceptions import TaskQueueFullError
from .models import utc_now

logger = structlog.get_logger(__name__)

CANCEL_MESSAGE = "cancel"
PROGRESS_MESSAGE = "progress"


@dataclass
class QueuedMessage:
    """
    One message waiting for a task's executing code.

    Attributes:
        type: Message kind (e.g. "cancel", "progress")
        payload: Arbitrary message body
        timestamp: When the message was enqueued (UTC)
    """

    type: str
    payload: Any = None
    timestamp: datetime = field(default_factory=utc_now)


class TaskMessageQueue:
    """
    Independent FIFO queue per task_id.

    enqueue and dequeue never block: consumers poll between units of work
    instead of waiting. Ordering is guaranteed only within one task's queue.

    Example:
        ```python
        queue = TaskMessageQueue()
        queue.enqueue(task_id, QueuedMessage(type="cancel", payload="user request"))

        # In the executing code, between steps:
        message = queue.dequeue(task_id)
        if message is not None and message.type == "cancel":
            return
        ```
    """

    def __init__(self, max_size: Optional[int] = None) -> None:
        """
        Args:
            max_size: Default per-task capacity (None = unbounded)

        Raises:
            ConfigurationError: If max_size < 1
        """
        if max_size is not None and max_size < 1:
            raise ConfigurationError(f"max_size must be >= 1 or None, got {max_size}")
        self.max_size = max_size
        self._queues: Dict[str, Deque[QueuedMessage]] = {}
        self._lock = threading.Lock()

    def enqueue(self, task_id: str, message: QueuedMessage, max_size: Optional[int] = None) -> None:
        """
        Append a message to the task's queue.

        Args:
            task_id: Target task
            message: Message to deliver
            max_size: Capacity for this call, overriding the queue default

        Raises:
            ValueError: If task_id is empty
            TaskQueueFullError: If the queue is already at capacity
        """
        if not task_id:
            raise ValueError("task_id cannot be empty")

        limit = max_size if max_size is not None else self.max_size
        with self._lock:
            queue = self._queues.setdefault(task_id, deque())
            if limit is not None and len(queue) >= limit:
                raise TaskQueueFullError(
                    f"Message queue for task {task_id} is full (max size: {limit})",
                    details={"task_id": task_id, "max_size": limit},
                )
            queue.append(message)
            size = len(queue)

        logger.debug("message_enqueued", task_id=task_id, type=message.type, queue_size=size)

    def dequeue(self, task_id: str) -> Optional[QueuedMessage]:
        """Remove and return the oldest message, or None if there is none."""
        with self._lock:
            queue = self._queues.get(task_id)
            if not queue:
                return None
            message = queue.popleft()
            if not queue:
                del self._queues[task_id]
            return message

    def dequeue_type(self, task_id: str, message_type: str) -> Optional[QueuedMessage]:
        """Remove and return the oldest message of ``message_type``, leaving others queued."""
        with self._lock:
            queue = self._queues.get(task_id)
            if not queue:
                return None
            for message in queue:
                if message.type == message_type:
                    queue.remove(message)
                    if not queue:
                        del self._queues[task_id]
                    return message
            return None

    def dequeue_all(self, task_id: str) -> List[QueuedMessage]:
        """Remove and return every pending message for the task, oldest first."""
        with self._lock:
            queue = self._queues.pop(task_id, None)
        return list(queue) if queue else []

    def size(self, task_id: str) -> int:
        with self._lock:
            queue = self._queues.get(task_id)
            return len(queue) if queue else 0

    def clear(self, task_id: Optional[str] = None) -> None:
        """Drop pending messages for one task, or for all tasks when task_id is None."""
        with self._lock:
            if task_id is None:
                self._queues.clear()
            else:
                self._queues.pop(task_id, None)
