"""
TaskContext - handle given to work launched through the TaskManager.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

from typing import Optional

from .message_queue import CANCEL_MESSAGE, QueuedMessage, TaskMessageQueue
from .models import TaskStatus
from .store import TaskStore


class TaskContext:
    """
    Lets executing code report progress and observe control signals.

    Cancellation is cooperative: the store never preempts running code, so
    work should call is_cancelled() between units of work and return
    promptly when it reports True.

    Attributes:
        task_id: Id of the task being executed
    """

    def __init__(self, task_id: str, store: TaskStore, queue: TaskMessageQueue) -> None:
        self.task_id = task_id
        self._store = store
        self._queue = queue
        self._cancel_requested = False

    async def update_status(self, message: str) -> None:
        """Publish a progress message while the task is still working."""
        await self._store.update_task_status(self.task_id, TaskStatus.WORKING, message)

    def next_message(self) -> Optional[QueuedMessage]:
        """
        Pop the next queued message, or None.

        A cancel message is also remembered so is_cancelled() reports it.
        """
        message = self._queue.dequeue(self.task_id)
        if message is not None and message.type == CANCEL_MESSAGE:
            self._cancel_requested = True
        return message

    async def is_cancelled(self) -> bool:
        """True once a cancel signal was queued or the stored status is cancelled."""
        if self._cancel_requested:
            return True

        if self._queue.dequeue_type(self.task_id, CANCEL_MESSAGE) is not None:
            self._cancel_requested = True
            return True

        task = await self._store.get_task(self.task_id)
        if task is not None and task.status == TaskStatus.CANCELLED:
            self._cancel_requested = True
        return self._cancel_requested
