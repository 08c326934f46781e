"""
Unit tests for TaskContext.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

import pytest

from tasklane_core.tasks import (
    CANCEL_MESSAGE,
    PROGRESS_MESSAGE,
    InMemoryTaskStore,
    QueuedMessage,
    TaskContext,
    TaskMessageQueue,
    TaskStatus,
)


@pytest.fixture
def store():
    return InMemoryTaskStore()


@pytest.fixture
def queue():
    return TaskMessageQueue()


class TestTaskContext:
    @pytest.mark.asyncio
    async def test_update_status(self, store, queue):
        task = await store.create_task()
        context = TaskContext(task.task_id, store, queue)

        await context.update_status("step 1/3")

        fetched = await store.get_task(task.task_id)
        assert fetched.status == TaskStatus.WORKING
        assert fetched.status_message == "step 1/3"

    @pytest.mark.asyncio
    async def test_not_cancelled_by_default(self, store, queue):
        task = await store.create_task()

        assert await TaskContext(task.task_id, store, queue).is_cancelled() is False

    @pytest.mark.asyncio
    async def test_cancel_message_detected(self, store, queue):
        task = await store.create_task()
        queue.enqueue(task.task_id, QueuedMessage(type=PROGRESS_MESSAGE, payload=1))
        queue.enqueue(task.task_id, QueuedMessage(type=CANCEL_MESSAGE))
        context = TaskContext(task.task_id, store, queue)

        assert await context.is_cancelled() is True
        # Other messages stay queued, and the signal is remembered
        assert context.next_message().payload == 1
        assert await context.is_cancelled() is True

    @pytest.mark.asyncio
    async def test_cancelled_status_detected(self, store, queue):
        task = await store.create_task()
        await store.update_task_status(task.task_id, "cancelled")

        assert await TaskContext(task.task_id, store, queue).is_cancelled() is True

    @pytest.mark.asyncio
    async def test_next_message_remembers_cancel(self, store, queue):
        task = await store.create_task()
        queue.enqueue(task.task_id, QueuedMessage(type=CANCEL_MESSAGE, payload="stop"))
        context = TaskContext(task.task_id, store, queue)

        assert context.next_message().type == CANCEL_MESSAGE
        assert context.next_message() is None
        assert await context.is_cancelled() is True

    @pytest.mark.asyncio
    async def test_deleted_task_not_cancelled(self, store, queue):
        task = await store.create_task()
        await store.delete_task(task.task_id)

        assert await TaskContext(task.task_id, store, queue).is_cancelled() is False
