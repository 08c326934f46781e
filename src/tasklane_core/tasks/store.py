"""
TaskStore - abstract contract shared by every task store implementation.

Also holds the state machine rules (which transitions are legal, how a
status update or result write mutates a record) and the opaque cursor
encoding, so both store variants enforce identical semantics.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

import base64
import binascii
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union

from tasklane_core.exceptions import ValidationError

from .exceptions import (
    InvalidTaskTransitionError,
    NoResultStoredError,
    ResultAlreadyStoredError,
    TaskNotFoundError,
)
from .models import (
    RESULT_STATUSES,
    CreateTaskOptions,
    ListTasksResult,
    RequestId,
    TaskRecord,
    TaskStatus,
    is_terminal,
    next_timestamp,
)


class TaskStore(ABC):
    """
    Abstract interface for task state storage.

    A pure storage interface: it tracks task records and results but never
    executes anything. Implementations must be safe to call concurrently for
    different task ids and must serialize conflicting calls on the same id.

    State machine:
        working -> working (progress updates, unlimited)
        working -> completed | failed | cancelled (terminal, exactly once)
    """

    @abstractmethod
    async def create_task(
        self,
        options: Union[CreateTaskOptions, Dict[str, Any], None] = None,
        request_id: Optional[RequestId] = None,
        request: Any = None,
    ) -> TaskRecord:
        """
        Create a new task in the ``working`` state.

        Args:
            options: ttl / poll_interval in milliseconds; unset values use
                the store defaults (a None default ttl means "never expires")
            request_id: Id of the operation that spawned the task
            request: Payload of that operation

        Returns:
            The created TaskRecord (a copy)
        """

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[TaskRecord]:
        """Return a defensive copy of the task, or None if absent or expired."""

    @abstractmethod
    async def update_task_status(
        self,
        task_id: str,
        status: Union[TaskStatus, str],
        status_message: Optional[str] = None,
    ) -> None:
        """
        Change a task's status and/or progress message.

        Raises:
            TaskNotFoundError: Unknown or expired task_id
            InvalidTaskTransitionError: Task is already terminal
        """

    @abstractmethod
    async def store_task_result(
        self,
        task_id: str,
        status: Union[TaskStatus, str],
        result: Any,
    ) -> None:
        """
        Store the terminal result and move the task to ``status``.

        Raises:
            ValidationError: status is not completed/failed, or result is None
            TaskNotFoundError: Unknown or expired task_id
            ResultAlreadyStoredError: A result was stored before
            InvalidTaskTransitionError: Task is terminal without a result
        """

    @abstractmethod
    async def get_task_result(self, task_id: str) -> Any:
        """
        Return the stored result.

        Raises:
            TaskNotFoundError: Unknown or expired task_id
            NoResultStoredError: No result has been stored yet
        """

    @abstractmethod
    async def list_tasks(self, cursor: Optional[str] = None) -> ListTasksResult:
        """Return up to page_size live tasks, resuming after ``cursor``."""

    @abstractmethod
    async def delete_task(self, task_id: str) -> None:
        """Delete a task. Unknown ids are ignored."""

    @abstractmethod
    async def clear_all_tasks(self) -> None:
        """Delete every task in this store's scope."""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Physically remove expired records. Returns the number removed."""


# ============================================================================
# State machine rules
# ============================================================================


def coerce_options(options: Union[CreateTaskOptions, Dict[str, Any], None]) -> CreateTaskOptions:
    if options is None:
        return CreateTaskOptions()
    if isinstance(options, CreateTaskOptions):
        return options
    return CreateTaskOptions.model_validate(options)


def require_task(record: Optional[TaskRecord], task_id: str) -> TaskRecord:
    if record is None:
        raise TaskNotFoundError(f"Task with ID {task_id} not found", details={"task_id": task_id})
    return record


def apply_status_update(
    record: TaskRecord,
    status: Union[TaskStatus, str],
    status_message: Optional[str] = None,
) -> TaskRecord:
    """
    Apply a status update to ``record`` in place.

    Raises:
        ValidationError: Unknown status value
        InvalidTaskTransitionError: record is already terminal
    """
    new_status = _parse_status(status)
    if is_terminal(record.status):
        raise InvalidTaskTransitionError(
            f"Cannot update task {record.task_id} from terminal status "
            f"'{record.status.value}' to '{new_status.value}'. Terminal states "
            "(completed, failed, cancelled) cannot transition to other states.",
            details={"task_id": record.task_id, "status": record.status.value},
        )

    record.status = new_status
    if status_message is not None:
        record.status_message = status_message
    record.last_updated_at = next_timestamp(record.last_updated_at)
    return record


def apply_result(record: TaskRecord, status: Union[TaskStatus, str], result: Any) -> TaskRecord:
    """
    Write the terminal result into ``record`` in place.

    Raises:
        ValidationError: status is not completed/failed, or result is None
        ResultAlreadyStoredError: record already holds a result
        InvalidTaskTransitionError: record is terminal without a result
    """
    new_status = validate_result_status(status)
    if result is None:
        raise ValidationError("result cannot be None", error_code="VAL_001")

    if record.has_result:
        raise ResultAlreadyStoredError(
            f"Cannot store result for task {record.task_id} in terminal status "
            f"'{record.status.value}'. Task results can only be stored once.",
            details={"task_id": record.task_id, "status": record.status.value},
        )
    if is_terminal(record.status):
        raise InvalidTaskTransitionError(
            f"Cannot store result for task {record.task_id} in terminal status "
            f"'{record.status.value}'.",
            details={"task_id": record.task_id, "status": record.status.value},
        )

    record.result = copy.deepcopy(result)
    record.status = new_status
    record.last_updated_at = next_timestamp(record.last_updated_at)
    return record


def read_result(record: TaskRecord) -> Any:
    if not record.has_result:
        raise NoResultStoredError(
            f"Task {record.task_id} has no result stored",
            details={"task_id": record.task_id, "status": record.status.value},
        )
    return record.result


def validate_result_status(status: Union[TaskStatus, str]) -> TaskStatus:
    parsed = _parse_status(status)
    if parsed not in RESULT_STATUSES:
        raise ValidationError(
            f"Result status must be 'completed' or 'failed', got '{parsed.value}'",
            error_code="VAL_003",
        )
    return parsed


def _parse_status(status: Union[TaskStatus, str]) -> TaskStatus:
    try:
        return TaskStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown task status: '{status}'", error_code="VAL_003") from None


# ============================================================================
# Cursor encoding
# ============================================================================


def encode_cursor(marker: str) -> str:
    """Wrap an internal position marker into an opaque cursor token."""
    return base64.urlsafe_b64encode(marker.encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> str:
    """
    Unwrap a cursor token produced by encode_cursor.

    Raises:
        ValidationError: cursor is empty or malformed
    """
    if not cursor:
        raise ValidationError("Invalid cursor: empty", error_code="VAL_004")
    try:
        return base64.urlsafe_b64decode(cursor.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise ValidationError(f"Invalid cursor: {cursor!r}", error_code="VAL_004") from None
