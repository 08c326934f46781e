"""
Task data models.

Defines the task status state machine, the TaskRecord entity shared by all
task stores, creation options and the paginated listing result.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

TASK_ID_PREFIX = "task_"
DEFAULT_POLL_INTERVAL_MS = 1000
DEFAULT_PAGE_SIZE = 10

RequestId = Union[str, int]


class TaskStatus(str, Enum):
    """
    Task lifecycle states.

    Attributes:
        WORKING: Task is executing (the only non-terminal state)
        COMPLETED: Task finished and stored a result
        FAILED: Task finished with an error result
        CANCELLED: Task was cancelled before producing a result
    """

    WORKING = "working"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED})
RESULT_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


def is_terminal(status: Union[TaskStatus, str]) -> bool:
    """Return True if no further transitions are allowed out of ``status``."""
    return TaskStatus(status) in TERMINAL_STATUSES


def generate_task_id() -> str:
    """Generate a task id of the form ``task_<16 hex chars>``."""
    return f"{TASK_ID_PREFIX}{uuid.uuid4().hex[:16]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_timestamp(previous: Optional[datetime] = None) -> datetime:
    """
    Return the current UTC time, nudged forward so it is strictly after ``previous``.

    Two mutations inside the same clock tick would otherwise share a
    timestamp; last_updated_at must strictly increase per task.
    """
    now = utc_now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


class CreateTaskOptions(BaseModel):
    """
    Options accepted by TaskStore.create_task.

    Both durations are in milliseconds. Unset values fall back to the
    store's defaults.
    """

    ttl: Optional[int] = Field(default=None, gt=0)
    poll_interval: Optional[int] = Field(default=None, ge=0)


class TaskRecord(BaseModel):
    """
    One asynchronous operation, from creation to a terminal outcome.

    Attributes:
        task_id: Opaque unique identifier (``task_<random>``)
        status: Current TaskStatus
        status_message: Optional progress note, changes only while working
        ttl: Lifetime in milliseconds measured from last_updated_at (None = forever)
        poll_interval: Advisory re-poll interval in milliseconds
        created_at: Creation timestamp (UTC)
        last_updated_at: Timestamp of the latest mutation (UTC)
        originating_request_id: Id of the operation that spawned the task
        originating_request: Payload of that operation
        result: Terminal result payload (None until stored)
    """

    task_id: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.WORKING
    status_message: Optional[str] = None
    ttl: Optional[int] = Field(default=None, gt=0)
    poll_interval: int = Field(default=DEFAULT_POLL_INTERVAL_MS, ge=0)
    created_at: datetime
    last_updated_at: datetime
    originating_request_id: Optional[RequestId] = None
    originating_request: Optional[Any] = None
    result: Optional[Any] = None

    @property
    def expires_at(self) -> Optional[datetime]:
        if self.ttl is None:
            return None
        return self.last_updated_at + timedelta(milliseconds=self.ttl)

    @property
    def has_result(self) -> bool:
        return self.result is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return True once the record's TTL has elapsed."""
        expires_at = self.expires_at
        if expires_at is None:
            return False
        return (now or utc_now()) >= expires_at

    def to_storage(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict for a key-value provider."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> "TaskRecord":
        return cls.model_validate(data)


@dataclass
class ListTasksResult:
    """One page of tasks; next_cursor is set only when more may follow."""

    tasks: List[TaskRecord] = field(default_factory=list)
    next_cursor: Optional[str] = None
