"""
Task-specific exceptions.

Defines error types raised by task stores, the message queue and the
task manager.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from tasklane_core.exceptions import TasklaneError


class TaskError(TasklaneError):
    """
    Base exception for task lifecycle errors.

    Error Codes:
        TASK_001: Generic task error
        TASK_002: Task message queue full
        TASK_003: Task not found
        TASK_004: Transition out of a terminal status
        TASK_005: Result already stored
        TASK_006: No result stored
        TASK_007: Task manager shutting down

    Attributes:
        message: Human-readable error message
        error_code: Programmatic error code
        details: Additional context
        correlation_id: UUID for tracing
    """

    def __init__(self, message: str, error_code: str = "TASK_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False


class TaskNotFoundError(TaskError):
    """
    Raised when a task_id is unknown or its record has expired.

    Error Code: TASK_003
    Not transient (invalid task ID should not be retried).
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="TASK_003", **kwargs)
        self.is_transient = False


class InvalidTaskTransitionError(TaskError):
    """
    Raised when a status update or result store targets a terminal task.

    Error Code: TASK_004
    Not transient (terminal states never change).
    """

    def __init__(self, message: str, error_code: str = "TASK_004", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False


class ResultAlreadyStoredError(InvalidTaskTransitionError):
    """
    Raised on a second store_task_result call for the same task.

    Error Code: TASK_005
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="TASK_005", **kwargs)


class NoResultStoredError(TaskError):
    """
    Raised when a result is requested before one has been stored.

    Error Code: TASK_006
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="TASK_006", **kwargs)
        self.is_transient = False


class TaskQueueFullError(TaskError):
    """
    Raised when a task's message queue is at capacity.

    Error Code: TASK_002
    Transient (can retry once the consumer drains the queue).
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="TASK_002", **kwargs)
        self.is_transient = True


class TaskManagerShutdownError(TaskError):
    """
    Raised when new work is launched after the task manager began cleanup.

    Error Code: TASK_007
    """

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, error_code="TASK_007", **kwargs)
        self.is_transient = False
