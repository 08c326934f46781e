"""
Exception hierarchy for Tasklane.

Defines the base error type with error codes, transient flags and correlation
IDs, plus the core-layer errors shared by the task subsystem.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

import uuid
from typing import Any, Dict, Optional


class TasklaneError(Exception):
    """
    Base exception for all Tasklane errors.

    All Tasklane exceptions inherit from this class. Provides standard
    error attributes: message, error_code, details, correlation_id.

    Attributes:
        message: Human-readable error message
        error_code: Programmatic error code (e.g., "ERR_001")
        details: Additional context (dict)
        correlation_id: UUID for tracing across layers
        original_exception: Wrapped exception (if any)
        is_transient: Whether error is transient (retryable)

    Example:
        raise TasklaneError(
            message="Operation failed",
            error_code="ERR_UNKNOWN",
            details={"task_id": "task_abc"},
        )
    """

    def __init__(
        self,
        message: str,
        error_code: str = "ERR_UNKNOWN",
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        """
        Initialize TasklaneError.

        Args:
            message: Error message
            error_code: Error code for programmatic handling
            details: Additional context dict
            correlation_id: UUID for request tracing
            original_exception: Original wrapped exception
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.original_exception = original_exception
        self.is_transient = False  # Default: not retryable

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for logging/serialization.

        Returns:
            Dictionary with all error information
        """
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "correlation_id": self.correlation_id,
            "original_error": str(self.original_exception) if self.original_exception else None,
        }


class ValidationError(TasklaneError):
    """
    Raised when input validation fails.

    Error Codes:
        VAL_001: Missing required field
        VAL_002: Invalid field type
        VAL_003: Field value out of range
        VAL_004: Invalid field format (e.g. malformed cursor)

    Not transient (caller input errors should not be retried).
    """

    def __init__(self, message: str, error_code: str = "VAL_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False


class ConfigurationError(TasklaneError):
    """
    Raised when a component is constructed with an invalid combination of options.

    Error Codes:
        CONF_001: Invalid or inconsistent options
        CONF_002: Required collaborator missing (e.g. no storage provider)

    Not transient (configuration must be fixed before retrying).
    """

    def __init__(self, message: str, error_code: str = "CONF_001", **kwargs):
        super().__init__(message=message, error_code=error_code, **kwargs)
        self.is_transient = False
