"""
Logger Factory - Convenience wrapper for LoggingService.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

from typing import Optional

import structlog

from tasklane_core.config import settings
from tasklane_core.logging_service import LoggingService


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a module/component-specific logger.

    Args:
        name: Logger name (typically module path or __name__)

    Raises:
        RuntimeError: If logging not configured yet (call configure_logging() first)
        ValueError: If name is empty or exceeds maximum length (200 chars)
    """
    return LoggingService.get_logger(name)


def configure_logging(level: Optional[str] = None, format: Optional[str] = None) -> None:
    """
    Configure structured logging from explicit values or the environment.

    Falls back to settings.log_level / settings.log_format, so
    LOG_LEVEL=DEBUG LOG_FORMAT=console works with no code changes.
    Call ONCE at application startup.

    Raises:
        ValueError: If level or format is invalid
        RuntimeError: If called after logging already configured
    """
    LoggingService.configure_logging(
        level=level if level is not None else settings.log_level,
        format=format if format is not None else settings.log_format,
    )
