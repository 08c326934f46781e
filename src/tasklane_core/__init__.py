"""
Tasklane Core Layer.

Contains:
- Exception hierarchy
- Configuration management
- Logging service
- Task lifecycle management (stores, message queue, manager)

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

from .config import (
    TasklaneSettings,
    get_config_summary,
    settings,
    validate_configuration,
)
from .exceptions import (
    ConfigurationError,
    TasklaneError,
    ValidationError,
)
from .logging_service import (
    LoggingConfig,
    LoggingService,
)

__all__ = [
    "TasklaneSettings",
    "settings",
    "get_config_summary",
    "validate_configuration",
    "TasklaneError",
    "ValidationError",
    "ConfigurationError",
    "LoggingConfig",
    "LoggingService",
]
