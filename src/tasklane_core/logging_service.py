"""
LoggingService - Centralized structured logging for Tasklane.

Configures structlog once per process so every module logger
(``structlog.get_logger(__name__)``) emits consistent, machine-readable
events to stderr.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "[REDACTED]"


@dataclass
class LoggingConfig:
    """
    Configuration for LoggingService.

    Attributes:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format ("json" or "console" for dev)
        output_stream: Output destination (default: sys.stderr)
        sanitize_sensitive: Whether to redact sensitive values in log events
        sensitive_keys: Set of keys to redact (e.g., "password", "token")
    """

    level: str = "INFO"
    format: str = "json"  # "json" or "console"
    output_stream: Any = sys.stderr
    sanitize_sensitive: bool = True
    sensitive_keys: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        if not self.sensitive_keys:
            self.sensitive_keys = {
                "password",
                "passwd",
                "pwd",
                "api_key",
                "apikey",
                "token",
                "access_token",
                "refresh_token",
                "secret",
                "auth",
                "authorization",
            }


class LoggingService:
    """
    Centralized structured logging service using structlog.

    Features:
        - JSON (default) or colored console rendering to stderr
        - ISO timestamps and log level on every event
        - Redaction of sensitive keys, including inside nested payloads
          such as a task's originating request

    Example:
        # Setup logging once at startup
        LoggingService.configure_logging(level="INFO", format="json")

        logger = LoggingService.get_logger("tasklane.tasks")
        logger.info("task_created", task_id="task_abc", ttl=60000)
    """

    # Class-level state
    _configured: bool = False
    _log_level: str = "INFO"
    _config: Optional[LoggingConfig] = None
    _loggers: dict[str, structlog.BoundLogger] = {}
    _sensitive_keys: set[str] = set()

    @classmethod
    def configure_logging(
        cls, level: str = "INFO", format: str = "json", config: Optional[LoggingConfig] = None
    ) -> None:
        """
        Configure global structured logging infrastructure.

        This should be called ONCE at application startup before any logging.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            format: Output format ("json" or "console")
            config: Optional LoggingConfig for advanced configuration

        Raises:
            ValueError: If level or format is invalid
            RuntimeError: If called after logging already configured
        """
        if cls._configured:
            raise RuntimeError("Logging already configured")

        if config is not None:
            cfg = config
        else:
            level_upper = level.upper()
            if level_upper not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                raise ValueError(
                    f"Invalid log level: {level}. "
                    "Must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL"
                )

            format_lower = format.lower()
            if format_lower not in ["json", "console"]:
                raise ValueError(f"Invalid format: {format}. Must be 'json' or 'console'")

            cfg = LoggingConfig(level=level_upper, format=format_lower)

        cls._config = cfg
        cls._log_level = cfg.level
        cls._sensitive_keys = cfg.sensitive_keys

        structlog.configure(
            processors=cls._setup_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, cfg.level)),
            context_class=dict,
            logger_factory=structlog.PrintLoggerFactory(file=cfg.output_stream),
            cache_logger_on_first_use=True,
        )

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> structlog.BoundLogger:
        """
        Get a module/component-specific logger.

        Raises:
            RuntimeError: If logging not configured yet
            ValueError: If name is empty or too long
        """
        if not cls._configured:
            raise RuntimeError("Logging not configured. Call configure_logging() first.")

        if not name:
            raise ValueError("Logger name cannot be empty")

        if len(name) > 200:
            raise ValueError("Logger name exceeds maximum length (200)")

        if name in cls._loggers:
            return cls._loggers[name]

        logger = structlog.get_logger(name)
        cls._loggers[name] = logger
        return logger

    @classmethod
    def reset(cls) -> None:
        """Forget the current configuration (tests and re-initialization)."""
        cls._configured = False
        cls._log_level = "INFO"
        cls._config = None
        cls._loggers = {}
        cls._sensitive_keys = set()
        structlog.reset_defaults()

    @classmethod
    def _sanitize_metadata(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Replace values of sensitive keys with "[REDACTED]".

        Recursively processes nested dictionaries and lists.
        """
        if not isinstance(data, dict):
            return data

        sanitized: Dict[str, Any] = {}

        for key, value in data.items():
            if isinstance(key, str) and key.lower() in cls._sensitive_keys:
                sanitized[key] = REDACTED
            elif isinstance(value, dict):
                sanitized[key] = cls._sanitize_metadata(value)
            elif isinstance(value, list):
                sanitized[key] = [
                    cls._sanitize_metadata(item) if isinstance(item, dict) else item
                    for item in value
                ]
            else:
                sanitized[key] = value

        return sanitized

    @classmethod
    def _redact_processor(
        cls, logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        return cls._sanitize_metadata(event_dict)

    @classmethod
    def _setup_processors(cls) -> list[Processor]:
        """
        Build the structlog processor chain.

        Processors (in order):
            1. add_log_level
            2. TimeStamper (ISO)
            3. Sensitive-key redaction (when enabled)
            4. StackInfoRenderer
            5. format_exc_info
            6. JSONRenderer or ConsoleRenderer
        """
        processors: list[Processor] = [
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ]

        if cls._config is None or cls._config.sanitize_sensitive:
            processors.append(cls._redact_processor)

        processors.extend(
            [
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
            ]
        )

        if cls._config and cls._config.format == "console":
            processors.append(structlog.dev.ConsoleRenderer(colors=True))
        else:
            processors.append(structlog.processors.JSONRenderer())

        return processors
