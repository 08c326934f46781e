"""
Configuration Management for Tasklane.

Provides centralized, type-safe configuration loading using Pydantic Settings.
Supports environment variables, .env files, and sensible defaults for zero-config operation.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

from typing import Any, Dict, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings

TASK_STORE_TYPES = ["in-memory", "storage"]
STORAGE_PROVIDER_TYPES = ["in-memory", "redis"]


class TasklaneSettings(BaseSettings):
    """
    Centralized configuration for the Tasklane task subsystem.

    Configuration is loaded with the following priority (highest to lowest):
    1. System environment variables (e.g. TASK_STORE_TYPE=storage)
    2. .env file in the working directory
    3. Hardcoded default values

    Example:
        ```python
        from tasklane_core.config import TasklaneSettings
        from tasklane_core.tasks import create_task_manager

        config = TasklaneSettings(task_store_type="storage", task_store_tenant_id="acme")
        manager = create_task_manager(config)
        ```
    """

    # ========================================
    # TASK STORE CONFIGURATION
    # ========================================

    task_store_type: str = Field(
        default="in-memory", description="Task store implementation: 'in-memory' or 'storage'"
    )

    task_store_tenant_id: str = Field(
        default="system-tasks", description="Tenant namespace for the storage-backed store"
    )

    task_store_key_prefix: str = Field(
        default="tasks", description="Key namespace within the tenant for task records"
    )

    task_store_default_ttl_ms: Optional[int] = Field(
        default=None, gt=0, description="Default task TTL in milliseconds (None = never expires)"
    )

    task_store_page_size: int = Field(
        default=10, ge=1, le=1000, description="Maximum tasks returned per list page"
    )

    task_default_poll_interval_ms: int = Field(
        default=1000, ge=0, le=3_600_000, description="Advisory poll interval for new tasks"
    )

    task_sweep_interval_seconds: float = Field(
        default=0, ge=0, description="Expired-task sweep interval in seconds (0 = disabled)"
    )

    task_message_queue_max_size: Optional[int] = Field(
        default=None, ge=1, description="Per-task message queue capacity (None = unbounded)"
    )

    # ========================================
    # STORAGE PROVIDER CONFIGURATION
    # ========================================

    storage_provider_type: str = Field(
        default="in-memory", description="Key-value provider: 'in-memory' or 'redis'"
    )

    redis_host: str = Field(default="localhost", description="Redis server hostname")

    redis_port: int = Field(
        default=6380,
        ge=1,
        le=65535,
        description="Redis server port",
    )

    redis_db: int = Field(default=0, ge=0, le=15, description="Redis database number")

    redis_password: Optional[SecretStr] = Field(
        default=None, description="Redis authentication password (if required)"
    )

    redis_ttl_seconds: Optional[int] = Field(
        default=None,
        ge=1,
        description="Default Redis key TTL in seconds for writes without one (None = no expiry)",
    )

    # ========================================
    # LOGGING CONFIGURATION
    # ========================================

    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(default="json", description="Log format (json, console)")

    # ========================================
    # VALIDATORS
    # ========================================

    @field_validator("task_store_type")
    @classmethod
    def validate_task_store_type(cls, v: str) -> str:
        """
        Validate the task store type.

        Raises:
            ValueError: If not one of TASK_STORE_TYPES
        """
        v_lower = v.lower()
        if v_lower not in TASK_STORE_TYPES:
            raise ValueError(f"task_store_type must be one of {TASK_STORE_TYPES}, got '{v}'")
        return v_lower

    @field_validator("storage_provider_type")
    @classmethod
    def validate_storage_provider_type(cls, v: str) -> str:
        v_lower = v.lower()
        if v_lower not in STORAGE_PROVIDER_TYPES:
            raise ValueError(
                f"storage_provider_type must be one of {STORAGE_PROVIDER_TYPES}, got '{v}'"
            )
        return v_lower

    @field_validator("task_store_tenant_id", "task_store_key_prefix")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """
        Validate a key namespace component.

        Raises:
            ValueError: If empty or containing ':' (the key separator)
        """
        if not v:
            raise ValueError("namespace cannot be empty")
        if ":" in v:
            raise ValueError(f"namespace cannot contain ':', got '{v}'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """
        Validate log level is one of allowed values.

        Returns:
            Uppercase log level string

        Raises:
            ValueError: If log level not in allowed values
        """
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got '{v}'")
        return v_lower

    # ========================================
    # COMPUTED PROPERTIES
    # ========================================

    @property
    def redis_connection_string(self) -> str:
        """
        Get Redis connection string.

        Returns:
            Connection string in format: redis://host:port/db
        """
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def is_development(self) -> bool:
        return self.log_level == "DEBUG"

    # ========================================
    # PYDANTIC CONFIGURATION
    # ========================================

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "validate_assignment": True,
        "extra": "forbid",
    }


# ============================================================
# HELPER FUNCTIONS
# ============================================================


def get_config_summary(settings: TasklaneSettings) -> Dict[str, Any]:
    """
    Get configuration summary for logging/debugging with sensitive values masked.

    Args:
        settings: TasklaneSettings instance

    Returns:
        Configuration summary grouped by category
    """
    return {
        "tasks": {
            "store_type": settings.task_store_type,
            "tenant_id": settings.task_store_tenant_id,
            "key_prefix": settings.task_store_key_prefix,
            "default_ttl_ms": settings.task_store_default_ttl_ms,
            "page_size": settings.task_store_page_size,
            "poll_interval_ms": settings.task_default_poll_interval_ms,
            "sweep_interval_seconds": settings.task_sweep_interval_seconds,
            "message_queue_max_size": settings.task_message_queue_max_size,
        },
        "storage": {
            "provider_type": settings.storage_provider_type,
            "redis_host": settings.redis_host,
            "redis_port": settings.redis_port,
            "redis_db": settings.redis_db,
            "redis_password": "***" if settings.redis_password else None,
        },
        "logging": {
            "level": settings.log_level,
            "format": settings.log_format,
        },
    }


def validate_configuration(settings: TasklaneSettings) -> tuple[bool, list[str]]:
    """
    Perform cross-field validation beyond Pydantic checks.

    Args:
        settings: TasklaneSettings instance to validate

    Returns:
        Tuple of (is_valid, errors)
    """
    errors = []

    if (
        settings.task_store_type == "storage"
        and settings.storage_provider_type == "redis"
        and settings.redis_ttl_seconds is not None
        and settings.task_store_default_ttl_ms is None
    ):
        errors.append(
            "redis_ttl_seconds would expire tasks created without a TTL; "
            "set task_store_default_ttl_ms instead"
        )

    if settings.task_store_type == "in-memory" and settings.storage_provider_type != "in-memory":
        errors.append(
            f"storage_provider_type '{settings.storage_provider_type}' is ignored "
            "when task_store_type is 'in-memory'"
        )

    return (len(errors) == 0, errors)


# Singleton instance - instantiated once at module import, used for logging bootstrap
settings = TasklaneSettings()
