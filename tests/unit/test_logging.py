"""
Unit tests for LoggingService.

Tests logging configuration, logger creation and sensitive data
sanitization.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import json
from io import StringIO

import pytest

from tasklane_core.logging_service import REDACTED, LoggingConfig, LoggingService
from tasklane_core.utils import configure_logging, get_logger

# ============================================================
# FIXTURES
# ============================================================


@pytest.fixture(autouse=True)
def unconfigured_logging():
    """Start every test in this module from an unconfigured service."""
    LoggingService.reset()
    yield
    LoggingService.reset()


def _capture(**config_kwargs) -> StringIO:
    stream = StringIO()
    LoggingService.configure_logging(config=LoggingConfig(output_stream=stream, **config_kwargs))
    return stream


# ============================================================
# CONFIGURATION TESTS
# ============================================================


def test_configure_logging_success():
    LoggingService.configure_logging(level="info", format="json")

    assert LoggingService._configured is True
    assert LoggingService._log_level == "INFO"
    assert LoggingService._config.format == "json"


def test_configure_logging_with_config_object():
    config = LoggingConfig(level="DEBUG", format="console", sensitive_keys={"password"})

    LoggingService.configure_logging(config=config)

    assert LoggingService._config is config
    assert LoggingService._sensitive_keys == {"password"}


def test_configure_logging_twice_raises():
    LoggingService.configure_logging()

    with pytest.raises(RuntimeError, match="already configured"):
        LoggingService.configure_logging()


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        LoggingService.configure_logging(level="VERBOSE")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid format"):
        LoggingService.configure_logging(format="xml")


def test_default_sensitive_keys():
    config = LoggingConfig()

    assert "password" in config.sensitive_keys
    assert "token" in config.sensitive_keys


# ============================================================
# LOGGER TESTS
# ============================================================


def test_get_logger_before_configure():
    with pytest.raises(RuntimeError, match="not configured"):
        LoggingService.get_logger("tasklane.tasks")


def test_get_logger_cached():
    LoggingService.configure_logging()

    assert LoggingService.get_logger("tasklane.tasks") is LoggingService.get_logger(
        "tasklane.tasks"
    )


def test_get_logger_invalid_names():
    LoggingService.configure_logging()

    with pytest.raises(ValueError):
        LoggingService.get_logger("")

    with pytest.raises(ValueError):
        LoggingService.get_logger("x" * 201)


def test_json_output():
    stream = _capture(level="INFO")

    LoggingService.get_logger("tasklane.tests").info("task_created", task_id="task_abc")

    event = json.loads(stream.getvalue().strip())
    assert event["event"] == "task_created"
    assert event["task_id"] == "task_abc"
    assert event["level"] == "info"
    assert "timestamp" in event


def test_level_filtering():
    stream = _capture(level="WARNING")

    logger = LoggingService.get_logger("tasklane.tests")
    logger.info("hidden")
    logger.warning("shown")

    output = stream.getvalue()
    assert "hidden" not in output
    assert "shown" in output


# ============================================================
# SANITIZATION TESTS
# ============================================================


def test_sensitive_values_redacted_in_output():
    stream = _capture()

    LoggingService.get_logger("tasklane.tests").info(
        "task_launched",
        password="hunter2",
        request={"method": "export", "headers": {"Authorization": "Bearer abc"}},
    )

    event = json.loads(stream.getvalue().strip())
    assert event["password"] == REDACTED
    assert event["request"]["headers"]["Authorization"] == REDACTED
    assert event["request"]["method"] == "export"


def test_sanitization_can_be_disabled():
    stream = _capture(sanitize_sensitive=False)

    LoggingService.get_logger("tasklane.tests").info("event", token="abc")

    assert json.loads(stream.getvalue().strip())["token"] == "abc"


def test_sanitize_metadata_lists():
    LoggingService.configure_logging()

    sanitized = LoggingService._sanitize_metadata(
        {"items": [{"api_key": "k", "name": "a"}, "plain"], "count": 2}
    )

    assert sanitized == {"items": [{"api_key": REDACTED, "name": "a"}, "plain"], "count": 2}


# ============================================================
# LOGGER FACTORY TESTS
# ============================================================


def test_factory_uses_settings_defaults():
    configure_logging()

    assert LoggingService._configured is True
    assert LoggingService._log_level == "INFO"


def test_factory_explicit_values():
    configure_logging(level="DEBUG", format="console")

    assert LoggingService._log_level == "DEBUG"
    assert LoggingService._config.format == "console"


def test_factory_get_logger():
    configure_logging()

    assert get_logger("tasklane.tests") is LoggingService.get_logger("tasklane.tests")
