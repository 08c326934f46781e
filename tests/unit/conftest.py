"""
Unit test fixtures.

Isolates unit tests from environment variables (.env file)
to ensure tests verify actual default values.

Copyright (c) 2025 Goncharenko Anton aka alienxs2
License: MIT
"""

import os

import pytest


# Environment variables that affect TasklaneSettings defaults
CONFIG_ENV_VARS = [
    "TASK_STORE_TYPE",
    "TASK_STORE_TENANT_ID",
    "TASK_STORE_KEY_PREFIX",
    "TASK_STORE_DEFAULT_TTL_MS",
    "TASK_STORE_PAGE_SIZE",
    "TASK_DEFAULT_POLL_INTERVAL_MS",
    "TASK_SWEEP_INTERVAL_SECONDS",
    "TASK_MESSAGE_QUEUE_MAX_SIZE",
    "STORAGE_PROVIDER_TYPE",
    "REDIS_HOST",
    "REDIS_PORT",
    "REDIS_DB",
    "REDIS_PASSWORD",
    "REDIS_TTL_SECONDS",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env_for_unit_tests(monkeypatch, tmp_path):
    """
    Remove all config-related environment variables and change working
    directory to avoid loading .env file.

    This ensures unit tests verify actual default values, not values
    from .env file or system environment.
    """
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    # Change to temp directory to avoid loading .env from project root
    original_dir = os.getcwd()
    os.chdir(tmp_path)
    yield
    os.chdir(original_dir)
