"""
Unit tests for StorageBackedTaskStore.

Uses the in-memory storage provider so tests exercise real key layout,
tenant isolation, TTL propagation, pagination and per-task locking without
a running Redis server.

Author: Goncharenko Anton aka alienxs2
License: MIT
"""

import asyncio
from contextlib import ExitStack, contextmanager
from datetime import timedelta
from unittest.mock import patch

import pytest

from tasklane_core.exceptions import ConfigurationError, ValidationError
from tasklane_core.tasks import (
    InvalidTaskTransitionError,
    NoResultStoredError,
    ResultAlreadyStoredError,
    StorageBackedTaskStore,
    TaskNotFoundError,
    TaskStatus,
)
from tasklane_core.tasks.models import utc_now
from tasklane_core.tasks.store import encode_cursor
from tasklane_db.in_memory_provider import InMemoryStorageProvider
from tasklane_db.redis_cache.cache_client import DeserializationError

# ============================================================================
# Test Fixtures
# ============================================================================


class RecordingProvider(InMemoryStorageProvider):
    """In-memory provider that remembers the TTL of every write."""

    def __init__(self):
        super().__init__()
        self.writes = []

    async def set(self, key, value, ttl=None):
        self.writes.append((key, ttl))
        await super().set(key, value, ttl=ttl)


class YieldingProvider(InMemoryStorageProvider):
    """Provider that suspends on every read, so racing writers interleave."""

    async def get(self, key):
        await asyncio.sleep(0)
        return await super().get(key)


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def store(provider):
    return StorageBackedTaskStore(provider, tenant_id="acme", page_size=2)


CLOCKS = (
    "tasklane_core.tasks.models.utc_now",
    "tasklane_core.tasks.storage_backed_store.utc_now",
)


@contextmanager
def advance_clock(milliseconds: int):
    """Make every clock the store reads report ``milliseconds`` in the future."""
    future = utc_now() + timedelta(milliseconds=milliseconds)
    with ExitStack() as stack:
        for target in CLOCKS:
            stack.enter_context(patch(target, return_value=future))
        yield future


# ============================================================================
# Initialization Tests
# ============================================================================


class TestInitialization:
    def test_defaults(self, provider):
        store = StorageBackedTaskStore(provider)

        assert store.tenant_id == "system-tasks"
        assert store.key_prefix == "tasks"
        assert store.default_ttl is None
        assert store.page_size == 10
        assert store.default_poll_interval == 1000

    def test_missing_provider(self):
        with pytest.raises(ConfigurationError) as exc_info:
            StorageBackedTaskStore(None)

        assert exc_info.value.error_code == "CONF_002"

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"tenant_id": ""},
            {"tenant_id": "acme:eu"},
            {"key_prefix": ""},
            {"key_prefix": "a:b"},
            {"default_ttl": 0},
            {"page_size": 0},
            {"default_poll_interval": -5},
        ],
    )
    def test_invalid_options(self, provider, kwargs):
        with pytest.raises(ConfigurationError):
            StorageBackedTaskStore(provider, **kwargs)


# ============================================================================
# Key Layout and TTL Tests
# ============================================================================


class TestKeyLayout:
    @pytest.mark.asyncio
    async def test_record_key(self, store, provider):
        task = await store.create_task()

        keys = await provider.list("")
        assert keys == [f"acme:tasks:{task.task_id}"]

    @pytest.mark.asyncio
    async def test_custom_key_prefix(self, provider):
        store = StorageBackedTaskStore(provider, tenant_id="acme", key_prefix="jobs")

        task = await store.create_task()

        assert await provider.get(f"acme:jobs:{task.task_id}") is not None

    @pytest.mark.asyncio
    async def test_ttl_passed_in_whole_seconds(self, store, provider):
        await store.create_task({"ttl": 1500})
        await store.create_task({"ttl": 2000})
        await store.create_task()

        assert [ttl for _, ttl in provider.writes] == [2, 2, None]

    @pytest.mark.asyncio
    async def test_every_write_refreshes_ttl(self, store, provider):
        task = await store.create_task({"ttl": 60_000})

        await store.update_task_status(task.task_id, "working", "halfway")
        await store.store_task_result(task.task_id, "completed", {"ok": True})

        assert [ttl for _, ttl in provider.writes] == [60, 60, 60]

    @pytest.mark.asyncio
    async def test_store_default_ttl(self, provider):
        store = StorageBackedTaskStore(provider, default_ttl=10_000)

        task = await store.create_task()

        assert task.ttl == 10_000
        assert provider.writes[-1][1] == 10

    @pytest.mark.asyncio
    async def test_empty_task_id_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.get_task("")


# ============================================================================
# Lifecycle Tests
# ============================================================================


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        task = await store.create_task({"poll_interval": 250}, "req-9", {"method": "export"})

        fetched = await store.get_task(task.task_id)

        assert fetched == task
        assert fetched.originating_request_id == "req-9"
        assert fetched.poll_interval == 250

    @pytest.mark.asyncio
    async def test_records_survive_new_store_instance(self, store, provider):
        task = await store.create_task()
        await store.store_task_result(task.task_id, "completed", {"rows": 1})

        reopened = StorageBackedTaskStore(provider, tenant_id="acme")

        assert await reopened.get_task_result(task.task_id) == {"rows": 1}

    @pytest.mark.asyncio
    async def test_status_update(self, store):
        task = await store.create_task()

        await store.update_task_status(task.task_id, "working", "50%")

        fetched = await store.get_task(task.task_id)
        assert fetched.status_message == "50%"
        assert fetched.last_updated_at > task.last_updated_at

    @pytest.mark.asyncio
    async def test_terminal_is_final(self, store):
        task = await store.create_task()
        await store.update_task_status(task.task_id, "failed", "crashed")

        with pytest.raises(InvalidTaskTransitionError):
            await store.update_task_status(task.task_id, "working")

        assert (await store.get_task(task.task_id)).status == TaskStatus.FAILED

    @pytest.mark.asyncio
    async def test_result_lifecycle(self, store):
        task = await store.create_task()

        with pytest.raises(NoResultStoredError):
            await store.get_task_result(task.task_id)

        await store.store_task_result(task.task_id, "completed", {"rows": 3})

        assert await store.get_task_result(task.task_id) == {"rows": 3}
        with pytest.raises(ResultAlreadyStoredError):
            await store.store_task_result(task.task_id, "failed", {"error": "late"})

    @pytest.mark.asyncio
    async def test_unknown_task(self, store):
        assert await store.get_task("task_missing") is None
        with pytest.raises(TaskNotFoundError):
            await store.update_task_status("task_missing", "working")
        with pytest.raises(TaskNotFoundError):
            await store.get_task_result("task_missing")

    @pytest.mark.asyncio
    async def test_racing_terminal_transitions(self):
        """Per-task locking lets exactly one concurrent terminal write win."""
        store = StorageBackedTaskStore(YieldingProvider(), tenant_id="acme")
        task = await store.create_task()

        outcomes = await asyncio.gather(
            store.store_task_result(task.task_id, "completed", {"writer": "a"}),
            store.store_task_result(task.task_id, "failed", {"writer": "b"}),
            store.update_task_status(task.task_id, "cancelled"),
            return_exceptions=True,
        )

        assert sum(1 for o in outcomes if o is None) == 1
        assert all(
            isinstance(o, InvalidTaskTransitionError) for o in outcomes if o is not None
        )


# ============================================================================
# Tenant Isolation Tests
# ============================================================================


class TestTenantIsolation:
    @pytest.mark.asyncio
    async def test_tenants_do_not_see_each_other(self, provider):
        acme = StorageBackedTaskStore(provider, tenant_id="acme")
        globex = StorageBackedTaskStore(provider, tenant_id="globex")

        acme_task = await acme.create_task()
        globex_task = await globex.create_task()

        assert await acme.get_task(globex_task.task_id) is None
        assert [t.task_id for t in (await acme.list_tasks()).tasks] == [acme_task.task_id]
        with pytest.raises(TaskNotFoundError):
            await acme.update_task_status(globex_task.task_id, "cancelled")

    @pytest.mark.asyncio
    async def test_prefix_sharing_tenant_names(self, provider):
        """A tenant whose name extends another's never leaks into its scope."""
        acme = StorageBackedTaskStore(provider, tenant_id="acme")
        acme2 = StorageBackedTaskStore(provider, tenant_id="acme2")

        await acme2.create_task()

        assert (await acme.list_tasks()).tasks == []

    @pytest.mark.asyncio
    async def test_clear_only_own_scope(self, provider):
        acme = StorageBackedTaskStore(provider, tenant_id="acme")
        globex = StorageBackedTaskStore(provider, tenant_id="globex")
        await acme.create_task()
        survivor = await globex.create_task()

        await acme.clear_all_tasks()

        assert (await acme.list_tasks()).tasks == []
        assert await globex.get_task(survivor.task_id) is not None

    @pytest.mark.asyncio
    async def test_delete_other_tenant_task_is_noop(self, provider):
        acme = StorageBackedTaskStore(provider, tenant_id="acme")
        globex = StorageBackedTaskStore(provider, tenant_id="globex")
        task = await globex.create_task()

        await acme.delete_task(task.task_id)

        assert await globex.get_task(task.task_id) is not None

    @pytest.mark.asyncio
    async def test_foreign_cursor_rejected(self, store):
        with pytest.raises(ValidationError) as exc_info:
            await store.list_tasks(encode_cursor("globex:tasks:task_1"))

        assert exc_info.value.error_code == "VAL_004"


# ============================================================================
# Listing Tests
# ============================================================================


class TestListTasks:
    @pytest.mark.asyncio
    async def test_pagination_visits_every_task_once(self, store):
        created = {(await store.create_task()).task_id for _ in range(5)}

        seen = []
        cursor = None
        while True:
            page = await store.list_tasks(cursor)
            assert len(page.tasks) <= 2
            seen.extend(task.task_id for task in page.tasks)
            if page.next_cursor is None:
                break
            cursor = page.next_cursor

        assert len(seen) == 5
        assert set(seen) == created

    @pytest.mark.asyncio
    async def test_exact_page_has_no_cursor(self, store):
        await store.create_task()
        await store.create_task()

        page = await store.list_tasks()

        assert len(page.tasks) == 2
        assert page.next_cursor is None

    @pytest.mark.asyncio
    async def test_malformed_cursor(self, store):
        with pytest.raises(ValidationError):
            await store.list_tasks("%%%")


# ============================================================================
# Expiry Tests
# ============================================================================


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expired_record_not_returned(self, store):
        """Record expiry is checked even when the provider still holds the key."""
        task = await store.create_task({"ttl": 60_000})

        with advance_clock(61_000):
            assert await store.get_task(task.task_id) is None
            assert (await store.list_tasks()).tasks == []
            with pytest.raises(TaskNotFoundError):
                await store.store_task_result(task.task_id, "completed", {})

    @pytest.mark.asyncio
    async def test_purge_expired(self, store, provider):
        await store.create_task({"ttl": 60_000})
        keeper = await store.create_task()

        with advance_clock(61_000):
            removed = await store.purge_expired()

        assert removed == 1
        assert await provider.list("acme:tasks:") == [f"acme:tasks:{keeper.task_id}"]


# ============================================================================
# Malformed Record Tests
# ============================================================================


class TestMalformedRecords:
    @pytest.mark.asyncio
    async def test_listing_skips_malformed_value(self, store, provider):
        good = await store.create_task()
        await provider.set("acme:tasks:task_broken", {"status": "exploded"})

        page = await store.list_tasks()

        assert [t.task_id for t in page.tasks] == [good.task_id]

    @pytest.mark.asyncio
    async def test_read_by_id_raises_provider_error(self, store, provider):
        await provider.set("acme:tasks:task_broken", "not a record")

        with pytest.raises(DeserializationError):
            await store.get_task("task_broken")

    @pytest.mark.asyncio
    async def test_purge_skips_malformed_value(self, store, provider):
        await store.create_task({"ttl": 60_000})
        await provider.set("acme:tasks:task_broken", {"task_id": ""})

        with advance_clock(61_000):
            removed = await store.purge_expired()

        assert removed == 1
        assert await provider.get("acme:tasks:task_broken") == {"task_id": ""}
