"""
Unit tests for the in-memory error store and backend selection.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from error_tracker.models.error import ErrorMeta
from error_tracker.services.error_store import InMemoryErrorStore, create_error_store
from error_tracker.services.mysql_store import MySQLErrorStore
from error_tracker.services.redis_store import RedisErrorStore


def _config(**overrides):
    values = {
        "db_enabled": True,
        "store_backend": None,
        "database_url": None,
        "redis_url": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def store():
    """Create a fresh in-memory store."""
    return InMemoryErrorStore()


class TestInMemoryErrorStore:
    """Test upsert, lookup and pruning on the in-memory backend."""

    @pytest.mark.asyncio
    async def test_first_capture_creates_record(self, store):
        """The first capture stores every field with one occurrence."""
        await store.record_error(
            error_id="a1b2c3d4",
            context="command:pay",
            message="boom",
            name="ValueError",
            stack="Traceback...",
            meta=ErrorMeta(user_id="42", command="pay"),
            guild_id="7",
            user_id="42",
            command="pay",
        )

        record = await store.get_by_id("a1b2c3d4")

        assert record is not None
        assert record.id == "a1b2c3d4"
        assert record.context == "command:pay"
        assert record.name == "ValueError"
        assert record.message == "boom"
        assert record.stack == "Traceback..."
        assert record.severity == "error"
        assert record.occurrences == 1
        assert record.meta == {"user_id": "42", "command": "pay"}
        assert record.timestamp.tzinfo is not None

    @pytest.mark.asyncio
    async def test_unknown_id_returns_none(self, store):
        """Lookups for unknown ids return None."""
        assert await store.get_by_id("deadbeef") is None

    @pytest.mark.asyncio
    async def test_repeated_captures_count_occurrences(self, store):
        """N captures of the same id leave one record with N occurrences."""
        for _ in range(4):
            await store.record_error(error_id="a1b2c3d4", context="command:pay", message="boom")

        record = await store.get_by_id("a1b2c3d4")
        assert record.occurrences == 4
        assert len(await store.list_latest(10)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_captures_count_every_occurrence(self, store):
        """Concurrent captures of one id are all counted."""
        await asyncio.gather(*[
            store.record_error(error_id="a1b2c3d4", context="command:pay", message="boom")
            for _ in range(25)
        ])

        record = await store.get_by_id("a1b2c3d4")
        assert record.occurrences == 25

    @pytest.mark.asyncio
    async def test_refresh_keeps_known_ids_when_new_value_is_null(self, store):
        """Null guild, user and command never erase stored values."""
        await store.record_error(
            error_id="a1b2c3d4", context="command:pay", message="boom",
            guild_id="G1", user_id="A", command="pay"
        )
        await store.record_error(error_id="a1b2c3d4", context="command:pay", message="boom")

        record = await store.get_by_id("a1b2c3d4")
        assert record.user_id == "A"
        assert record.guild_id == "G1"
        assert record.command == "pay"

        await store.record_error(error_id="a1b2c3d4", context="command:pay", message="boom", user_id="B")
        record = await store.get_by_id("a1b2c3d4")
        assert record.user_id == "B"
        assert record.occurrences == 3

    @pytest.mark.asyncio
    async def test_refresh_overwrites_context_meta_and_timestamp(self, store):
        """Context, meta and timestamp follow the latest capture."""
        first_seen = datetime.now(timezone.utc) - timedelta(hours=2)
        await store.record_error(
            error_id="a1b2c3d4", context="command:pay", message="boom",
            meta={"attempt": 1}, timestamp=first_seen
        )
        await store.record_error(
            error_id="a1b2c3d4", context="command:pay-retry", message="boom", meta={"attempt": 2}
        )

        record = await store.get_by_id("a1b2c3d4")
        assert record.context == "command:pay-retry"
        assert record.meta == {"attempt": 2}
        assert record.timestamp > first_seen

    @pytest.mark.asyncio
    async def test_refresh_keeps_first_name_message_stack_and_severity(self, store):
        """Identity fields keep the values from the first capture."""
        await store.record_error(
            error_id="a1b2c3d4", context="c", message="first", name="ValueError",
            stack="stack one", severity="critical"
        )
        await store.record_error(
            error_id="a1b2c3d4", context="c", message="second", name="TypeError",
            stack="stack two", severity="warning"
        )

        record = await store.get_by_id("a1b2c3d4")
        assert record.message == "first"
        assert record.name == "ValueError"
        assert record.stack == "stack one"
        assert record.severity == "critical"

    @pytest.mark.asyncio
    async def test_malformed_meta_returned_raw(self, store):
        """Stored metadata that is not JSON comes back as the raw string."""
        await store.record_error(error_id="a1b2c3d4", context="c", message="m", meta="{not json")

        record = await store.get_by_id("a1b2c3d4")
        assert record.meta == "{not json"

    @pytest.mark.asyncio
    async def test_list_latest_newest_first(self, store):
        """Records are listed by last-seen time, newest first."""
        now = datetime.now(timezone.utc)
        await store.record_error(error_id="00000001", context="c", message="old", timestamp=now - timedelta(hours=3))
        await store.record_error(error_id="00000002", context="c", message="new", timestamp=now)
        await store.record_error(error_id="00000003", context="c", message="mid", timestamp=now - timedelta(hours=1))

        latest = await store.list_latest(2)
        assert [record.id for record in latest] == ["00000002", "00000003"]

    @pytest.mark.asyncio
    async def test_prune_removes_only_stale_records(self, store):
        """Prune deletes records last seen before the cutoff and reports the count."""
        now = datetime.now(timezone.utc)
        await store.record_error(error_id="0000000a", context="c", message="old", timestamp=now - timedelta(days=40))
        await store.record_error(error_id="0000000b", context="c", message="recent", timestamp=now - timedelta(days=1))

        removed = await store.prune(30)

        assert removed == 1
        assert await store.get_by_id("0000000a") is None
        assert await store.get_by_id("0000000b") is not None

    @pytest.mark.asyncio
    async def test_prune_releases_locks_of_removed_records(self, store):
        """Pruned ids no longer hold a per-id lock."""
        now = datetime.now(timezone.utc)
        await store.record_error(error_id="0000000a", context="c", message="old", timestamp=now - timedelta(days=40))
        await store.record_error(error_id="0000000b", context="c", message="recent")

        await store.prune(30)

        assert set(store._locks) == {"0000000b"}

    @pytest.mark.asyncio
    async def test_prune_with_nothing_stale(self, store):
        """Prune on a fresh store removes nothing."""
        await store.record_error(error_id="0000000b", context="c", message="recent")
        assert await store.prune(30) == 0

    @pytest.mark.asyncio
    async def test_describe(self, store):
        """Describe reports the backend and record count."""
        await store.record_error(error_id="0000000b", context="c", message="m")
        assert store.describe() == "In-memory (1 records)"


class TestCreateErrorStore:
    """Test backend selection from configuration."""

    def test_disabled_returns_none(self):
        """Persistence can be switched off entirely."""
        assert create_error_store(_config(db_enabled=False, database_url="mysql://u:p@h/db")) is None

    def test_nothing_configured_returns_none(self):
        """Without URLs the tracker runs log-only."""
        assert create_error_store(_config()) is None

    def test_database_url_selects_mysql(self):
        """A database URL infers the MySQL backend."""
        store = create_error_store(_config(database_url="mysql://u:p@db:3306/errors"))
        assert isinstance(store, MySQLErrorStore)

    def test_redis_url_selects_redis(self):
        """A Redis URL infers the Redis backend when no database URL is set."""
        store = create_error_store(_config(redis_url="redis://localhost:6379"))
        assert isinstance(store, RedisErrorStore)

    def test_explicit_backend_wins(self):
        """An explicit backend overrides inference."""
        store = create_error_store(_config(
            store_backend="redis",
            database_url="mysql://u:p@db:3306/errors",
            redis_url="redis://localhost:6379",
        ))
        assert isinstance(store, RedisErrorStore)

    def test_memory_backend(self):
        """The memory backend needs no URL."""
        assert isinstance(create_error_store(_config(store_backend="memory")), InMemoryErrorStore)

    def test_missing_url_raises(self):
        """Selecting a backend without its URL is a configuration error."""
        with pytest.raises(ValueError, match="DATABASE_URL"):
            create_error_store(_config(store_backend="mysql"))

    def test_unknown_backend_raises(self):
        """Unknown backend names are rejected."""
        with pytest.raises(ValueError, match="Unknown store backend"):
            create_error_store(_config(store_backend="sqlite"))
