"""Unit tests for the namespaced CacheService."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from pydantic import BaseModel

from app.adapters.store.base import AbstractStoreConnection
from app.core.errors import StoreUnavailableError, ValidationAppError
from app.services.cache_service import CacheService


@pytest.fixture
def cache(memory_store) -> CacheService:
    return CacheService(memory_store, "testing")


class TaskSummary(BaseModel):
    id: int
    title: str


@dataclass
class Counter:
    name: str
    value: int


@pytest.mark.asyncio
async def test_keys_are_namespaced_by_environment(cache, memory_store) -> None:
    await cache.set("tasks:1", {"a": 1})

    assert cache.namespace == "taskflow:testing:"
    assert await memory_store.get("taskflow:testing:tasks:1") == b'{"a":1}'
    assert await memory_store.get("tasks:1") is None


@pytest.mark.asyncio
async def test_environments_do_not_collide(memory_store) -> None:
    staging = CacheService(memory_store, "staging")
    production = CacheService(memory_store, "production")

    await staging.set("k", "staging-value")

    assert await production.get("k") is None
    assert await staging.get("k") == "staging-value"


@pytest.mark.asyncio
async def test_copy_isolation_on_read(cache) -> None:
    await cache.set("k", {"a": 1})

    first = await cache.get("k")
    first["a"] = 99

    assert await cache.get("k") == {"a": 1}


@pytest.mark.asyncio
async def test_copy_isolation_on_write(cache) -> None:
    value = {"a": 1, "nested": {"items": [1, 2]}}
    await cache.set("k", value)

    value["a"] = 99
    value["nested"]["items"].append(3)

    assert await cache.get("k") == {"a": 1, "nested": {"items": [1, 2]}}


@pytest.mark.asyncio
async def test_models_and_dataclasses_round_trip_as_plain_data(cache) -> None:
    await cache.set("model", TaskSummary(id=1, title="write tests"))
    await cache.set("dc", Counter(name="visits", value=3))
    await cache.set("when", datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))

    assert await cache.get("model") == {"id": 1, "title": "write tests"}
    assert await cache.get("dc") == {"name": "visits", "value": 3}
    assert await cache.get("when") == "2024-01-02T03:04:05Z"


@pytest.mark.asyncio
async def test_get_missing_key_returns_none(cache) -> None:
    assert await cache.get("missing-key") is None
    assert cache.stats()["misses"] == 1


@pytest.mark.asyncio
async def test_entries_expire_after_ttl(cache, fake_time) -> None:
    await cache.set("k", "v", ttl_seconds=10)
    fake_time.advance(9)
    assert await cache.get("k") == "v"

    fake_time.advance(1)
    assert await cache.get("k") is None


@pytest.mark.asyncio
async def test_default_ttl_is_300_seconds(cache, memory_store) -> None:
    await cache.set("k", 1)

    assert await memory_store.ttl("taskflow:testing:k") == 300


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_key", ["", None, 42, ["k"]])
async def test_set_with_invalid_key_is_logged_noop(cache, memory_store, bad_key, caplog) -> None:
    with caplog.at_level(logging.ERROR):
        await cache.set(bad_key, {"a": 1})

    assert "cache.set_failed" in caplog.text
    assert len(memory_store) == 0
    assert cache.tracked_keys == []


@pytest.mark.asyncio
async def test_set_with_non_positive_ttl_is_noop(cache, memory_store) -> None:
    await cache.set("k", 1, ttl_seconds=0)

    assert len(memory_store) == 0


@pytest.mark.asyncio
async def test_set_unserializable_value_is_noop(cache, memory_store) -> None:
    await cache.set("k", object())

    assert len(memory_store) == 0
    assert cache.stats()["errors"] == 1


def test_namespaced_key_validates() -> None:
    cache = CacheService(AsyncMock(spec=AbstractStoreConnection), "dev", app_name="acme")

    assert cache.namespaced_key("x") == "acme:dev:x"
    with pytest.raises(ValidationAppError):
        cache.namespaced_key("")


@pytest.mark.asyncio
async def test_delete_removes_entry_and_tracking(cache) -> None:
    await cache.set("k", 1)
    assert "taskflow:testing:k" in cache.tracked_keys

    assert await cache.delete("k") is True
    assert await cache.has("k") is False
    assert cache.tracked_keys == []


@pytest.mark.asyncio
async def test_delete_missing_key_returns_true(cache) -> None:
    assert await cache.delete("never-set") is True


@pytest.mark.asyncio
async def test_has_reports_existence(cache) -> None:
    assert await cache.has("k") is False
    await cache.set("k", 0)
    assert await cache.has("k") is True


@pytest.mark.asyncio
async def test_has_treats_cached_null_as_absent(cache) -> None:
    await cache.set("k", None)

    assert await cache.get("k") is None
    assert await cache.has("k") is False


@pytest.mark.asyncio
async def test_mset_and_mget(cache) -> None:
    await cache.mset([("a", 1), ["b", 2]])

    assert await cache.mget(["a", "b", "c"]) == {"a": 1, "b": 2, "c": None}


@pytest.mark.asyncio
async def test_mset_applies_ttl_to_every_entry(cache, memory_store) -> None:
    await cache.mset([("a", 1), ("b", 2)], ttl_seconds=30)

    assert await memory_store.ttl("taskflow:testing:a") == 30
    assert await memory_store.ttl("taskflow:testing:b") == 30


@pytest.mark.asyncio
@pytest.mark.parametrize("entries", [{"a": 1}, "ab", [("a", 1, 2)], [("a",)], None])
async def test_mset_rejects_malformed_entries(cache, entries) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        await cache.mset(entries)

    assert exc_info.value.code == "cache_invalid_entries"


@pytest.mark.asyncio
@pytest.mark.parametrize("keys", ["abc", None, {"a"}, ["a", ["b"]], ["a", 1]])
async def test_mget_rejects_non_string_lists(cache, keys) -> None:
    with pytest.raises(ValidationAppError) as exc_info:
        await cache.mget(keys)

    assert exc_info.value.code == "cache_invalid_keys"


@pytest.mark.asyncio
async def test_clear_deletes_tracked_keys(cache, memory_store) -> None:
    await cache.mset([("a", 1), ("b", 2), ("c", 3)])
    await memory_store.set("untracked", b"1", 60_000)

    await cache.clear()

    assert await cache.mget(["a", "b", "c"]) == {"a": None, "b": None, "c": None}
    assert cache.tracked_keys == []
    assert await memory_store.get("untracked") == b"1"


@pytest.mark.asyncio
async def test_clear_tolerates_expired_keys(cache, fake_time) -> None:
    await cache.set("short", 1, ttl_seconds=1)
    await cache.set("long", 2, ttl_seconds=100)
    fake_time.advance(5)

    # Expired keys linger in the tracking set until clear().
    assert len(cache.tracked_keys) == 2

    await cache.clear()
    assert cache.tracked_keys == []


@pytest.mark.asyncio
async def test_clear_resets_tracking_even_when_deletes_fail(cache, memory_store) -> None:
    await cache.mset([("a", 1), ("b", 2)])
    memory_store_delete = memory_store.delete

    async def flaky_delete(key: str) -> bool:
        if key.endswith(":a"):
            raise StoreUnavailableError(code="store_unavailable", message="reset by peer")
        return await memory_store_delete(key)

    memory_store.delete = flaky_delete

    await cache.clear()

    assert cache.tracked_keys == []
    assert await cache.get("b") is None
    assert await cache.get("a") == 1


@pytest.mark.asyncio
async def test_set_during_clear_stays_tracked(cache, memory_store) -> None:
    await cache.mset([("a", 1), ("b", 2)])
    memory_store_delete = memory_store.delete

    async def slow_delete(key: str) -> bool:
        await asyncio.sleep(0.01)
        return await memory_store_delete(key)

    memory_store.delete = slow_delete

    await asyncio.gather(cache.clear(), cache.set("new", 2))

    assert await cache.get("new") == 2
    assert cache.tracked_keys == ["taskflow:testing:new"]

    await cache.clear()
    assert await cache.get("new") is None


@pytest.mark.asyncio
async def test_store_outage_degrades_to_miss(failing_store, caplog) -> None:
    cache = CacheService(failing_store, "testing")

    with caplog.at_level(logging.ERROR):
        assert await cache.get("k") is None
        assert await cache.set("k", {"a": 1}) is None
        assert await cache.has("k") is False
        assert await cache.delete("k") is False
        assert await cache.mget(["a", "b"]) == {"a": None, "b": None}
        await cache.mset([("a", 1)])

    assert "cache.get_failed" in caplog.text
    assert "cache.set_failed" in caplog.text
    assert "cache.has_failed" in caplog.text
    assert "cache.delete_failed" in caplog.text
    assert cache.tracked_keys == []


@pytest.mark.asyncio
async def test_concurrent_writers_all_tracked(cache) -> None:
    await asyncio.gather(*(cache.set(f"k-{i}", {"v": i}) for i in range(50)))

    assert cache.stats()["tracked_keys"] == 50
    assert await cache.get("k-25") == {"v": 25}


@pytest.mark.asyncio
async def test_stats_counts_hits_and_misses(cache) -> None:
    await cache.set("k", 1)
    await cache.get("k")
    await cache.get("missing")

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["errors"] == 0
    assert stats["namespace"] == "taskflow:testing:"
