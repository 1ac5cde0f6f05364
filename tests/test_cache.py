"""Tests for the persistent API cache."""

from keyston.adapters.sqlite_store import SqliteStore
from keyston.services.cache import (
    CACHE_SCHEMA_VERSION,
    ApiCacheService,
    barcode_key,
    search_key,
)
from keyston.services.storage import API_CACHE
from tests.conftest import FakeClock


def test_set_then_get(cache: ApiCacheService) -> None:
    cache.set("k", {"a": 1}, ttl_seconds=60)

    assert cache.get("k") == {"a": 1}
    assert cache.has("k") is True


def test_zero_ttl_is_expired_immediately(
    cache: ApiCacheService, store: SqliteStore
) -> None:
    cache.set("k", [1, 2, 3], ttl_seconds=0)

    assert cache.get("k") is None
    assert store.get(API_CACHE, "k") is None
    assert cache.has("k") is False


def test_entry_expires_after_ttl(cache: ApiCacheService, clock: FakeClock) -> None:
    cache.set("k", "value", ttl_seconds=60)

    clock.advance(59)
    assert cache.get("k") == "value"

    clock.advance(1)
    assert cache.get("k") is None


def test_set_overwrites_value_and_ttl(
    cache: ApiCacheService, clock: FakeClock
) -> None:
    cache.set("k", "first", ttl_seconds=10)
    cache.set("k", "second", ttl_seconds=100)

    clock.advance(50)

    assert cache.get("k") == "second"
    assert cache.statistics().total == 1


def test_delete_and_clear_all(cache: ApiCacheService) -> None:
    cache.set("a", 1, ttl_seconds=60)
    cache.set("b", 2, ttl_seconds=60)

    cache.delete("a")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear_all()
    assert cache.statistics().total == 0


def test_clear_expired_and_statistics(
    cache: ApiCacheService, clock: FakeClock
) -> None:
    cache.set("short", 1, ttl_seconds=10)
    cache.set("long", 2, ttl_seconds=1000)
    clock.advance(20)

    stats = cache.statistics()
    assert (stats.total, stats.active, stats.expired) == (2, 1, 1)

    assert cache.clear_expired() == 1
    assert cache.clear_expired() == 0
    assert cache.statistics().total == 1


def test_outdated_schema_version_reads_as_miss(
    cache: ApiCacheService, store: SqliteStore, clock: FakeClock
) -> None:
    store.put(
        API_CACHE,
        {
            "cacheKey": "old",
            "data": {"shape": "legacy"},
            "cachedAt": clock().isoformat(),
            "ttlSeconds": 3600,
            "schemaVersion": CACHE_SCHEMA_VERSION - 1,
        },
    )

    stats = cache.statistics()
    assert (stats.total, stats.active, stats.expired) == (1, 0, 1)
    assert cache.has("old") is False

    assert cache.get("old") is None
    assert store.get(API_CACHE, "old") is None


def test_clear_expired_removes_outdated_schema_versions(
    cache: ApiCacheService, store: SqliteStore, clock: FakeClock
) -> None:
    cache.set("fresh", 1, ttl_seconds=3600)
    store.put(
        API_CACHE,
        {
            "cacheKey": "legacy",
            "data": 2,
            "cachedAt": clock().isoformat(),
            "ttlSeconds": 3600,
        },
    )

    assert cache.clear_expired() == 1
    assert cache.get("fresh") == 1
    assert store.get(API_CACHE, "legacy") is None


def test_search_helpers_are_case_insensitive(cache: ApiCacheService) -> None:
    cache.cache_search_results("Apple", [{"id": "1"}])

    assert cache.get_cached_search_results("APPLE") == [{"id": "1"}]
    assert search_key("Apple") == "food_search_apple"


def test_barcode_helpers(cache: ApiCacheService, clock: FakeClock) -> None:
    cache.cache_barcode_lookup("123", {"id": "off_123"})

    clock.advance(cache.ttl.barcode_lookup - 1)

    assert cache.get_cached_barcode_lookup("123") == {"id": "off_123"}
    assert barcode_key("123") == "barcode_123"


def test_cache_survives_new_service_instance(
    store: SqliteStore, clock: FakeClock
) -> None:
    ApiCacheService(store, clock=clock).set("k", "persisted", ttl_seconds=60)

    assert ApiCacheService(store, clock=clock).get("k") == "persisted"
