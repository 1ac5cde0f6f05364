"""Time-bound cache of external API responses, persisted in the local store."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Generic, Protocol, TypeVar

from keyston.domain.errors import StorageError
from keyston.domain.records import parse_datetime
from keyston.services.storage import API_CACHE, PersistentStore

T = TypeVar("T")

CACHE_SCHEMA_VERSION = 1

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheTtl:
    """TTL policy in seconds per kind of lookup."""

    food_search: int = 86400
    nutrition_data: int = 604800
    barcode_lookup: int = 2592000


CACHE_TTL = CacheTtl()


class Cache(Protocol):
    """Cache interface for JSON-compatible payloads."""

    def get(self, key: str) -> object | None:
        """Return a cached value if present and not expired."""

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a cached value with a TTL in seconds."""


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """One cached payload with its freshness metadata."""

    cache_key: str
    data: T
    cached_at: datetime
    ttl_seconds: int
    schema_version: int = CACHE_SCHEMA_VERSION

    def is_expired(self, now: datetime) -> bool:
        """Return True once ``now`` reaches ``cached_at + ttl_seconds``."""
        return now >= self.cached_at + timedelta(seconds=self.ttl_seconds)

    def is_stale(self, now: datetime) -> bool:
        """Expired, or written under an older cache schema."""
        return self.schema_version != CACHE_SCHEMA_VERSION or self.is_expired(now)

    def to_record(self) -> dict[str, object]:
        """Return the stored document."""
        return {
            "cacheKey": self.cache_key,
            "data": self.data,
            "cachedAt": self.cached_at.isoformat(),
            "ttlSeconds": self.ttl_seconds,
            "schemaVersion": self.schema_version,
        }

    @classmethod
    def from_record(cls, row: dict[str, object]) -> "CacheEntry[object]":
        """Parse a stored document; entries without a version are version 0."""
        return CacheEntry(
            cache_key=str(row["cacheKey"]),
            data=row.get("data"),
            cached_at=parse_datetime(row.get("cachedAt"))
            or datetime.min.replace(tzinfo=UTC),
            ttl_seconds=int(row.get("ttlSeconds", 0)),  # type: ignore[call-overload]
            schema_version=int(row.get("schemaVersion", 0)),  # type: ignore[call-overload]
        )


@dataclass(frozen=True)
class CacheStatistics:
    """Entry counts by freshness."""

    total: int
    active: int
    expired: int


def search_key(query: str) -> str:
    """Cache key for free-text search results; case-insensitive."""
    return f"food_search_{query.lower()}"


def barcode_key(barcode: str) -> str:
    """Cache key for a barcode lookup."""
    return f"barcode_{barcode}"


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class ApiCacheService(Cache):
    """Cache backed by the ``apiCache`` collection.

    Expiry is lazy: ``get`` deletes an expired entry when it reads one.
    ``clear_expired`` sweeps the whole collection for callers that want to
    bound storage growth.
    """

    store: PersistentStore
    ttl: CacheTtl = CACHE_TTL
    clock: Callable[[], datetime] = field(default=_utc_now)

    def get(self, key: str) -> object | None:
        """Return the cached value, or None when missing, stale or outdated."""
        entry = self._load(key)
        if entry is None:
            return None
        if entry.is_stale(self.clock()):
            self.delete(key)
            return None
        return entry.data

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a value, replacing any previous value and TTL for ``key``."""
        entry = CacheEntry(
            cache_key=key,
            data=value,
            cached_at=self.clock(),
            ttl_seconds=ttl_seconds,
        )
        self.store.put(API_CACHE, entry.to_record())

    def has(self, key: str) -> bool:
        """Return True only for a present, fresh entry."""
        entry = self._load(key)
        return entry is not None and not entry.is_stale(self.clock())

    def delete(self, key: str) -> None:
        """Remove an entry if present."""
        self.store.delete(API_CACHE, key)

    def clear_all(self) -> None:
        """Remove every cached entry."""
        self.store.clear(API_CACHE)

    def clear_expired(self) -> int:
        """Delete expired or outdated entries and return how many were removed."""
        now = self.clock()
        expired = [entry.cache_key for entry in self._entries() if entry.is_stale(now)]
        if expired:
            with self.store.transaction([API_CACHE]):
                for key in expired:
                    self.store.delete(API_CACHE, key)
            _logger.info("Removed %s expired cache entries", len(expired))
        return len(expired)

    def statistics(self) -> CacheStatistics:
        """Count entries; outdated schema versions count as expired."""
        now = self.clock()
        entries = self._entries()
        expired = sum(1 for entry in entries if entry.is_stale(now))
        return CacheStatistics(
            total=len(entries), active=len(entries) - expired, expired=expired
        )

    def cache_search_results(self, query: str, results: object) -> None:
        """Cache search results under the case-insensitive search key."""
        self.set(search_key(query), results, self.ttl.food_search)

    def get_cached_search_results(self, query: str) -> object | None:
        """Return cached search results for ``query``."""
        return self.get(search_key(query))

    def cache_barcode_lookup(self, barcode: str, result: object) -> None:
        """Cache a barcode lookup result."""
        self.set(barcode_key(barcode), result, self.ttl.barcode_lookup)

    def get_cached_barcode_lookup(self, barcode: str) -> object | None:
        """Return a cached barcode lookup result."""
        return self.get(barcode_key(barcode))

    def _load(self, key: str) -> CacheEntry[object] | None:
        row = self.store.get(API_CACHE, key)
        if row is None:
            return None
        try:
            return CacheEntry.from_record(row)
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"Corrupt cache entry: {key}") from exc

    def _entries(self) -> list[CacheEntry[object]]:
        return [CacheEntry.from_record(row) for row in self.store.all(API_CACHE)]
