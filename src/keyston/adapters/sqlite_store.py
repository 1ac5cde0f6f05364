"""SQLite implementation of the persistent store.

Every collection is a table of JSON documents keyed by a primary key. Secondary
indexes are SQLite expression indexes over ``json_extract`` so that index
lookups and orderings use the same expressions the indexes are built on.
"""

import json
import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from keyston.domain.errors import StorageError, ValidationError
from keyston.domain.records import to_record
from keyston.domain.settings import (
    SYNC_METADATA_ID,
    USER_SETTINGS_ID,
    SyncMetadata,
    default_user_settings,
)
from keyston.services.storage import (
    API_CACHE,
    DOMAIN_COLLECTIONS,
    EXPORT_FORMAT_VERSION,
    FAVORITE_FOODS,
    FOOD_DIARY_ENTRIES,
    FOODS,
    PRESET_EXERCISES,
    SYNC_METADATA,
    USER_SETTINGS,
    WORKOUT_ENTRIES,
    WORKOUT_EXERCISES,
    WORKOUT_PRESETS,
    IndexQuery,
    PersistentStore,
)

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectionSchema:
    """Primary key and secondary indexes of one collection."""

    key: str = "id"
    indexes: tuple[str, ...] = ()


SCHEMA: dict[str, CollectionSchema] = {
    USER_SETTINGS: CollectionSchema(indexes=("updatedAt",)),
    FOOD_DIARY_ENTRIES: CollectionSchema(
        indexes=(
            "foodId",
            "entryDate",
            "mealType",
            "[entryDate+mealType]",
            "createdAt",
        )
    ),
    FOODS: CollectionSchema(
        indexes=(
            "name",
            "barcode",
            "dataSource",
            "createdAt",
            "[dataSource+externalId]",
        )
    ),
    FAVORITE_FOODS: CollectionSchema(indexes=("foodId", "lastUsedAt", "usageCount")),
    WORKOUT_ENTRIES: CollectionSchema(
        indexes=("presetId", "workoutDate", "workoutType", "createdAt")
    ),
    WORKOUT_EXERCISES: CollectionSchema(indexes=("workoutEntryId", "orderIndex")),
    WORKOUT_PRESETS: CollectionSchema(
        indexes=("presetName", "workoutType", "createdAt")
    ),
    PRESET_EXERCISES: CollectionSchema(indexes=("presetId", "orderIndex")),
    SYNC_METADATA: CollectionSchema(indexes=("lastSyncAt",)),
    API_CACHE: CollectionSchema(key="cacheKey", indexes=("cachedAt",)),
}


def _expr(field_name: str) -> str:
    return f"json_extract(data, '$.{field_name}')"


def _index_fields(index: str) -> tuple[str, ...]:
    return IndexQuery(index=index).fields


@dataclass
class SqliteStore(PersistentStore):
    """SQLite-backed document store.

    Writes outside ``transaction`` commit immediately. Inside a transaction
    they are held until the block exits and rolled back if it raises. The
    store lock is held for the whole block, so other writers wait for it.
    Transaction bodies must not await.
    """

    connection: sqlite3.Connection
    _lock: threading.RLock = field(default_factory=threading.RLock)
    _depth: int = 0

    @classmethod
    def open(cls, path: str | Path = ":memory:") -> "SqliteStore":
        """Open (creating if needed) a store at ``path``."""
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        try:
            connection = sqlite3.connect(
                str(path), isolation_level=None, check_same_thread=False
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to open database at {path}") from exc
        store = cls(connection=connection)
        store.create_schema()
        return store

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self.connection.close()

    def create_schema(self) -> None:
        """Create collection tables and indexes if missing."""
        with self._lock:
            try:
                for collection, schema in SCHEMA.items():
                    self.connection.execute(
                        f'CREATE TABLE IF NOT EXISTS "{collection}" '
                        "(pk TEXT PRIMARY KEY, data TEXT NOT NULL)"
                    )
                    for index in schema.indexes:
                        fields = _index_fields(index)
                        name = f"idx_{collection}_{'_'.join(fields)}"
                        columns = ", ".join(_expr(item) for item in fields)
                        self.connection.execute(
                            f'CREATE INDEX IF NOT EXISTS "{name}" '
                            f'ON "{collection}" ({columns})'
                        )
            except sqlite3.Error as exc:
                raise StorageError("Failed to create database schema") from exc

    def get(self, collection: str, record_id: str) -> dict[str, object] | None:
        """Return a record by primary key, or None when absent."""
        self._schema(collection)
        rows = self._read(
            f'SELECT data FROM "{collection}" WHERE pk = ?', (record_id,)
        )
        if not rows:
            return None
        return _decode(rows[0][0])

    def put(self, collection: str, record: dict[str, object]) -> None:
        """Insert or replace a record."""
        schema = self._schema(collection)
        key = record.get(schema.key)
        if not isinstance(key, str) or not key:
            raise StorageError(f"Record for {collection} is missing '{schema.key}'")
        try:
            data = json.dumps(record, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Record for {collection} is not serializable") from exc
        self._write(
            f'INSERT OR REPLACE INTO "{collection}" (pk, data) VALUES (?, ?)',
            (key, data),
        )

    def delete(self, collection: str, record_id: str) -> None:
        """Delete a record; deleting a missing record is a no-op."""
        self._schema(collection)
        self._write(f'DELETE FROM "{collection}" WHERE pk = ?', (record_id,))

    def query(self, collection: str, query: IndexQuery) -> list[dict[str, object]]:
        """Return records matching an index lookup."""
        where, params = self._where(collection, query)
        order_fields = (query.order_by,) if query.order_by else query.fields
        direction = "DESC" if query.descending else "ASC"
        order = ", ".join(f"{_expr(item)} {direction}" for item in order_fields)
        sql = f'SELECT data FROM "{collection}" WHERE {where} ORDER BY {order}, pk'
        if query.limit is not None:
            sql += " LIMIT ?"
            params = (*params, query.limit)
        return [_decode(row[0]) for row in self._read(sql, params)]

    def delete_where(self, collection: str, query: IndexQuery) -> int:
        """Delete records matching an index lookup and return how many."""
        where, params = self._where(collection, query)
        return self._write(f'DELETE FROM "{collection}" WHERE {where}', params)

    def all(self, collection: str) -> list[dict[str, object]]:
        """Return every record of a collection in primary key order."""
        self._schema(collection)
        rows = self._read(f'SELECT data FROM "{collection}" ORDER BY pk', ())
        return [_decode(row[0]) for row in rows]

    def count(self, collection: str) -> int:
        """Return the number of records in a collection."""
        self._schema(collection)
        rows = self._read(f'SELECT COUNT(*) FROM "{collection}"', ())
        return int(rows[0][0])

    def clear(self, collection: str) -> None:
        """Remove every record of a collection."""
        self._schema(collection)
        self._write(f'DELETE FROM "{collection}"', ())

    @contextmanager
    def transaction(self, collections: Iterable[str]) -> Iterator["SqliteStore"]:
        """Apply every write made inside the block atomically.

        Nested transactions join the outermost one.
        """
        for collection in collections:
            self._schema(collection)
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return
            try:
                self.connection.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StorageError("Failed to start transaction") from exc
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._depth = 0
                self._rollback()
                raise
            self._depth = 0
            try:
                self.connection.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise StorageError("Failed to commit transaction") from exc

    def initialize_defaults(self) -> None:
        """Ensure the singleton settings and sync records exist."""
        with self.transaction([USER_SETTINGS, SYNC_METADATA]):
            if self.get(USER_SETTINGS, USER_SETTINGS_ID) is None:
                self.put(USER_SETTINGS, to_record(default_user_settings()))
                _logger.info("Created default user settings")
            if self.get(SYNC_METADATA, SYNC_METADATA_ID) is None:
                self.put(SYNC_METADATA, to_record(SyncMetadata()))
                _logger.info("Created default sync metadata")

    def clear_all(self) -> None:
        """Empty user data and the cache; settings and sync metadata are kept."""
        kept = {USER_SETTINGS, SYNC_METADATA}
        collections = [
            collection
            for collection in (*DOMAIN_COLLECTIONS, API_CACHE)
            if collection not in kept
        ]
        with self.transaction(collections):
            for collection in collections:
                self.clear(collection)
            self.initialize_defaults()

    def export_all(self) -> dict[str, object]:
        """Return a versioned snapshot of every domain collection."""
        with self._lock:
            snapshot: dict[str, object] = {
                "version": EXPORT_FORMAT_VERSION,
                "exportedAt": datetime.now(tz=UTC).isoformat(),
            }
            for collection in DOMAIN_COLLECTIONS:
                snapshot[collection] = self.all(collection)
        return snapshot

    def apply_snapshot(self, snapshot: dict[str, object]) -> None:
        """Replace domain collections with the contents of a snapshot.

        Collections missing from the snapshot are left untouched. Nothing is
        written unless every collection in the snapshot is well formed.
        """
        version = snapshot.get("version")
        if version != EXPORT_FORMAT_VERSION:
            raise ValidationError(
                "Unsupported snapshot version",
                {"version": f"expected {EXPORT_FORMAT_VERSION}, got {version!r}"},
            )
        incoming: dict[str, list[dict[str, object]]] = {}
        for collection in DOMAIN_COLLECTIONS:
            if collection not in snapshot:
                continue
            records = snapshot[collection]
            if not isinstance(records, list) or not all(
                isinstance(record, dict) for record in records
            ):
                raise ValidationError(
                    "Malformed snapshot", {collection: "expected a list of records"}
                )
            incoming[collection] = records
        with self.transaction(incoming):
            for collection, records in incoming.items():
                self.clear(collection)
                for record in records:
                    self.put(collection, record)
            self.initialize_defaults()
        _logger.info("Applied snapshot with %s collections", len(incoming))

    def statistics(self) -> dict[str, int]:
        """Return record counts per collection."""
        return {collection: self.count(collection) for collection in SCHEMA}

    def _schema(self, collection: str) -> CollectionSchema:
        schema = SCHEMA.get(collection)
        if schema is None:
            raise StorageError(f"Unknown collection: {collection}")
        return schema

    def _where(
        self, collection: str, query: IndexQuery
    ) -> tuple[str, tuple[object, ...]]:
        schema = self._schema(collection)
        if query.index not in schema.indexes:
            raise StorageError(f"No index {query.index} on {collection}")
        if query.order_by and query.order_by not in schema.indexes:
            raise StorageError(f"Cannot order {collection} by {query.order_by}")
        fields = query.fields
        clauses: list[str] = []
        params: list[object] = []
        values = query.equality_values()
        if values is not None:
            if len(values) != len(fields):
                raise StorageError(f"Index {query.index} expects {len(fields)} values")
            for item, value in zip(fields, values, strict=True):
                clauses.append(f"{_expr(item)} = ?")
                params.append(value)
        if query.lower is not None or query.upper is not None:
            if len(fields) != 1:
                raise StorageError("Range lookups need a single-field index")
            if query.lower is not None:
                clauses.append(f"{_expr(fields[0])} >= ?")
                params.append(query.lower)
            if query.upper is not None:
                clauses.append(f"{_expr(fields[0])} <= ?")
                params.append(query.upper)
        if not clauses:
            clauses = [f"{_expr(item)} IS NOT NULL" for item in fields]
        return " AND ".join(clauses), tuple(params)

    def _rollback(self) -> None:
        try:
            self.connection.execute("ROLLBACK")
        except sqlite3.Error:
            _logger.warning("Rollback failed; transaction already closed")

    def _read(self, sql: str, params: tuple[object, ...]) -> list[tuple[object, ...]]:
        with self._lock:
            try:
                return list(self.connection.execute(sql, params).fetchall())
            except sqlite3.Error as exc:
                raise StorageError("Failed to read from database") from exc

    def _write(self, sql: str, params: tuple[object, ...]) -> int:
        with self._lock:
            try:
                cursor = self.connection.execute(sql, params)
            except sqlite3.Error as exc:
                raise StorageError("Failed to write to database") from exc
            return cursor.rowcount


def _decode(raw: object) -> dict[str, object]:
    try:
        decoded = json.loads(str(raw))
    except json.JSONDecodeError as exc:
        raise StorageError("Stored record is not valid JSON") from exc
    if not isinstance(decoded, dict):
        raise StorageError("Stored record is not a JSON object")
    return decoded
