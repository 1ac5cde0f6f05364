"""Persistence interface shared by every service."""

from collections.abc import Iterable, Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from typing import Protocol

from keyston.domain.errors import StorageError

USER_SETTINGS = "userSettings"
FOOD_DIARY_ENTRIES = "foodDiaryEntries"
FOODS = "foods"
FAVORITE_FOODS = "favoriteFoods"
WORKOUT_ENTRIES = "workoutEntries"
WORKOUT_EXERCISES = "workoutExercises"
WORKOUT_PRESETS = "workoutPresets"
PRESET_EXERCISES = "presetExercises"
SYNC_METADATA = "syncMetadata"
API_CACHE = "apiCache"

DOMAIN_COLLECTIONS: tuple[str, ...] = (
    USER_SETTINGS,
    FOOD_DIARY_ENTRIES,
    FOODS,
    FAVORITE_FOODS,
    WORKOUT_ENTRIES,
    WORKOUT_EXERCISES,
    WORKOUT_PRESETS,
    PRESET_EXERCISES,
    SYNC_METADATA,
)

EXPORT_FORMAT_VERSION = 1


@dataclass(frozen=True)
class IndexQuery:
    """Lookup against a declared index.

    ``index`` names a single field (``"entryDate"``) or a compound index
    (``"[entryDate+mealType]"``). ``equals`` holds one value per indexed
    field; ``lower``/``upper`` bound a single-field index inclusively. With
    neither, every record that has the indexed field is returned.
    """

    index: str
    equals: object = None
    lower: object = None
    upper: object = None
    order_by: str | None = None
    descending: bool = False
    limit: int | None = None

    @property
    def fields(self) -> tuple[str, ...]:
        """Return the record fields covered by the index."""
        if self.index.startswith("[") and self.index.endswith("]"):
            return tuple(self.index[1:-1].split("+"))
        return (self.index,)

    def equality_values(self) -> tuple[object, ...] | None:
        """Return ``equals`` as a tuple aligned with ``fields``."""
        if self.equals is None:
            return None
        if isinstance(self.equals, tuple | list):
            return tuple(self.equals)
        return (self.equals,)


class PersistentStore(Protocol):
    """Indexed, transactional storage of JSON documents grouped in collections."""

    def get(self, collection: str, record_id: str) -> dict[str, object] | None:
        """Return a record by primary key, or None when absent."""

    def put(self, collection: str, record: dict[str, object]) -> None:
        """Insert or replace a record."""

    def delete(self, collection: str, record_id: str) -> None:
        """Delete a record; deleting a missing record is a no-op."""

    def query(self, collection: str, query: IndexQuery) -> list[dict[str, object]]:
        """Return records matching an index lookup."""

    def delete_where(self, collection: str, query: IndexQuery) -> int:
        """Delete records matching an index lookup and return how many."""

    def all(self, collection: str) -> list[dict[str, object]]:
        """Return every record of a collection."""

    def count(self, collection: str) -> int:
        """Return the number of records in a collection."""

    def clear(self, collection: str) -> None:
        """Remove every record of a collection."""

    def transaction(
        self, collections: Iterable[str]
    ) -> AbstractContextManager["PersistentStore"]:
        """Apply every write made inside the block atomically."""

    def initialize_defaults(self) -> None:
        """Ensure the singleton settings and sync records exist."""

    def clear_all(self) -> None:
        """Empty every collection, then restore defaults."""

    def export_all(self) -> dict[str, object]:
        """Return a versioned snapshot of every domain collection."""

    def apply_snapshot(self, snapshot: dict[str, object]) -> None:
        """Replace domain collections with the contents of a snapshot."""


@contextmanager
def storage_errors(message: str) -> Iterator[None]:
    """Re-raise store failures inside the block with a domain message."""
    try:
        yield
    except StorageError as exc:
        raise StorageError(message) from exc
