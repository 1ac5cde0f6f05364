"""Food diary service: logged entries and daily totals."""

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from keyston.domain.diary import DailyNutritionTotals, FoodDiaryEntry, parse_diary_entry
from keyston.domain.errors import NotFoundError, ValidationError
from keyston.domain.foods import Food
from keyston.domain.records import now_utc, to_record
from keyston.domain.validation import DiaryEntryInput, check_date, validate_input
from keyston.services.favorites import FavoriteFoodsService
from keyston.services.storage import (
    FOOD_DIARY_ENTRIES,
    IndexQuery,
    PersistentStore,
    storage_errors,
)

_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

_logger = logging.getLogger(__name__)


@dataclass
class FoodDiaryService:
    """Application service for diary entries.

    When ``favorites`` is set, logging an entry from a stored food also records
    a use of that food's favorite.
    """

    store: PersistentStore
    favorites: FavoriteFoodsService | None = None
    clock: Callable[[], datetime] = field(default=now_utc)

    def add_entry(self, payload: dict[str, object]) -> FoodDiaryEntry:
        """Validate and store a new diary entry."""
        data = validate_input(DiaryEntryInput, payload)
        entry = FoodDiaryEntry(
            id=str(uuid4()), created_at=self.clock(), **data.model_dump()
        )
        with storage_errors("Failed to save food entry"):
            self.store.put(FOOD_DIARY_ENTRIES, to_record(entry))
        return entry

    def add_entry_from_food(
        self,
        food: Food,
        entry_date: str,
        meal_type: str,
        serving_size: float,
        serving_unit: str | None = None,
    ) -> FoodDiaryEntry:
        """Log ``serving_size`` of a stored food, scaling its per-serving values."""
        if serving_size <= 0 or food.serving_size_default <= 0:
            raise ValidationError(
                "Invalid diary entry", {"serving_size": "must be greater than 0"}
            )
        factor = serving_size / food.serving_size_default

        def scaled(value: float | None) -> float | None:
            return value * factor if value is not None else None

        entry = self.add_entry(
            {
                "food_id": food.id,
                "entry_date": entry_date,
                "meal_type": meal_type,
                "serving_size": serving_size,
                "serving_unit": serving_unit or food.serving_unit_default,
                "calories": food.calories_per_serving * factor,
                "protein_g": food.protein_g * factor,
                "carbs_g": food.carbs_g * factor,
                "fat_g": food.fat_g * factor,
                "fiber_g": scaled(food.fiber_g),
                "sugar_g": scaled(food.sugar_g),
                "sodium_mg": scaled(food.sodium_mg),
                "micronutrients": {
                    name: amount * factor
                    for name, amount in food.micronutrients.items()
                }
                if food.micronutrients
                else None,
            }
        )
        if self.favorites is not None:
            self.favorites.increment_usage_by_food_id(food.id)
        return entry

    def get_entry(self, entry_id: str) -> FoodDiaryEntry | None:
        """Return a diary entry by id, if present."""
        with storage_errors("Failed to load food entry"):
            row = self.store.get(FOOD_DIARY_ENTRIES, entry_id)
        return parse_diary_entry(row) if row is not None else None

    def get_entries_for_date(self, entry_date: str) -> list[FoodDiaryEntry]:
        """Return a day's entries in the order they were logged."""
        check_date("entry_date", entry_date)
        with storage_errors("Failed to load food entries"):
            rows = self.store.query(
                FOOD_DIARY_ENTRIES,
                IndexQuery("entryDate", equals=entry_date, order_by="createdAt"),
            )
        return [parse_diary_entry(row) for row in rows]

    def get_entries_by_meal(
        self, entry_date: str, meal_type: str
    ) -> list[FoodDiaryEntry]:
        """Return one meal's entries for a day."""
        check_date("entry_date", entry_date)
        with storage_errors("Failed to load food entries"):
            rows = self.store.query(
                FOOD_DIARY_ENTRIES,
                IndexQuery(
                    "[entryDate+mealType]",
                    equals=(entry_date, meal_type),
                    order_by="createdAt",
                ),
            )
        return [parse_diary_entry(row) for row in rows]

    def get_entries_in_range(
        self, start_date: str, end_date: str
    ) -> list[FoodDiaryEntry]:
        """Return entries dated from ``start_date`` to ``end_date`` inclusive."""
        check_date("start_date", start_date)
        check_date("end_date", end_date)
        if start_date > end_date:
            raise ValidationError(
                "Invalid date range", {"end_date": "must not be before start_date"}
            )
        with storage_errors("Failed to load food entries"):
            rows = self.store.query(
                FOOD_DIARY_ENTRIES,
                IndexQuery("entryDate", lower=start_date, upper=end_date),
            )
        entries = [parse_diary_entry(row) for row in rows]
        return sorted(entries, key=lambda entry: (entry.entry_date, entry.created_at))

    def update_entry(self, entry_id: str, changes: dict[str, object]) -> FoodDiaryEntry:
        """Apply a partial update and re-validate the merged entry."""
        immutable = _IMMUTABLE_FIELDS & changes.keys()
        if immutable:
            raise ValidationError(
                "Cannot change immutable diary entry fields",
                {name: "is immutable" for name in sorted(immutable)},
            )
        with storage_errors("Failed to update food entry"):
            with self.store.transaction([FOOD_DIARY_ENTRIES]):
                existing = self.get_entry(entry_id)
                if existing is None:
                    raise NotFoundError(f"Diary entry {entry_id} not found", entry_id)
                merged = {
                    key: value
                    for key, value in dataclasses.asdict(existing).items()
                    if key not in _IMMUTABLE_FIELDS
                }
                merged.update(changes)
                data = validate_input(DiaryEntryInput, merged)
                entry = dataclasses.replace(existing, **data.model_dump())
                self.store.put(FOOD_DIARY_ENTRIES, to_record(entry))
        return entry

    def delete_entry(self, entry_id: str) -> None:
        """Delete an entry; deleting a missing entry is a no-op."""
        with storage_errors("Failed to delete food entry"):
            self.store.delete(FOOD_DIARY_ENTRIES, entry_id)

    def delete_entries_for_date(self, entry_date: str) -> int:
        """Delete every entry of a day and return how many were removed."""
        check_date("entry_date", entry_date)
        with storage_errors("Failed to delete food entries"):
            with self.store.transaction([FOOD_DIARY_ENTRIES]):
                removed = self.store.delete_where(
                    FOOD_DIARY_ENTRIES, IndexQuery("entryDate", equals=entry_date)
                )
        _logger.info("Deleted %s diary entries for %s", removed, entry_date)
        return removed

    def calculate_daily_totals(self, entry_date: str) -> DailyNutritionTotals:
        """Sum a day's nutrition; a day without entries totals zero."""
        entries = self.get_entries_for_date(entry_date)
        return DailyNutritionTotals(
            date=entry_date,
            calories=sum(entry.calories for entry in entries),
            protein_g=sum(entry.protein_g for entry in entries),
            carbs_g=sum(entry.carbs_g for entry in entries),
            fat_g=sum(entry.fat_g for entry in entries),
            fiber_g=sum(entry.fiber_g or 0.0 for entry in entries),
            sugar_g=sum(entry.sugar_g or 0.0 for entry in entries),
            sodium_mg=sum(entry.sodium_mg or 0.0 for entry in entries),
            entry_count=len(entries),
        )

    def get_total_count(self) -> int:
        """Return the number of diary entries."""
        with storage_errors("Failed to count food entries"):
            return self.store.count(FOOD_DIARY_ENTRIES)
