"""Services for the local food catalogue."""

import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from keyston.domain.errors import NotFoundError, ValidationError
from keyston.domain.foods import Food, parse_food
from keyston.domain.nutrition import FoodSearchResult
from keyston.domain.records import now_utc, to_record
from keyston.domain.validation import FoodInput, validate_input
from keyston.services.storage import FOODS, IndexQuery, PersistentStore, storage_errors

_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})

_logger = logging.getLogger(__name__)


@dataclass
class FoodService:
    """Application service for stored foods."""

    store: PersistentStore
    clock: Callable[[], datetime] = field(default=now_utc)

    def add_food(self, payload: dict[str, object]) -> Food:
        """Validate and store a new food."""
        data = validate_input(FoodInput, payload)
        food = Food(id=str(uuid4()), created_at=self.clock(), **data.model_dump())
        with storage_errors("Failed to save food"):
            self.store.put(FOODS, to_record(food))
        return food

    def get_food(self, food_id: str) -> Food | None:
        """Return a food by id, if present."""
        with storage_errors("Failed to load food"):
            row = self.store.get(FOODS, food_id)
        return parse_food(row) if row is not None else None

    def get_food_by_barcode(self, barcode: str) -> Food | None:
        """Return the first food with this barcode, if any."""
        with storage_errors("Failed to load food"):
            query = IndexQuery("barcode", equals=barcode, limit=1)
            rows = self.store.query(FOODS, query)
        return parse_food(rows[0]) if rows else None

    def search_foods(self, query: str, limit: int = 20) -> list[Food]:
        """Search stored foods by name or brand, case-insensitively."""
        needle = query.strip().lower()
        if not needle:
            return []
        with storage_errors("Failed to search foods"):
            rows = self.store.query(FOODS, IndexQuery("name"))
        matches = [
            food
            for food in map(parse_food, rows)
            if needle in food.name.lower() or needle in (food.brand or "").lower()
        ]
        return matches[:limit]

    def update_food(self, food_id: str, changes: dict[str, object]) -> Food:
        """Apply a partial update and re-validate the merged food."""
        immutable = _IMMUTABLE_FIELDS & changes.keys()
        if immutable:
            raise ValidationError(
                "Cannot change immutable food fields",
                {name: "is immutable" for name in sorted(immutable)},
            )
        with storage_errors("Failed to update food"):
            with self.store.transaction([FOODS]):
                existing = self.get_food(food_id)
                if existing is None:
                    raise NotFoundError(f"Food {food_id} not found", food_id)
                merged = {
                    key: value
                    for key, value in dataclasses.asdict(existing).items()
                    if key not in _IMMUTABLE_FIELDS
                }
                merged.update(changes)
                data = validate_input(FoodInput, merged)
                food = dataclasses.replace(existing, **data.model_dump())
                self.store.put(FOODS, to_record(food))
        return food

    def delete_food(self, food_id: str) -> None:
        """Delete a food; deleting a missing food is a no-op."""
        with storage_errors("Failed to delete food"):
            self.store.delete(FOODS, food_id)

    def get_recent_foods(self, limit: int = 10) -> list[Food]:
        """Return the most recently added foods."""
        with storage_errors("Failed to load foods"):
            rows = self.store.query(
                FOODS, IndexQuery("createdAt", descending=True, limit=limit)
            )
        return [parse_food(row) for row in rows]

    def find_by_external_id(self, data_source: str, external_id: str) -> Food | None:
        """Return the food imported from ``data_source`` with ``external_id``."""
        with storage_errors("Failed to load food"):
            rows = self.store.query(
                FOODS,
                IndexQuery(
                    "[dataSource+externalId]",
                    equals=(data_source, external_id),
                    limit=1,
                ),
            )
        return parse_food(rows[0]) if rows else None

    def import_from_search_result(self, result: FoodSearchResult) -> Food:
        """Store a search result as a food, reusing an earlier import."""
        with storage_errors("Failed to import food"):
            with self.store.transaction([FOODS]):
                if result.external_id is not None:
                    existing = self.find_by_external_id(
                        result.data_source, result.external_id
                    )
                    if existing is not None:
                        return existing
                food = self.add_food(
                    {
                        "name": result.name,
                        "brand": result.brand,
                        "barcode": result.external_id
                        if result.data_source == "openfoodfacts"
                        else None,
                        "external_id": result.external_id,
                        "data_source": result.data_source,
                        "serving_size_default": result.serving_size,
                        "serving_unit_default": result.serving_unit,
                        "calories_per_serving": result.calories or 0,
                        "protein_g": result.protein or 0,
                        "carbs_g": result.carbs or 0,
                        "fat_g": result.fat or 0,
                    }
                )
        _logger.info("Imported %s food %s", result.data_source, result.external_id)
        return food

    def get_total_count(self) -> int:
        """Return the number of stored foods."""
        with storage_errors("Failed to count foods"):
            return self.store.count(FOODS)
