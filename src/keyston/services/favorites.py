"""Service for frequently used foods."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from uuid import uuid4

from keyston.domain.errors import NotFoundError
from keyston.domain.foods import FavoriteFood, parse_favorite
from keyston.domain.records import now_utc, to_record
from keyston.services.storage import (
    FAVORITE_FOODS,
    IndexQuery,
    PersistentStore,
    storage_errors,
)

_logger = logging.getLogger(__name__)


@dataclass
class FavoriteFoodsService:
    """Favorites keyed by food: at most one per food, usage only grows."""

    store: PersistentStore
    clock: Callable[[], datetime] = field(default=now_utc)

    def add_favorite(self, food_id: str) -> FavoriteFood:
        """Mark a food as favorite; an existing favorite has its usage bumped."""
        with storage_errors("Failed to add favorite"):
            with self.store.transaction([FAVORITE_FOODS]):
                existing = self._find_by_food(food_id)
                if existing is not None:
                    return self._bump(existing)
                now = self.clock()
                favorite = FavoriteFood(
                    id=str(uuid4()),
                    food_id=food_id,
                    usage_count=1,
                    last_used_at=now,
                    created_at=now,
                )
                self.store.put(FAVORITE_FOODS, to_record(favorite))
        _logger.info("Added favorite for food %s", food_id)
        return favorite

    def remove_favorite(self, favorite_id: str) -> None:
        """Remove a favorite by its id."""
        with storage_errors("Failed to remove favorite"):
            self.store.delete(FAVORITE_FOODS, favorite_id)

    def remove_favorite_by_food_id(self, food_id: str) -> bool:
        """Remove the favorite for a food; return True if one existed."""
        with storage_errors("Failed to remove favorite"):
            removed = self.store.delete_where(
                FAVORITE_FOODS, IndexQuery("foodId", equals=food_id)
            )
        return removed > 0

    def is_favorite(self, food_id: str) -> bool:
        """Return True when the food is a favorite."""
        return self._find_by_food(food_id) is not None

    def get_favorite(self, favorite_id: str) -> FavoriteFood | None:
        """Return a favorite by id, if present."""
        with storage_errors("Failed to load favorite"):
            row = self.store.get(FAVORITE_FOODS, favorite_id)
        return parse_favorite(row) if row is not None else None

    def get_all_favorites(self) -> list[FavoriteFood]:
        """Return every favorite, most recently used first."""
        with storage_errors("Failed to load favorites"):
            rows = self.store.query(
                FAVORITE_FOODS, IndexQuery("lastUsedAt", descending=True)
            )
        return [parse_favorite(row) for row in rows]

    def get_top_favorites(self, limit: int = 10) -> list[FavoriteFood]:
        """Return the most used favorites."""
        with storage_errors("Failed to load favorites"):
            rows = self.store.query(
                FAVORITE_FOODS,
                IndexQuery("usageCount", descending=True, limit=limit),
            )
        return [parse_favorite(row) for row in rows]

    def increment_usage(self, favorite_id: str) -> FavoriteFood:
        """Record one more use of a favorite."""
        with storage_errors("Failed to update favorite"):
            with self.store.transaction([FAVORITE_FOODS]):
                favorite = self.get_favorite(favorite_id)
                if favorite is None:
                    raise NotFoundError(
                        f"Favorite {favorite_id} not found", favorite_id
                    )
                return self._bump(favorite)

    def increment_usage_by_food_id(self, food_id: str) -> FavoriteFood | None:
        """Record one more use of a food's favorite, if it has one."""
        with storage_errors("Failed to update favorite"):
            with self.store.transaction([FAVORITE_FOODS]):
                favorite = self._find_by_food(food_id)
                if favorite is None:
                    return None
                return self._bump(favorite)

    def get_total_count(self) -> int:
        """Return the number of favorites."""
        with storage_errors("Failed to count favorites"):
            return self.store.count(FAVORITE_FOODS)

    def _bump(self, favorite: FavoriteFood) -> FavoriteFood:
        updated = replace(
            favorite,
            usage_count=favorite.usage_count + 1,
            last_used_at=self.clock(),
        )
        self.store.put(FAVORITE_FOODS, to_record(updated))
        return updated

    def _find_by_food(self, food_id: str) -> FavoriteFood | None:
        with storage_errors("Failed to load favorite"):
            rows = self.store.query(
                FAVORITE_FOODS, IndexQuery("foodId", equals=food_id, limit=1)
            )
        return parse_favorite(rows[0]) if rows else None
