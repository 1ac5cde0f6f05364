"""Domain models for the food diary."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from keyston.domain.records import float_map, optional_float, parse_datetime

MealType = Literal["breakfast", "lunch", "dinner", "snack"]

MEAL_TYPES: tuple[str, ...] = ("breakfast", "lunch", "dinner", "snack")


@dataclass(frozen=True)
class FoodDiaryEntry:
    """A logged food item for a specific meal on a specific day."""

    id: str
    food_id: str
    entry_date: str
    meal_type: MealType
    serving_size: float
    serving_unit: str
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    created_at: datetime
    fiber_g: float | None = None
    sugar_g: float | None = None
    sodium_mg: float | None = None
    micronutrients: dict[str, float] | None = None


@dataclass(frozen=True)
class DailyNutritionTotals:
    """Summed nutrition for one day."""

    date: str
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    fiber_g: float = 0.0
    sugar_g: float = 0.0
    sodium_mg: float = 0.0
    entry_count: int = 0


def parse_diary_entry(row: dict[str, object]) -> FoodDiaryEntry:
    """Parse a stored diary document into a domain model."""
    created_at = parse_datetime(row.get("createdAt"))
    if created_at is None:
        raise ValueError("diary entry is missing createdAt")
    return FoodDiaryEntry(
        id=str(row["id"]),
        food_id=str(row["foodId"]),
        entry_date=str(row["entryDate"]),
        meal_type=row["mealType"],  # type: ignore[arg-type]
        serving_size=float(row["servingSize"]),  # type: ignore[arg-type]
        serving_unit=str(row["servingUnit"]),
        calories=float(row.get("calories", 0.0)),  # type: ignore[arg-type]
        protein_g=float(row.get("proteinG", 0.0)),  # type: ignore[arg-type]
        carbs_g=float(row.get("carbsG", 0.0)),  # type: ignore[arg-type]
        fat_g=float(row.get("fatG", 0.0)),  # type: ignore[arg-type]
        created_at=created_at,
        fiber_g=optional_float(row.get("fiberG")),
        sugar_g=optional_float(row.get("sugarG")),
        sodium_mg=optional_float(row.get("sodiumMg")),
        micronutrients=float_map(row.get("micronutrients")),
    )
