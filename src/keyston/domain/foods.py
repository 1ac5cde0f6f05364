"""Domain models for stored foods and favorites."""

from dataclasses import dataclass
from datetime import UTC, datetime

from keyston.domain.nutrition import DataSource
from keyston.domain.records import (
    float_map,
    optional_float,
    optional_str,
    parse_datetime,
)


@dataclass(frozen=True)
class Food:
    """Nutrition facts for a food, per default serving."""

    id: str
    name: str
    data_source: DataSource
    serving_size_default: float
    serving_unit_default: str
    calories_per_serving: float
    protein_g: float
    carbs_g: float
    fat_g: float
    created_at: datetime
    brand: str | None = None
    barcode: str | None = None
    external_id: str | None = None
    fiber_g: float | None = None
    sugar_g: float | None = None
    sodium_mg: float | None = None
    micronutrients: dict[str, float] | None = None


@dataclass(frozen=True)
class FavoriteFood:
    """A frequently used food."""

    id: str
    food_id: str
    usage_count: int
    last_used_at: datetime
    created_at: datetime


def parse_food(row: dict[str, object]) -> Food:
    """Parse a stored food document into a domain model."""
    return Food(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        data_source=row.get("dataSource", "manual"),  # type: ignore[arg-type]
        serving_size_default=float(row.get("servingSizeDefault", 100)),  # type: ignore[arg-type]
        serving_unit_default=str(row.get("servingUnitDefault", "g")),
        calories_per_serving=float(row.get("caloriesPerServing", 0.0)),  # type: ignore[arg-type]
        protein_g=float(row.get("proteinG", 0.0)),  # type: ignore[arg-type]
        carbs_g=float(row.get("carbsG", 0.0)),  # type: ignore[arg-type]
        fat_g=float(row.get("fatG", 0.0)),  # type: ignore[arg-type]
        created_at=parse_datetime(row.get("createdAt"))
        or datetime.min.replace(tzinfo=UTC),
        brand=optional_str(row.get("brand")),
        barcode=optional_str(row.get("barcode")),
        external_id=optional_str(row.get("externalId")),
        fiber_g=optional_float(row.get("fiberG")),
        sugar_g=optional_float(row.get("sugarG")),
        sodium_mg=optional_float(row.get("sodiumMg")),
        micronutrients=float_map(row.get("micronutrients")),
    )


def parse_favorite(row: dict[str, object]) -> FavoriteFood:
    """Parse a stored favorite document into a domain model."""
    last_used_at = parse_datetime(row.get("lastUsedAt"))
    created_at = parse_datetime(row.get("createdAt"))
    if last_used_at is None or created_at is None:
        raise ValueError("favorite is missing timestamps")
    return FavoriteFood(
        id=str(row["id"]),
        food_id=str(row["foodId"]),
        usage_count=int(row.get("usageCount", 1)),  # type: ignore[call-overload]
        last_used_at=last_used_at,
        created_at=created_at,
    )
