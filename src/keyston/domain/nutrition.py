"""Nutrition domain models."""

from dataclasses import dataclass
from typing import Literal

from keyston.domain.records import optional_float, optional_str, to_record

DataSource = Literal["usda", "openfoodfacts", "manual", "imported"]

DATA_SOURCES: tuple[str, ...] = ("usda", "openfoodfacts", "manual", "imported")


@dataclass(frozen=True)
class FoodSearchResult:
    """Canonical, source-independent food result.

    Nutrient values are per serving of ``serving_size`` ``serving_unit``.
    """

    id: str
    name: str
    data_source: DataSource
    serving_size: float
    serving_unit: str
    brand: str | None = None
    external_id: str | None = None
    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-compatible document for caching."""
        return to_record(self)

    @classmethod
    def from_payload(cls, payload: dict[str, object]) -> "FoodSearchResult":
        """Rebuild a result from a cached document."""
        return cls(
            id=str(payload["id"]),
            name=str(payload.get("name", "")),
            data_source=payload["dataSource"],  # type: ignore[arg-type]
            serving_size=float(payload.get("servingSize", 100)),  # type: ignore[arg-type]
            serving_unit=str(payload.get("servingUnit", "g")),
            brand=optional_str(payload.get("brand")),
            external_id=optional_str(payload.get("externalId")),
            calories=optional_float(payload.get("calories")),
            protein=optional_float(payload.get("protein")),
            carbs=optional_float(payload.get("carbs")),
            fat=optional_float(payload.get("fat")),
        )

    @property
    def dedupe_key(self) -> tuple[str, str]:
        """Case-insensitive (name, brand) merge key."""
        return (self.name.lower(), (self.brand or "").lower())
