"""USDA FoodData Central as a food source."""

import logging
from dataclasses import dataclass

from keyston.adapters.fdc_client import FdcClient
from keyston.domain.errors import NotFoundError, ValidationError
from keyston.domain.nutrition import FoodSearchResult
from keyston.services.cache import ApiCacheService
from keyston.services.nutrition import (
    clean_str,
    loose_float,
    normalize_unit,
    scale_per_100,
)

_NUTRIENT_IDS = {
    "calories": 1008,
    "protein": 1003,
    "fat": 1004,
    "carbs": 1005,
}

_logger = logging.getLogger(__name__)


@dataclass
class UsdaFoodSource:
    """Search and detail lookups against FDC, cached per query and per food."""

    client: FdcClient
    cache: ApiCacheService
    name: str = "usda"
    supports_barcode: bool = False
    numeric_ids: bool = True

    async def search(
        self, query: str, page: int = 1, page_size: int = 25
    ) -> list[FoodSearchResult]:
        """Search FDC foods with caching."""
        cache_key = f"usda_search_{query}_{page}_{page_size}"
        cached = self.cache.get_cached_search_results(cache_key)
        if isinstance(cached, list):
            return [FoodSearchResult.from_payload(item) for item in cached]

        payload = await self.client.search_foods(
            query, page_size=page_size, page_number=page
        )
        foods = payload.get("foods") or []
        results = [
            _to_result(food)
            for food in foods  # type: ignore[union-attr]
            if isinstance(food, dict) and food.get("fdcId") is not None
        ]
        self.cache.cache_search_results(
            cache_key, [result.to_payload() for result in results]
        )
        _logger.debug("USDA search: query=%s results=%s", query, len(results))
        return results

    async def lookup(self, external_id: str) -> FoodSearchResult:
        """Retrieve one food by FDC id with caching."""
        if not (external_id.isascii() and external_id.isdigit()):
            raise ValidationError(
                "Invalid USDA food ID", {"food_id": "must be a non-negative integer"}
            )
        fdc_id = int(external_id)
        cache_key = f"usda_food_{fdc_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, dict):
            return FoodSearchResult.from_payload(cached)

        payload = await self.client.get_food(fdc_id)
        if payload.get("fdcId") is None:
            raise NotFoundError(f"USDA food {fdc_id} not found", str(fdc_id))
        result = _to_result(payload)
        self.cache.set(cache_key, result.to_payload(), self.cache.ttl.nutrition_data)
        return result


def _to_result(food: dict[str, object]) -> FoodSearchResult:
    """Normalize one FDC food into a canonical result."""
    serving_size = loose_float(food.get("servingSize")) or 100.0
    serving_unit = normalize_unit(clean_str(food.get("servingSizeUnit")))
    nutrients = _extract_nutrients(food.get("foodNutrients") or [])  # type: ignore[arg-type]
    return FoodSearchResult(
        id=f"usda_{food['fdcId']}",
        name=clean_str(food.get("description")) or "",
        brand=clean_str(food.get("brandOwner")) or clean_str(food.get("brandName")),
        data_source="usda",
        external_id=str(food["fdcId"]),
        serving_size=serving_size,
        serving_unit=serving_unit,
        calories=scale_per_100(nutrients.get("calories"), serving_size),
        protein=scale_per_100(nutrients.get("protein"), serving_size),
        carbs=scale_per_100(nutrients.get("carbs"), serving_size),
        fat=scale_per_100(nutrients.get("fat"), serving_size),
    )


def _extract_nutrients(food_nutrients: list[dict[str, object]]) -> dict[str, float]:
    """Pick the tracked nutrients out of an FDC nutrient list.

    Search results carry ``nutrientId``/``value``; detail responses nest the id
    under ``nutrient`` and use ``amount``.
    """
    by_id = {nutrient_id: key for key, nutrient_id in _NUTRIENT_IDS.items()}
    values: dict[str, float] = {}
    for nutrient in food_nutrients:
        if not isinstance(nutrient, dict):
            continue
        nutrient_info = nutrient.get("nutrient") or {}
        nutrient_id = nutrient.get("nutrientId") or nutrient_info.get("id")  # type: ignore[union-attr]
        key = by_id.get(nutrient_id)  # type: ignore[arg-type]
        if key is None or key in values:
            continue
        amount = nutrient.get("value")
        if amount is None:
            amount = nutrient.get("amount")
        value = loose_float(amount)
        if value is not None:
            values[key] = value
    return values
