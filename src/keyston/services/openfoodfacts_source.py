"""Open Food Facts as a food source."""

import logging
from dataclasses import dataclass

from keyston.adapters.off_client import OpenFoodFactsClient
from keyston.domain.errors import NotFoundError
from keyston.domain.nutrition import FoodSearchResult
from keyston.services.cache import ApiCacheService
from keyston.services.nutrition import (
    clean_str,
    loose_float,
    parse_serving_size,
    scale_per_100,
)

_KJ_PER_KCAL = 4.184

_logger = logging.getLogger(__name__)


@dataclass
class OpenFoodFactsSource:
    """Text search and barcode lookups against Open Food Facts."""

    client: OpenFoodFactsClient
    cache: ApiCacheService
    name: str = "openfoodfacts"
    supports_barcode: bool = True
    numeric_ids: bool = False

    async def search(
        self, query: str, page: int = 1, page_size: int = 25
    ) -> list[FoodSearchResult]:
        """Search products by name, skipping products without one."""
        cache_key = f"off_search_{query}_{page}_{page_size}"
        cached = self.cache.get_cached_search_results(cache_key)
        if isinstance(cached, list):
            return [FoodSearchResult.from_payload(item) for item in cached]

        payload = await self.client.search_products(
            query, page_size=page_size, page=page
        )
        products = payload.get("products") or []
        results = [
            result
            for result in (
                _to_result(product)
                for product in products  # type: ignore[union-attr]
                if isinstance(product, dict)
            )
            if result is not None
        ]
        self.cache.cache_search_results(
            cache_key, [result.to_payload() for result in results]
        )
        _logger.debug("OFF search: query=%s results=%s", query, len(results))
        return results

    async def lookup(self, external_id: str) -> FoodSearchResult:
        """Look up a product by barcode."""
        cached = self.cache.get_cached_barcode_lookup(external_id)
        if isinstance(cached, dict):
            return FoodSearchResult.from_payload(cached)

        payload = await self.client.get_product(external_id)
        product = payload.get("product")
        if payload.get("status") == 0 or not isinstance(product, dict):
            raise NotFoundError(f"Product {external_id} not found", external_id)
        product.setdefault("code", external_id)
        result = _to_result(product)
        if result is None:
            raise NotFoundError(f"Product {external_id} has no name", external_id)
        self.cache.cache_barcode_lookup(external_id, result.to_payload())
        return result


def _to_result(product: dict[str, object]) -> FoodSearchResult | None:
    """Normalize one product; None when it has no usable name."""
    name = clean_str(product.get("product_name"))
    if name is None:
        return None
    code = clean_str(product.get("code"))
    serving_size, serving_unit = parse_serving_size(
        clean_str(product.get("serving_size"))
    )
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict):
        nutriments = {}
    calories = loose_float(nutriments.get("energy-kcal_100g"))
    if calories is None:
        energy_kj = loose_float(nutriments.get("energy_100g"))
        calories = energy_kj / _KJ_PER_KCAL if energy_kj is not None else None
    return FoodSearchResult(
        id=f"off_{code or 'unknown'}",
        name=name,
        brand=_first_brand(product.get("brands")),
        data_source="openfoodfacts",
        external_id=code,
        serving_size=serving_size,
        serving_unit=serving_unit,
        calories=scale_per_100(calories, serving_size),
        protein=scale_per_100(
            loose_float(nutriments.get("proteins_100g")), serving_size
        ),
        carbs=scale_per_100(
            loose_float(nutriments.get("carbohydrates_100g")), serving_size
        ),
        fat=scale_per_100(loose_float(nutriments.get("fat_100g")), serving_size),
    )


def _first_brand(raw: object) -> str | None:
    text = clean_str(raw)
    if text is None:
        return None
    return clean_str(text.split(",")[0])
