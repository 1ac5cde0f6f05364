"""Shared test fixtures."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from keyston.adapters.fdc_client import FdcClient
from keyston.adapters.off_client import OpenFoodFactsClient
from keyston.adapters.sqlite_store import SqliteStore
from keyston.config import Settings
from keyston.domain.errors import NotFoundError
from keyston.domain.nutrition import FoodSearchResult
from keyston.services.cache import ApiCacheService
from keyston.services.retry import RetryConfig

NO_WAIT_RETRY = RetryConfig(max_attempts=3, initial_delay=0, max_delay=0)


@dataclass
class FakeClock:
    """Manually advanced UTC clock."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class FakeFdcClient(FdcClient):
    """Fake FDC client with in-memory responses."""

    search_payload: dict[str, object] = field(
        default_factory=lambda: {
            "foods": [
                {
                    "fdcId": 123456,
                    "description": "Roasted Chicken Breast",
                    "brandOwner": "Hillside Farms",
                    "brandName": "Hillside",
                    "dataType": "Branded Food",
                    "servingSize": 100,
                    "servingSizeUnit": "GRM",
                    "foodNutrients": [
                        {"nutrientId": 1008, "value": 165},
                        {"nutrientId": 1003, "value": 31},
                        {"nutrientId": 1004, "value": 3.6},
                        {"nutrientId": 1005, "value": 0},
                    ],
                }
            ]
        }
    )
    food_payload: dict[str, object] = field(
        default_factory=lambda: {
            "fdcId": 123456,
            "description": "Roasted Chicken Breast",
            "brandOwner": "Hillside Farms",
            "dataType": "Branded Food",
            "servingSize": 150,
            "servingSizeUnit": "grams",
            "foodNutrients": [
                {"nutrient": {"id": 1008}, "amount": 165},
                {"nutrient": {"id": 1003}, "amount": 31},
                {"nutrient": {"id": 1004}, "amount": 3.6},
                {"nutrient": {"id": 1005}, "amount": 0},
            ],
        }
    )
    search_calls: int = 0
    food_calls: int = 0

    async def search_foods(
        self, query: str, page_size: int = 25, page_number: int = 1
    ) -> dict[str, object]:
        self.search_calls += 1
        return self.search_payload

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        self.food_calls += 1
        return self.food_payload


@dataclass
class FakeOpenFoodFactsClient(OpenFoodFactsClient):
    """Fake Open Food Facts client with in-memory responses."""

    products: list[dict[str, object]] = field(
        default_factory=lambda: [
            {
                "code": "3017620422003",
                "product_name": "Nutella",
                "brands": "Ferrero, Nutella",
                "serving_size": "15 g",
                "nutriments": {
                    "energy-kcal_100g": 539,
                    "proteins_100g": 6.3,
                    "carbohydrates_100g": 57.5,
                    "fat_100g": 30.9,
                },
            },
            {"code": "0000000000000", "product_name": "", "nutriments": {}},
        ]
    )
    search_calls: int = 0
    product_calls: int = 0

    async def search_products(
        self, query: str, page_size: int = 25, page: int = 1
    ) -> dict[str, object]:
        self.search_calls += 1
        return {"count": len(self.products), "products": self.products}

    async def get_product(self, barcode: str) -> dict[str, object]:
        self.product_calls += 1
        for product in self.products:
            if product.get("code") == barcode:
                return {"status": 1, "code": barcode, "product": product}
        return {"status": 0, "code": barcode, "status_verbose": "product not found"}


@dataclass
class FakeSource:
    """Food source returning fixed results, or failing with ``error``."""

    name: str
    results: list[FoodSearchResult] = field(default_factory=list)
    error: Exception | None = None
    supports_barcode: bool = False
    numeric_ids: bool = False
    calls: int = 0
    lookups: list[str] = field(default_factory=list)

    async def search(
        self, query: str, page: int = 1, page_size: int = 25
    ) -> list[FoodSearchResult]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.results)

    async def lookup(self, external_id: str) -> FoodSearchResult:
        self.calls += 1
        self.lookups.append(external_id)
        if self.error is not None:
            raise self.error
        for result in self.results:
            if result.external_id == external_id:
                return result
        raise NotFoundError(f"{external_id} not found", external_id)


def make_result(
    name: str,
    brand: str | None = None,
    data_source: str = "usda",
    external_id: str | None = None,
    calories: float | None = 100,
) -> FoodSearchResult:
    return FoodSearchResult(
        id=f"{data_source}_{external_id or name}",
        name=name,
        brand=brand,
        data_source=data_source,  # type: ignore[arg-type]
        external_id=external_id,
        serving_size=100,
        serving_unit="g",
        calories=calories,
        protein=1,
        carbs=2,
        fat=3,
    )


@pytest.fixture
def store() -> Iterator[SqliteStore]:
    store = SqliteStore.open(":memory:")
    store.initialize_defaults()
    yield store
    store.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(store: SqliteStore, clock: FakeClock) -> ApiCacheService:
    return ApiCacheService(store, clock=clock)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_path=":memory:",
        fdc_api_key="fdc-key",
        retry_initial_delay_seconds=0,
        retry_max_delay_seconds=0,
    )
