"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from keyston.adapters.fdc_client import HttpxFdcClient
from keyston.adapters.off_client import HttpxOpenFoodFactsClient
from keyston.adapters.sqlite_store import SqliteStore
from keyston.app_logging import configure_logging
from keyston.config import Settings, parse_sources
from keyston.services.cache import ApiCacheService
from keyston.services.diary import FoodDiaryService
from keyston.services.favorites import FavoriteFoodsService
from keyston.services.foods import FoodService
from keyston.services.nutrition import FoodSource, NutritionService
from keyston.services.openfoodfacts_source import OpenFoodFactsSource
from keyston.services.sync import SyncService
from keyston.services.usda_source import UsdaFoodSource
from keyston.services.user_settings import UserSettingsService
from keyston.services.workouts import WorkoutService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: SqliteStore
    cache: ApiCacheService
    nutrition_service: NutritionService
    food_service: FoodService
    favorite_foods_service: FavoriteFoodsService
    food_diary_service: FoodDiaryService
    workout_service: WorkoutService
    user_settings_service: UserSettingsService
    sync_service: SyncService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    configure_logging(debug=resolved_settings.debug)
    store = SqliteStore.open(resolved_settings.database_path)
    store.initialize_defaults()
    cache = ApiCacheService(store, ttl=resolved_settings.cache_ttl())
    fdc_client = HttpxFdcClient.create(
        api_key=resolved_settings.fdc_api_key,
        base_url=resolved_settings.fdc_base_url,
        timeout=resolved_settings.http_timeout_seconds,
    )
    off_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.off_base_url,
        timeout=resolved_settings.http_timeout_seconds,
    )
    available: list[FoodSource] = [
        UsdaFoodSource(client=fdc_client, cache=cache),
        OpenFoodFactsSource(client=off_client, cache=cache),
    ]
    enabled = parse_sources(resolved_settings.default_sources)
    sources = [
        source for source in available if enabled is None or source.name in enabled
    ]
    nutrition_service = NutritionService(
        sources=sources,
        retry_config=resolved_settings.retry_config(),
        debug=resolved_settings.debug,
    )
    favorite_foods_service = FavoriteFoodsService(store)

    async def close_resources() -> None:
        await fdc_client.close()
        await off_client.close()
        store.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        cache=cache,
        nutrition_service=nutrition_service,
        food_service=FoodService(store),
        favorite_foods_service=favorite_foods_service,
        food_diary_service=FoodDiaryService(store, favorites=favorite_foods_service),
        workout_service=WorkoutService(store),
        user_settings_service=UserSettingsService(store),
        sync_service=SyncService(store),
        close_resources=close_resources,
    )
