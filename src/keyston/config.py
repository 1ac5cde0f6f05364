"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from keyston.services.cache import CacheTtl
from keyston.services.retry import RetryConfig

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    database_path: str = "keyston.db"
    fdc_api_key: str = "DEMO_KEY"
    fdc_base_url: str = "https://api.nal.usda.gov/fdc/v1"
    off_base_url: str = "https://world.openfoodfacts.org/api/v2"
    http_timeout_seconds: float = 15
    retry_max_attempts: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0
    retry_backoff_multiplier: float = 2.0
    retry_deadline_seconds: float | None = None
    cache_food_search_ttl_seconds: int = 86400
    cache_nutrition_data_ttl_seconds: int = 604800
    cache_barcode_lookup_ttl_seconds: int = 2592000
    default_sources: str = "usda,openfoodfacts"
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    def retry_config(self) -> RetryConfig:
        """Build the retry policy for outbound API calls."""
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            initial_delay=self.retry_initial_delay_seconds,
            max_delay=self.retry_max_delay_seconds,
            backoff_multiplier=self.retry_backoff_multiplier,
            deadline=self.retry_deadline_seconds,
        )

    def cache_ttl(self) -> CacheTtl:
        """Build the cache TTL policy."""
        return CacheTtl(
            food_search=self.cache_food_search_ttl_seconds,
            nutrition_data=self.cache_nutrition_data_ttl_seconds,
            barcode_lookup=self.cache_barcode_lookup_ttl_seconds,
        )


def parse_sources(raw: str | None) -> list[str] | None:
    """Parse the enabled source names from env."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*", "all"}:
        return None
    sources: list[str] = []
    for chunk in cleaned.split(","):
        value = chunk.strip().lower()
        if value and value not in sources:
            sources.append(value)
    return sources or None
