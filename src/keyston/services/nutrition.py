"""Nutrition lookups aggregated across independent food databases."""

import asyncio
import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from keyston.domain.errors import NotFoundError, ValidationError, user_friendly_message
from keyston.domain.nutrition import FoodSearchResult
from keyston.services.retry import DEFAULT_RETRY_CONFIG, RetryConfig, with_retry

_logger = logging.getLogger(__name__)

ALL_SOURCES = "all"

_UNIT_ALIASES = {
    "grams": "g",
    "gram": "g",
    "grm": "g",
    "milliliters": "ml",
    "milliliter": "ml",
    "mlt": "ml",
}

SERVING_SIZE_PATTERN = re.compile(r"(\d+\.?\d*)\s*([a-zA-Z]+)")


class FoodSource(Protocol):
    """One external nutrition database, normalized to canonical results."""

    name: str
    supports_barcode: bool
    numeric_ids: bool

    async def search(
        self, query: str, page: int = 1, page_size: int = 25
    ) -> list[FoodSearchResult]:
        """Return canonical results for a free-text query."""

    async def lookup(self, external_id: str) -> FoodSearchResult:
        """Return one item by its source id; raise NotFoundError if absent."""


def normalize_unit(unit: str | None) -> str:
    """Lowercase a serving unit and collapse spelled-out metric units."""
    cleaned = (unit or "g").strip().lower() or "g"
    return _UNIT_ALIASES.get(cleaned, cleaned)


def parse_serving_size(raw: str | None) -> tuple[float, str]:
    """Parse strings like ``"150g"`` or ``"250 ml"``; default to 100 g."""
    if raw:
        match = SERVING_SIZE_PATTERN.search(raw)
        if match:
            return float(match.group(1)), normalize_unit(match.group(2))
    return 100.0, "g"


def loose_float(value: object) -> float | None:
    """Read a numeric API field that may be missing, blank or a string."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def clean_str(value: object) -> str | None:
    """Read a text API field, treating blank strings as missing."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def scale_per_100(value: float | None, serving_size: float) -> float | None:
    """Convert a per-100-unit value to a per-serving value."""
    if value is None:
        return None
    return value * serving_size / 100


def merge_results(
    results: Iterable[Sequence[FoodSearchResult]],
) -> list[FoodSearchResult]:
    """Concatenate per-source results keeping the first of each (name, brand)."""
    merged: list[FoodSearchResult] = []
    seen: set[tuple[str, str]] = set()
    for source_results in results:
        for result in source_results:
            if result.dedupe_key in seen:
                continue
            seen.add(result.dedupe_key)
            merged.append(result)
    return merged


def sort_by_relevance(
    results: Iterable[FoodSearchResult], query: str
) -> list[FoodSearchResult]:
    """Order exact matches, then prefix matches, then substring matches.

    Ties are broken alphabetically, case-insensitively first.
    """
    needle = query.strip().lower()

    def key(result: FoodSearchResult) -> tuple[int, str, str]:
        name = result.name.lower()
        if name == needle:
            rank = 0
        elif name.startswith(needle):
            rank = 1
        elif needle in name:
            rank = 2
        else:
            rank = 3
        return (rank, name, result.name)

    return sorted(results, key=key)


@dataclass
class NutritionService:
    """Single query surface over every configured food source."""

    sources: list[FoodSource]
    retry_config: RetryConfig = field(default_factory=lambda: DEFAULT_RETRY_CONFIG)
    debug: bool = False

    async def search(
        self,
        query: str,
        page_size: int = 25,
        page: int = 1,
        sources: Sequence[str] | None = None,
    ) -> list[FoodSearchResult]:
        """Search every requested source concurrently and merge the results.

        A source that still fails after retries contributes no results.
        """
        if not query or not query.strip():
            raise ValidationError(
                "Search query cannot be empty", {"query": "must not be empty"}
            )
        selected = self._select(sources)
        cleaned = query.strip()
        per_source = await asyncio.gather(
            *(
                self._search_source(source, cleaned, page, page_size)
                for source in selected
            )
        )
        merged = merge_results(per_source)
        if self.debug:
            _logger.info(
                "Nutrition search: query=%s sources=%s results=%s",
                cleaned,
                [source.name for source in selected],
                len(merged),
            )
        return sort_by_relevance(merged, cleaned)

    async def get_by_barcode(self, barcode: str) -> FoodSearchResult | None:
        """Look up a packaged product by barcode; None when unknown."""
        if not barcode or not barcode.strip():
            raise ValidationError(
                "Barcode cannot be empty", {"barcode": "must not be empty"}
            )
        source = next((item for item in self.sources if item.supports_barcode), None)
        if source is None:
            raise ValidationError(
                "No configured source supports barcode lookup",
                {"barcode": "unsupported"},
            )
        return await self._lookup(source, barcode.strip())

    async def get_by_id(
        self, food_id: str, source_name: str
    ) -> FoodSearchResult | None:
        """Look up one item by its id at a specific source; None when unknown."""
        if not food_id or not food_id.strip():
            raise ValidationError(
                "Food ID cannot be empty", {"food_id": "must not be empty"}
            )
        source = self._source(source_name)
        cleaned = food_id.strip()
        if source.numeric_ids:
            if not (cleaned.isascii() and cleaned.isdigit()):
                raise ValidationError(
                    f"Invalid {source.name} food ID",
                    {"food_id": "must be a non-negative integer"},
                )
            cleaned = str(int(cleaned))
        return await self._lookup(source, cleaned)

    async def test_connections(self) -> dict[str, bool]:
        """Report which sources answer a minimal search; never raises."""
        statuses = await asyncio.gather(
            *(self._test_source(source) for source in self.sources)
        )
        return {
            source.name: status
            for source, status in zip(self.sources, statuses, strict=True)
        }

    @staticmethod
    def error_message(exc: BaseException) -> str:
        """Return the user-facing message for an error."""
        return user_friendly_message(exc)

    async def _search_source(
        self, source: FoodSource, query: str, page: int, page_size: int
    ) -> list[FoodSearchResult]:
        try:
            return await with_retry(
                lambda: source.search(query, page=page, page_size=page_size),
                self.retry_config,
                action=f"{source.name} search",
            )
        except Exception:
            _logger.exception("%s search failed; continuing without it", source.name)
            return []

    async def _lookup(
        self, source: FoodSource, external_id: str
    ) -> FoodSearchResult | None:
        try:
            return await with_retry(
                lambda: source.lookup(external_id),
                self.retry_config,
                action=f"{source.name} lookup {external_id}",
            )
        except NotFoundError:
            return None

    async def _test_source(self, source: FoodSource) -> bool:
        try:
            results = await source.search("apple", page=1, page_size=1)
        except Exception:
            _logger.warning("%s connection test failed", source.name, exc_info=True)
            return False
        return len(results) > 0

    def _select(self, names: Sequence[str] | None) -> list[FoodSource]:
        if not names or ALL_SOURCES in names:
            return list(self.sources)
        unknown = sorted(set(names) - {source.name for source in self.sources})
        if unknown:
            raise ValidationError(
                "Unknown nutrition source", {"sources": ", ".join(unknown)}
            )
        return [source for source in self.sources if source.name in names]

    def _source(self, name: str) -> FoodSource:
        for source in self.sources:
            if source.name == name:
                return source
        raise ValidationError("Unknown nutrition source", {"source": name})
