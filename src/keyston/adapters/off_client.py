"""Open Food Facts API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from keyston.adapters.http_errors import check_response, decode_json, transport_errors

_SERVICE = "Open Food Facts"
_SEARCH_FIELDS = "code,product_name,brands,quantity,serving_size,nutriments"


class OpenFoodFactsClient(Protocol):
    """Interface for Open Food Facts API interactions."""

    async def search_products(
        self, query: str, page_size: int = 25, page: int = 1
    ) -> dict[str, object]:
        """Search products by free text and return raw API data."""

    async def get_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product by barcode and return raw API data."""


@dataclass
class HttpxOpenFoodFactsClient(OpenFoodFactsClient):
    """HTTPX-backed Open Food Facts client."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(cls, base_url: str, timeout: float = 15) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url, http_client=httpx.AsyncClient(), timeout=timeout)

    async def search_products(
        self, query: str, page_size: int = 25, page: int = 1
    ) -> dict[str, object]:
        """Search products by free text."""
        async with transport_errors(_SERVICE):
            response = await self.http_client.get(
                f"{self.base_url}/search",
                params={
                    "search_terms": query,
                    "page": page,
                    "page_size": page_size,
                    "json": 1,
                    "fields": _SEARCH_FIELDS,
                },
                timeout=self.timeout,
            )
        check_response(response, _SERVICE, query)
        return decode_json(response, _SERVICE)

    async def get_product(self, barcode: str) -> dict[str, object]:
        """Fetch a product by barcode."""
        async with transport_errors(_SERVICE):
            response = await self.http_client.get(
                f"{self.base_url}/product/{barcode}.json",
                timeout=self.timeout,
            )
        check_response(response, _SERVICE, barcode)
        return decode_json(response, _SERVICE)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
