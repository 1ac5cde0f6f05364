"""Client for the USDA FoodData Central REST API."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from keyston.adapters.http_errors import check_response, decode_json, transport_errors

_SERVICE = "USDA FoodData Central"


class FdcClient(Protocol):
    """Raw FoodData Central calls used by the USDA food source."""

    async def search_foods(
        self, query: str, page_size: int = 25, page_number: int = 1
    ) -> dict[str, object]:
        """Return the raw ``foods/search`` payload for one page."""

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        """Return the raw ``food/{fdcId}`` payload."""


@dataclass
class HttpxFdcClient(FdcClient):
    """FoodData Central over httpx, authenticated with an ``api_key`` param."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 15

    @classmethod
    def create(
        cls, api_key: str, base_url: str, timeout: float = 15
    ) -> "HttpxFdcClient":
        return cls(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def search_foods(
        self, query: str, page_size: int = 25, page_number: int = 1
    ) -> dict[str, object]:
        body = {"query": query, "pageSize": page_size, "pageNumber": page_number}
        return await self._send("POST", "foods/search", query, json=body)

    async def get_food(self, fdc_id: int) -> dict[str, object]:
        return await self._send("GET", f"food/{fdc_id}", str(fdc_id))

    async def close(self) -> None:
        await self.http_client.aclose()

    async def _send(
        self,
        method: str,
        path: str,
        resource: str,
        json: dict[str, object] | None = None,
    ) -> dict[str, object]:
        async with transport_errors(_SERVICE):
            response = await self.http_client.request(
                method,
                f"{self.base_url}/{path}",
                params={"api_key": self.api_key},
                json=json,
                timeout=self.timeout,
            )
        check_response(response, _SERVICE, resource)
        return decode_json(response, _SERVICE)
