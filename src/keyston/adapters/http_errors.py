"""Translate httpx failures into the application error taxonomy."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx

from keyston.domain.errors import (
    ApiResponseError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RateLimitError,
)

_UNAUTHORIZED = 401
_FORBIDDEN = 403
_NOT_FOUND = 404
_TOO_MANY_REQUESTS = 429


def check_response(response: httpx.Response, service: str, resource_id: str) -> None:
    """Raise the matching error for a non-2xx response."""
    if response.is_success:
        return
    status = response.status_code
    if status == _NOT_FOUND:
        raise NotFoundError(f"{service}: {resource_id} not found", resource_id)
    if status in {_UNAUTHORIZED, _FORBIDDEN}:
        raise AuthenticationError(f"{service}: authentication failed ({status})")
    if status == _TOO_MANY_REQUESTS:
        raise RateLimitError(
            f"{service}: rate limit exceeded",
            retry_after=_retry_after(response.headers.get("Retry-After")),
        )
    raise ApiResponseError(
        f"{service} API error: {status} {response.reason_phrase}",
        status_code=status,
        status_text=response.reason_phrase,
    )


@asynccontextmanager
async def transport_errors(service: str) -> AsyncIterator[None]:
    """Map httpx transport failures inside the block to NetworkError."""
    try:
        yield
    except httpx.TransportError as exc:
        raise NetworkError(f"{service}: {exc.__class__.__name__}", exc) from exc


def _retry_after(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def decode_json(response: httpx.Response, service: str) -> dict[str, object]:
    """Return the JSON object body, treating anything else as a bad response."""
    try:
        payload = response.json()
    except ValueError as exc:
        raise ApiResponseError(
            f"{service}: response is not valid JSON",
            status_code=response.status_code,
            status_text=response.reason_phrase,
        ) from exc
    if not isinstance(payload, dict):
        raise ApiResponseError(
            f"{service}: unexpected response shape",
            status_code=response.status_code,
            status_text=response.reason_phrase,
        )
    return payload
