"""Tests for error classification and user-facing messages."""

import pytest

from keyston.domain.errors import (
    ApiResponseError,
    AuthenticationError,
    KeystonError,
    NetworkError,
    NotFoundError,
    NutritionApiError,
    RateLimitError,
    StorageError,
    ValidationError,
    is_retryable_error,
    user_friendly_message,
)


@pytest.mark.parametrize(
    ("error", "retryable"),
    [
        (NetworkError("offline"), True),
        (RateLimitError("slow down", retry_after=5), True),
        (ApiResponseError("boom", status_code=503), True),
        (ApiResponseError("busy", status_code=429), True),
        (ApiResponseError("bad", status_code=400), False),
        (NotFoundError("missing", "1"), False),
        (AuthenticationError("denied"), False),
        (ValidationError("bad input", {"query": "empty"}), False),
        (StorageError("disk"), False),
        (RuntimeError("bug"), False),
    ],
)
def test_is_retryable_error(error: Exception, retryable: bool) -> None:
    assert is_retryable_error(error) is retryable


def test_error_hierarchy_and_codes() -> None:
    error = RateLimitError("slow down", retry_after=2.5)

    assert isinstance(error, NutritionApiError)
    assert isinstance(error, KeystonError)
    assert error.code == "RATE_LIMIT_EXCEEDED"
    assert error.retry_after == 2.5
    assert not isinstance(ValidationError("x"), NutritionApiError)
    assert ValidationError("x").fields == {}


def test_user_friendly_messages() -> None:
    assert "internet connection" in user_friendly_message(NetworkError("x"))
    assert "Too many requests" in user_friendly_message(RateLimitError("x"))
    assert "not found" in user_friendly_message(NotFoundError("x", "1"))
    assert "temporarily unavailable" in user_friendly_message(
        ApiResponseError("x", status_code=502)
    )
    assert user_friendly_message(ApiResponseError("x", status_code=404)) == (
        "Resource not found."
    )
    assert user_friendly_message(KeyError("x")) == (
        "An unexpected error occurred. Please try again."
    )
