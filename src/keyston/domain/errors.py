"""Error taxonomy shared by the store, the nutrition sources and services."""


class KeystonError(Exception):
    """Base class for all application errors."""

    code = "KEYSTON_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NutritionApiError(KeystonError):
    """Base class for errors raised while talking to a nutrition database."""

    code = "NUTRITION_API_ERROR"


class NetworkError(NutritionApiError):
    """Connection failure or timeout."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.original_error = original_error


class RateLimitError(NutritionApiError):
    """The remote service asked us to slow down."""

    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ApiResponseError(NutritionApiError):
    """The remote service returned a non-2xx response."""

    code = "API_RESPONSE_ERROR"

    def __init__(self, message: str, status_code: int, status_text: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text


class NotFoundError(NutritionApiError):
    """The requested resource does not exist."""

    code = "NOT_FOUND"

    def __init__(self, message: str, resource_id: str) -> None:
        super().__init__(message)
        self.resource_id = resource_id


class AuthenticationError(NutritionApiError):
    """Invalid or expired credentials."""

    code = "AUTHENTICATION_ERROR"


class ValidationError(KeystonError):
    """Caller supplied invalid input; ``fields`` maps field name to problem."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or {}


class StorageError(KeystonError):
    """Local persistence failure."""

    code = "STORAGE_ERROR"


_TOO_MANY_REQUESTS = 429
_SERVER_ERROR = 500
_NOT_FOUND = 404


def is_retryable_error(exc: BaseException) -> bool:
    """Return True for transient failures worth another attempt."""
    if isinstance(exc, NetworkError | RateLimitError):
        return True
    if isinstance(exc, ApiResponseError):
        return exc.status_code >= _SERVER_ERROR or exc.status_code == _TOO_MANY_REQUESTS
    return False


def user_friendly_message(exc: BaseException) -> str:
    """Map any error to the message shown to the user."""
    if isinstance(exc, NetworkError):
        return (
            "Unable to connect to the nutrition database. "
            "Please check your internet connection."
        )
    if isinstance(exc, RateLimitError):
        return "Too many requests. Please wait a moment and try again."
    if isinstance(exc, NotFoundError):
        return "Food item not found in the database."
    if isinstance(exc, AuthenticationError):
        return (
            "Unable to authenticate with the nutrition database. "
            "Please try again later."
        )
    if isinstance(exc, ValidationError):
        return "Invalid input. Please check the values and try again."
    if isinstance(exc, StorageError):
        return "Unable to save data on this device. Please try again."
    if isinstance(exc, ApiResponseError):
        if exc.status_code == _NOT_FOUND:
            return "Resource not found."
        if exc.status_code >= _SERVER_ERROR:
            return (
                "The nutrition database is temporarily unavailable. "
                "Please try again later."
            )
        return "An error occurred while fetching nutrition data."
    return "An unexpected error occurred. Please try again."
