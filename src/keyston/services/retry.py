"""Exponential backoff for transient nutrition API failures."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import ParamSpec, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_any,
    wait_exponential,
)

from keyston.domain.errors import is_retryable_error

T = TypeVar("T")
P = ParamSpec("P")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy.

    The wait after failed attempt ``n`` is
    ``min(initial_delay * backoff_multiplier ** (n - 1), max_delay)``.
    ``deadline`` optionally caps the total wall-clock seconds spent in one
    ``with_retry`` call; when the next backoff would cross it, the last error
    is raised instead of sleeping.
    """

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    deadline: float | None = None

    def wait(self) -> wait_exponential:
        return wait_exponential(
            multiplier=self.initial_delay,
            max=self.max_delay,
            exp_base=self.backoff_multiplier,
        )


DEFAULT_RETRY_CONFIG = RetryConfig()


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig = DEFAULT_RETRY_CONFIG,
    *,
    action: str = "operation",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> T:
    """Run ``operation`` until it succeeds, fails fatally or runs out of attempts.

    The last error is re-raised unchanged.
    """
    started = monotonic()

    def past_deadline(state: RetryCallState) -> bool:
        if config.deadline is None:
            return False
        if monotonic() - started + state.upcoming_sleep <= config.deadline:
            return False
        _logger.warning(
            "%s failed (attempt %s/%s); retry deadline reached",
            action,
            state.attempt_number,
            config.max_attempts,
        )
        return True

    def log_retry(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        _logger.warning(
            "%s failed (attempt %s/%s): %s; retrying in %.2fs",
            action,
            state.attempt_number,
            config.max_attempts,
            error,
            state.upcoming_sleep,
        )

    retryer = AsyncRetrying(
        stop=stop_any(stop_after_attempt(config.max_attempts), past_deadline),
        wait=config.wait(),
        retry=retry_if_exception(is_retryable_error),
        sleep=sleep,
        before_sleep=log_retry,
        reraise=True,
    )

    async def attempt() -> T:
        return await operation()

    return await retryer(attempt)


def retrying(
    func: Callable[P, Awaitable[T]], config: RetryConfig = DEFAULT_RETRY_CONFIG
) -> Callable[P, Awaitable[T]]:
    """Wrap a coroutine function so every call goes through ``with_retry``."""

    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        return await with_retry(
            lambda: func(*args, **kwargs), config, action=func.__name__
        )

    return wrapper
