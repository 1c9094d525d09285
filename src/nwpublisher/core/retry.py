"""Retry with exponential backoff for relay network operations.

Every relay round-trip that may be retried (connect, publish, delete) goes
through [retry_with_backoff()][nwpublisher.core.retry.retry_with_backoff],
so the backoff policy is defined and tested in one place.

Examples:
    ```python
    retry = RetryConfig(max_attempts=3, initial_delay=1.0)
    await retry_with_backoff(
        lambda: client.send_event(event),
        retry,
        operation="publish",
        relay_url=relay.url,
    )
    ```
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, Field, model_validator

from .exceptions import ConnectivityError
from .logger import Logger


_T = TypeVar("_T")

RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (TimeoutError, OSError, ConnectivityError)

_logger = Logger("retry")


class RetryConfig(BaseModel):
    """Retry settings with exponential backoff and optional jitter.

    Attempt ``n`` (0-based) waits ``min(initial_delay * multiplier**n,
    max_delay)`` plus ``uniform(0, jitter)`` seconds before the next try.

    Attributes:
        max_attempts: Retries after the first attempt (0 disables retrying).
        initial_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any single delay, in seconds.
        multiplier: Backoff growth factor.
        jitter: Maximum random seconds added to each delay.
    """

    max_attempts: int = Field(default=3, ge=0, le=10)
    initial_delay: float = Field(default=1.0, ge=0.0, le=30.0)
    max_delay: float = Field(default=10.0, ge=0.0, le=120.0)
    multiplier: float = Field(default=2.0, ge=1.0, le=10.0)
    jitter: float = Field(default=0.0, ge=0.0, le=5.0)

    @model_validator(mode="after")
    def _validate_delays(self) -> RetryConfig:
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )
        return self

    def delay_for(self, attempt: int) -> float:
        """Backoff delay (without jitter) after the 0-based *attempt*."""
        return min(self.initial_delay * (self.multiplier**attempt), self.max_delay)


async def retry_with_backoff(
    coro_factory: Callable[[], Awaitable[_T]],
    retry: RetryConfig,
    operation: str,
    *,
    relay_url: str | None = None,
    retry_on: tuple[type[BaseException], ...] = RETRYABLE_ERRORS,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> _T:
    """Await ``coro_factory()`` until it succeeds or retries are exhausted.

    Args:
        coro_factory: Callable returning a fresh awaitable on each call.
            Coroutines are single-use, so a factory is required.
        retry: Backoff policy.
        operation: Operation name for structured log messages.
        relay_url: Relay URL for logging context.
        retry_on: Exception types considered transient. Anything else
            propagates immediately.
        sleep: Awaitable sleep function (injectable for tests).

    Returns:
        The result of the first successful attempt.

    Raises:
        Exception: The last transient error once all attempts failed, or
            the first non-transient error.
    """
    attempt = 0
    while True:
        try:
            return await coro_factory()
        except retry_on as e:
            if attempt >= retry.max_attempts:
                _logger.debug(
                    "retry_exhausted",
                    operation=operation,
                    relay=relay_url,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise

            delay = retry.delay_for(attempt)
            if retry.jitter:
                delay += random.uniform(0, retry.jitter)  # noqa: S311
            _logger.debug(
                "retry_scheduled",
                operation=operation,
                relay=relay_url,
                attempt=attempt + 1,
                delay_s=round(delay, 3),
                error=str(e),
            )
            await sleep(delay)
            attempt += 1
