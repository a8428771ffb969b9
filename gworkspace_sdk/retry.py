"""Exponential backoff for async plugin calls.

Usage::

    from gworkspace_sdk import RetryConfig, with_retry, retry_error_for

    @with_retry(RetryConfig(max_retries=5, base_delay=1.0, max_delay=10.0))
    async def fetch_values():
        try:
            return await host.http.fetch("GET", url)
        except HttpRequestFailed as e:
            raise retry_error_for(e) from e

Only ``RetryableError`` is retried. A ``Retry-After`` hint carried by the
error replaces the computed backoff, still capped at ``max_delay``.
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import HttpRequestFailed


class RetryableError(Exception):
    """Transient failure (429, 5xx). ``retry_after`` is the server's hint in seconds."""

    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NonRetryableError(Exception):
    """Permanent failure; raised straight through ``@with_retry``."""


def retry_error_for(error: HttpRequestFailed) -> RetryableError | NonRetryableError:
    """Classify an HTTP failure for ``@with_retry``."""
    if error.is_retryable:
        return RetryableError(str(error), retry_after=error.retry_after_seconds)
    return NonRetryableError(str(error))


@dataclass
class RetryConfig:
    """Backoff settings.

    ``max_retries`` counts attempts after the first one. ``max_elapsed`` is an
    optional wall-clock budget: no sleep is started that would overrun it.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    max_elapsed: float | None = None

    def delay_for(self, attempt: int, retry_after: float | None = None) -> float:
        delay = retry_after if retry_after is not None else self.base_delay * (self.backoff_factor**attempt)
        return min(delay, self.max_delay)


def with_retry(config: RetryConfig) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.monotonic()
            attempt = 0
            while True:
                try:
                    return await fn(*args, **kwargs)
                except RetryableError as e:
                    if attempt >= config.max_retries:
                        raise
                    delay = config.delay_for(attempt, e.retry_after)
                    if config.max_elapsed is not None and time.monotonic() - started + delay > config.max_elapsed:
                        raise
                    attempt += 1
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
