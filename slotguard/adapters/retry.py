"""
Bounded retry with exponential backoff for persistence calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import requests

from ..domain.exceptions import PersistenceError, TransientPersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONNECTION_ERROR_MESSAGE = (
    "Could not reach the server after several attempts. "
    "Check your internet connection and try again."
)

RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    TransientPersistenceError,
)


def backoff_delay(attempt: int, initial_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (1-based): doubles each time, capped."""
    return min(initial_delay * (2 ** (attempt - 1)), max_delay)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 10.0,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Run ``fn`` up to ``max_retries`` times.

    Exceptions outside ``retry_on`` propagate immediately. When every
    attempt fails a ``PersistenceError`` with a generic connection message
    is raised, chained to the last error.
    """
    if max_retries < 1:
        raise ValueError("max_retries must be at least 1")

    attempt = 0
    while True:
        try:
            return await fn()
        except retry_on as exc:
            attempt += 1
            if attempt >= max_retries:
                logger.error("All %s attempts failed. Last error: %s", max_retries, exc)
                raise PersistenceError(CONNECTION_ERROR_MESSAGE) from exc

            delay = backoff_delay(attempt, initial_delay, max_delay)
            logger.warning("Retry %s/%s after %.2fs: %s", attempt, max_retries, delay, exc)
            await sleep(delay)
