"""
Retry utilities for weathersync.

This module retries remote calls that failed with a retryable error
(server faults). Anything else propagates on the first failure.
"""

import asyncio
import random
from typing import Awaitable, Callable, TypeVar
from weathersync.core.errors import is_retryable
from weathersync.observability.logging_setup import get_logger

T = TypeVar('T')

log = get_logger("weathersync.retry")

async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    attempts: int = 2,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    jitter: bool = True,
    retry_on: Callable[[BaseException], bool] = is_retryable,
    operation: str = "operation",
) -> T:
    """
    Calls ``func`` up to ``attempts`` times with exponential backoff.

    Args:
        func: Async function to call
        attempts: Total number of calls, at least 1
        base_delay: Delay before the second call (seconds)
        max_delay: Upper bound on any delay (seconds)
        jitter: Randomise each delay into [delay/2, delay]
        retry_on: Predicate selecting errors worth another attempt
        operation: Name used in log lines

    Returns:
        Result of the first successful call

    Raises:
        The error of the last attempt, or the first non-retryable error
    """
    attempts = max(1, attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except Exception as e:
            if attempt >= attempts or not retry_on(e):
                raise

            delay = min(max_delay, base_delay * (2 ** (attempt - 1)))
            if jitter:
                delay = delay * (0.5 + random.random() * 0.5)

            log.warning("Retrying after failure", operation=operation,
                        attempt=attempt, attempts=attempts, delay=round(delay, 2), error=str(e))
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")
