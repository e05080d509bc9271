"""
Retry utilities for handling transient upstream errors.

This module provides an async retry decorator with exponential backoff and
jitter, used by the outbound HTTP transport.
"""

import asyncio
import logging
import random
from collections.abc import Callable
from functools import wraps

logger = logging.getLogger(__name__)


def backoff_delay(
    attempt: int,
    initial_delay: float,
    max_delay: float,
    exponential_base: float,
    max_jitter: float = 0.0,
) -> float:
    """Delay before retrying after ``attempt`` (1-based) failed attempts."""
    delay = min(initial_delay * (exponential_base ** (attempt - 1)), max_delay)
    if max_jitter > 0:
        delay += random.uniform(0, max_jitter)
    return delay


def with_async_retry(
    max_attempts: int = 3,
    initial_delay: float = 0.1,
    max_delay: float = 2.0,
    exponential_base: float = 2.0,
    max_jitter: float = 0.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
):
    """
    Async retry decorator with exponential backoff.

    Only the listed exception types are retried; anything else propagates on
    the first failure.

    Args:
        max_attempts: Maximum number of attempts, including the first (default: 3)
        initial_delay: Initial delay in seconds before first retry (default: 0.1s)
        max_delay: Maximum delay in seconds between retries (default: 2.0s)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        max_jitter: Upper bound of random jitter added to each delay (default: 0)
        exceptions: Tuple of exception types to catch and retry (default: all exceptions)

    Returns:
        Decorated async function that will retry on specified exceptions

    Example:
        @with_async_retry(max_attempts=3, exceptions=(httpx.TransportError,))
        async def fetch():
            ...
    """
    max_attempts = max(1, max_attempts)

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(1, max_attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e

                    if attempt < max_attempts:
                        delay = backoff_delay(
                            attempt, initial_delay, max_delay, exponential_base, max_jitter
                        )

                        logger.warning(
                            f"{func.__name__} failed (attempt {attempt}/{max_attempts}): {e}. "
                            f"Retrying in {delay:.3f}s..."
                        )

                        await asyncio.sleep(delay)
                    elif max_attempts > 1:
                        logger.error(f"{func.__name__} failed after {max_attempts} attempts: {e}")

            # All retries exhausted, raise the last exception
            raise last_exception

        return wrapper

    return decorator
