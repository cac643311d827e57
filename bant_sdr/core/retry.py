"""
Retry helpers with exponential backoff.

Used around LLM completions, where transient network/API failures are
expected. Synchronous code in this project never retries.
"""

from __future__ import annotations

import asyncio
import functools
import random
from typing import Any, Callable, Type

from bant_sdr.core.logger import logger


def calculate_backoff(
    attempt: int,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """
    Calculate backoff delay using exponential backoff with optional jitter.

    Args:
        attempt: Current attempt number (0-indexed).
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay in seconds.
        exponential_base: Base for exponential calculation.
        jitter: Whether to scale the delay by a random factor in [0.5, 1.5).

    Returns:
        Delay in seconds before the next attempt.
    """
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_async(
    max_retries: int = 1,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    exceptions: tuple[Type[Exception], ...] = (Exception,),
) -> Callable:
    """
    Decorator for coroutines that retries on the given exceptions.

    The last exception is re-raised once ``max_retries`` is exhausted.

    Example:
        @retry_async(max_retries=1, exceptions=(groq.APIConnectionError,))
        async def complete(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries:
                        logger.error(
                            f"[Retry] {func.__name__} failed after {max_retries + 1} attempts: {e}"
                        )
                        raise

                    delay = calculate_backoff(attempt, base_delay, max_delay)
                    logger.warning(
                        f"[Retry] {func.__name__} failed (attempt {attempt + 1}/{max_retries + 1}): {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)

        return wrapper
    return decorator
