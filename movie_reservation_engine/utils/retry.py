"""
Retry mechanisms with exponential backoff for handling transient failures.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Optional

from ..config import get_settings
from ..utils.exceptions import ConcurrencyError

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_factor: float = 1.0

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before the attempt following ``attempt`` (0-based)."""
        delay = min(
            self.base_delay * (self.exponential_base ** attempt) * self.backoff_factor,
            self.max_delay
        )
        # Add jitter to prevent thundering herd
        if self.jitter:
            delay = delay * (0.5 + random.random() * 0.5)
        return delay


async def retry_async(
    func: Callable,
    config: RetryConfig,
    *args,
    retryable_exceptions: tuple = (Exception,),
    non_retryable_exceptions: tuple = (),
    **kwargs
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        func: The async function to retry
        config: Retry configuration
        *args, **kwargs: Arguments to pass to the function
        retryable_exceptions: Exceptions that should trigger retries
        non_retryable_exceptions: Exceptions that should not trigger retries

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries are exhausted
    """
    last_exception = None

    for attempt in range(config.max_attempts):
        try:
            result = await func(*args, **kwargs)

            if attempt > 0:
                logger.info(f"Function {func.__name__} succeeded on attempt {attempt + 1}")

            return result

        except non_retryable_exceptions as e:
            logger.error(f"Non-retryable error in {func.__name__}: {e}")
            raise

        except retryable_exceptions as e:
            last_exception = e

            # Don't sleep after the last attempt
            if attempt == config.max_attempts - 1:
                break

            delay = config.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt + 1} failed for {func.__name__}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )

            await asyncio.sleep(delay)

    logger.error(f"All {config.max_attempts} attempts failed for {func.__name__}")
    raise last_exception


def retry_on_concurrency_error(
    max_attempts: Optional[int] = None,
    base_delay: float = 0.1,
    max_delay: float = 2.0,
    jitter: bool = True
):
    """
    Decorator for retrying operations that may fail due to storage contention.

    ``max_attempts`` defaults to the ``max_retry_attempts`` setting.
    """

    config = RetryConfig(
        max_attempts=max_attempts or get_settings().max_retry_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        jitter=jitter
    )

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await retry_async(
                func,
                config,
                *args,
                retryable_exceptions=(ConcurrencyError, asyncio.TimeoutError),
                non_retryable_exceptions=(ValueError, TypeError),
                **kwargs
            )
        return wrapper

    return decorator
