#!/usr/bin/env python3
"""
Bounded retry for idempotent remote operations.

Only remote bundle fetches are retried. Secret lookups, dispatch resolution
and executor calls are never retried: their failures are terminal.
"""

import functools
import logging
import time
from enum import Enum
from typing import Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)


class RetryStrategy(Enum):
    """Delay strategies between attempts."""

    EXPONENTIAL_BACKOFF = "exponential_backoff"
    LINEAR_BACKOFF = "linear_backoff"
    IMMEDIATE = "immediate"


def compute_delay(
    attempt: int, strategy: RetryStrategy, base_delay: float, max_delay: float
) -> float:
    """
    Delay to wait after a failed attempt.

    Args:
        attempt: 1-based number of the attempt that just failed
        strategy: Retry strategy
        base_delay: Base delay in seconds
        max_delay: Upper bound for the delay

    Returns:
        Delay in seconds
    """
    if strategy == RetryStrategy.EXPONENTIAL_BACKOFF:
        return min(base_delay * (2 ** (attempt - 1)), max_delay)
    if strategy == RetryStrategy.LINEAR_BACKOFF:
        return min(base_delay * attempt, max_delay)
    return 0.0


def retry_on_failure(
    max_attempts: int = 3,
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL_BACKOFF,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[int, int, float, BaseException], None]] = None,
    sleep: Optional[Callable[[float], None]] = None,
):
    """
    Decorator retrying a function on failure.

    Args:
        max_attempts: Maximum number of attempts (including the first)
        strategy: Retry strategy to use
        base_delay: Base delay between retries in seconds
        max_delay: Maximum delay between retries
        exceptions: Exceptions that trigger a retry
        should_retry: Optional predicate; a caught exception for which it
            returns False is re-raised immediately
        on_retry: Optional callback called before each retry
        sleep: Sleep function, time.sleep when None

    Example:
        @retry_on_failure(max_attempts=3, exceptions=(PackFetchError,))
        def fetch(url):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(1, max_attempts + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt == max_attempts:
                        raise

                    delay = compute_delay(attempt, strategy, base_delay, max_delay)
                    if on_retry:
                        on_retry(attempt, max_attempts, delay, e)
                    else:
                        logger.warning(
                            "%s failed (attempt %d/%d): %s; retrying in %.1fs",
                            func.__name__,
                            attempt,
                            max_attempts,
                            e,
                            delay,
                        )
                    if delay > 0:
                        (sleep or time.sleep)(delay)

        return wrapper

    return decorator
