"""Retry helpers for statelock.

Only the dynamodb backend retries automatically; everything else fails
fast and leaves retry policy to the caller.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

from statelock.core.config import RetryConfig

T = TypeVar("T")


def retry_with_backoff(
    max_attempts: int,
    delay: float,
    retryable_exceptions: tuple[type[BaseException], ...],
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator that retries a call on a fixed delay.

    Args:
        max_attempts: Total number of attempts, including the first
        delay: Seconds to sleep between attempts
        retryable_exceptions: Exception types that trigger another attempt
        logger: Logger for retry messages
        on_retry: Called as on_retry(attempt_number, error, delay) before each sleep

    Returns:
        Decorated function. When attempts run out the last retryable
        exception propagates unchanged.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")
    if delay < 0:
        raise ValueError("delay cannot be negative")

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            _logger = logger or logging.getLogger(__name__)

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt + 1 >= max_attempts:
                        _logger.debug(
                            "%s failed after %d attempt(s): %s", getattr(func, "__name__", "call"), attempt + 1, e
                        )
                        raise

                    if on_retry is not None:
                        on_retry(attempt + 1, e, delay)
                    _logger.info(
                        "Attempt %d/%d of %s did not succeed (%s); retrying in %.1fs",
                        attempt + 1,
                        max_attempts,
                        getattr(func, "__name__", "call"),
                        e,
                        delay,
                    )
                    time.sleep(delay)

            # Unreachable: the loop either returns or raises
            raise RuntimeError("retry loop exited unexpectedly")

        return wrapper

    return decorator


def retry_from_config(
    config: RetryConfig,
    retryable_exceptions: tuple[type[BaseException], ...],
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Build a retry_with_backoff decorator from a RetryConfig."""
    return retry_with_backoff(
        max_attempts=config.max_attempts,
        delay=config.delay,
        retryable_exceptions=retryable_exceptions,
        logger=logger,
        on_retry=on_retry,
    )
