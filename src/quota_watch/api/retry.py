"""Bounded retry with exponential backoff and rate-limit handling."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

from quota_watch.errors import RateLimitedError, RetryAborted, is_retryable

log = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_INITIAL_DELAY = 2.0  # seconds
DEFAULT_RATE_LIMIT_DELAY = 30.0  # seconds, when 429 carries no Retry-After

T = TypeVar("T")

# A sleep function; returning True means "stop requested" (threading.Event.wait)
SleepFunc = Callable[[float], Optional[bool]]


def calculate_backoff_delay(attempt: int, initial_delay: float = DEFAULT_INITIAL_DELAY) -> float:
    """Calculate the exponential backoff delay for an attempt.

    Args:
        attempt: Current attempt number (0-indexed).
        initial_delay: Delay before the first retry in seconds.

    Returns:
        initial_delay * 2^attempt.
    """
    return initial_delay * (2**attempt)


def calculate_retry_delay(
    error: BaseException,
    attempt: int,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
) -> float:
    """Calculate how long to wait before retrying after an error.

    Rate limiting waits exactly what the server asked for and does not
    take part in exponential growth.

    Args:
        error: The retryable error that occurred.
        attempt: Current attempt number (0-indexed).
        initial_delay: Base delay for exponential backoff.

    Returns:
        Delay in seconds.
    """
    if isinstance(error, RateLimitedError):
        if error.retry_after is not None:
            return max(0.0, error.retry_after)
        return DEFAULT_RATE_LIMIT_DELAY
    return calculate_backoff_delay(attempt, initial_delay)


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    initial_delay: float = DEFAULT_INITIAL_DELAY,
    sleep: SleepFunc = time.sleep,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
) -> T:
    """Execute an operation with automatic retry on transient failures.

    Only transport failures, rate limiting and 5xx responses are retried.
    Anything else propagates on first occurrence.

    Args:
        operation: Function to execute (e.g. UsageClient.fetch_snapshot).
        max_attempts: Total number of attempts, including the first.
        initial_delay: Delay before the first backoff retry in seconds.
        sleep: Wait function. If it returns True (as threading.Event.wait
            does once the event is set) retrying stops.
        on_retry: Optional callback called before each wait with
            (attempt_number, error, delay).

    Returns:
        Result of the operation.

    Raises:
        RetryAborted: If the sleep function reported a stop request.
        The last error if all attempts are exhausted, or the first
        non-retryable error.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_error: BaseException | None = None

    for attempt in range(max_attempts):
        try:
            return operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            last_error = e

            if attempt >= max_attempts - 1:
                break

            delay = calculate_retry_delay(e, attempt, initial_delay)
            log.debug(
                "Attempt %d/%d failed (%s), retrying in %.1fs",
                attempt + 1,
                max_attempts,
                e,
                delay,
            )
            if on_retry:
                on_retry(attempt + 1, e, delay)

            if sleep(delay):
                raise RetryAborted(e) from e

    assert last_error is not None
    log.debug("Giving up after %d attempts: %s", max_attempts, last_error)
    raise last_error


__all__ = [
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_INITIAL_DELAY",
    "DEFAULT_RATE_LIMIT_DELAY",
    "calculate_backoff_delay",
    "calculate_retry_delay",
    "with_retry",
]
