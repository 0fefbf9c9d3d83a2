"""Retry policy with pluggable error predicate and backoff."""

import logging
import time
from typing import Any, Callable, Optional, TypeVar

from .exceptions import MoveItAPIError, MoveItNetworkError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Malformed requests; sending them again gives the same answer
NON_RETRYABLE_STATUS_CODES = frozenset({400, 422})


def exponential_backoff(base: float) -> Callable[[int], float]:
    """Return a backoff function computing ``base ** attempt`` seconds.

    Args:
        base: Base of the exponent; attempt numbers start at 1

    Returns:
        Function mapping the retry attempt to a delay in seconds
    """

    def delay(attempt: int) -> float:
        return float(base**attempt)

    return delay


def is_transient_error(exception: BaseException) -> bool:
    """Determine if an error is worth retrying.

    Local I/O errors, network errors and API errors are transient, except
    rejected malformed requests (400, 422) and malformed responses.
    """
    if isinstance(exception, (OSError, MoveItNetworkError)):
        return True
    if isinstance(exception, MoveItAPIError):
        return exception.status_code not in NON_RETRYABLE_STATUS_CODES
    return False


class RetryPolicy:
    """Run a callable, retrying on selected errors with a backoff delay."""

    def __init__(
        self,
        should_retry: Callable[[BaseException], bool],
        retry_count: int,
        backoff: Callable[[int], float],
        on_retry: Optional[Callable[[BaseException, float, int], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the policy.

        Args:
            should_retry: Predicate deciding whether an error is retryable
            retry_count: Retries after the first attempt (0 disables retrying)
            backoff: Maps the retry attempt (1-based) to a delay in seconds
            on_retry: Called with (error, delay, attempt) before sleeping
            sleep: Sleep function
        """
        self.should_retry = should_retry
        self.retry_count = retry_count
        self.backoff = backoff
        self.on_retry = on_retry
        self.sleep = sleep

    def call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Call ``func`` until it succeeds or the retries are used up.

        The last error is re-raised unchanged when the retries run out or the
        error is not retryable.
        """
        attempt = 0
        while True:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                attempt += 1
                if attempt > self.retry_count or not self.should_retry(e):
                    raise
                delay = self.backoff(attempt)
                if self.on_retry is not None:
                    self.on_retry(e, delay, attempt)
                else:
                    logger.debug("Retry attempt %d in %.2fs after: %s", attempt, delay, e)
                self.sleep(delay)
