"""
Classified, bounded retry with a fixed backoff.

Retries are layered on the Diagnostics time budget: the budget is checked
before every attempt, so a run that is out of time stops retrying promptly.
Backoff is a fixed delay rather than exponential; the outer time budget is
the real backstop for a batch job.

Example:
    >>> from calsync.core.diagnostics import Diagnostics, is_transient_error
    >>> def body(diagnostics):
    ...     return diagnostics.with_retry(
    ...         "Fetch #1 for studio", 10, is_transient_error, lambda: fetch_page(1)
    ...     )
    >>> Diagnostics.aggregate("Sync", body)

Classification:
    - calsync errors: their ErrorKind (TRANSIENT is retried)
    - httpx.HTTPStatusError: 429 and 5xx are retried
    - httpx.TransportError: timeouts and connection failures are retried
    - everything else, including BudgetExceededError: not retried
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING, TypeVar

import httpx

from calsync.core.diagnostics.exceptions import (
    BudgetExceededError,
    CalsyncError,
    ErrorKind,
    RetriesExhaustedError,
)

if TYPE_CHECKING:
    from calsync.core.diagnostics.service import Diagnostics

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_transient_status(status_code: int | None) -> bool:
    """Return True for rate-limit and temporary-unavailability HTTP statuses."""
    if status_code is None:
        return False
    return status_code in RETRYABLE_STATUS_CODES or 500 <= status_code < 600


def is_transient_error(error: BaseException) -> bool:
    """
    Determine if an exception represents a transient, retryable failure.

    Args:
        error: Exception to classify

    Returns:
        True if retrying the same operation may succeed
    """
    if isinstance(error, CalsyncError):
        return error.kind is ErrorKind.TRANSIENT

    # HTTPStatusError is not a TransportError, so check it first
    if isinstance(error, httpx.HTTPStatusError):
        return is_transient_status(error.response.status_code)

    if isinstance(error, httpx.TransportError):
        return True

    return False


class RetryPolicy:
    """
    Fixed-backoff retry policy.

    Attributes:
        backoff_seconds: Delay between attempts
    """

    def __init__(
        self,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Initialize a retry policy.

        Args:
            backoff_seconds: Fixed delay between attempts (must be >= 0)
            sleep: Sleep function, injectable for tests

        Raises:
            ValueError: If backoff_seconds is negative
        """
        if backoff_seconds < 0:
            raise ValueError("backoff_seconds must be non-negative")
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def run(
        self,
        diagnostics: Diagnostics,
        label: str,
        max_attempts: int,
        should_retry: Callable[[BaseException], bool],
        body: Callable[[], T],
    ) -> T:
        """
        Run ``body`` until it succeeds, a non-retryable error occurs, or
        attempts run out.

        Args:
            diagnostics: Handle whose time budget is checked before each attempt
            label: Label naming the operation in errors and logs
            max_attempts: Total attempts allowed (must be >= 1)
            should_retry: Classifier deciding whether a failure is retryable
            body: Operation to attempt

        Returns:
            The result of the first successful attempt

        Raises:
            RetriesExhaustedError: If every attempt failed with a retryable error
            BudgetExceededError: If the time budget ran out between attempts
            Exception: The original error when ``should_retry`` rejects it
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        attempt = 0
        while True:
            diagnostics.check_time_budget()
            attempt += 1
            try:
                return body()
            except BudgetExceededError:
                raise
            except Exception as e:
                if not should_retry(e):
                    raise
                if attempt >= max_attempts:
                    logger.warning("%s: giving up after %d attempts: %s", label, attempt, e)
                    raise RetriesExhaustedError(label, attempt) from e
                logger.info(
                    "Retry #%d for %s after %.2fs due to: %s",
                    attempt,
                    label,
                    self.backoff_seconds,
                    e,
                )
                self._sleep(self.backoff_seconds)
