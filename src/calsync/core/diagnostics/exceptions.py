"""
Exception taxonomy for calsync.

Every failure the sync engine cares about carries an explicit ErrorKind so
that retry and aggregation logic can classify it by type, never by matching
on message text.

Exception Hierarchy:
    CalsyncError (base, ITEM_PROCESSING)
    ├── ConfigurationError (FATAL)
    ├── BudgetExceededError (BUDGET_EXCEEDED)
    ├── RetriesExhaustedError (ITEM_PROCESSING)
    ├── ContextMismatchError (FATAL)
    ├── AggregateError (FATAL)
    └── AdapterError (TRANSIENT or ITEM_PROCESSING)
        ├── SourceError
        └── SinkError

Example:
    >>> from calsync.core.diagnostics.exceptions import SinkError
    >>> try:
    ...     raise SinkError("google_calendar", "HTTP 429", status_code=429, transient=True)
    ... except SinkError as e:
    ...     print(e.kind, e.status_code)
    ErrorKind.TRANSIENT 429
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from calsync.core.diagnostics.models import ErrorRecord


class ErrorKind(str, Enum):
    """Classification used by retry and aggregation logic."""

    TRANSIENT = "transient"
    FATAL = "fatal"
    BUDGET_EXCEEDED = "budget_exceeded"
    ITEM_PROCESSING = "item_processing"


class CalsyncError(Exception):
    """
    Base exception for all calsync errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
        kind: Classification of this error
    """

    kind: ErrorKind = ErrorKind.ITEM_PROCESSING

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class ConfigurationError(CalsyncError):
    """
    Raised when configuration is invalid or incomplete.

    Configuration errors are never retried. They are raised by the config
    loader before any network activity, and by adapters when a record has
    no destination mapping.
    """

    kind = ErrorKind.FATAL


class BudgetExceededError(CalsyncError):
    """
    Raised once the wall-clock budget of a run has been used up.

    This is the one error kind that per-item isolation never swallows: it
    unwinds to the aggregation boundary so the whole run stops promptly.

    Attributes:
        budget_seconds: The configured budget
        elapsed_seconds: Time elapsed when the budget check failed
    """

    kind = ErrorKind.BUDGET_EXCEEDED

    def __init__(self, budget_seconds: float, elapsed_seconds: float) -> None:
        super().__init__(
            f"Time budget of {budget_seconds:g}s exceeded after {elapsed_seconds:.1f}s",
            budget_seconds=budget_seconds,
            elapsed_seconds=elapsed_seconds,
        )
        self.budget_seconds = budget_seconds
        self.elapsed_seconds = elapsed_seconds


class RetriesExhaustedError(CalsyncError):
    """
    Raised when a retried operation keeps failing with transient errors.

    Attributes:
        label: Context label of the retried operation
        attempts: Number of attempts performed
    """

    def __init__(self, label: str, attempts: int) -> None:
        super().__init__(
            f"Gave up on {label} after {attempts} attempts",
            label=label,
            attempts=attempts,
        )
        self.label = label
        self.attempts = attempts


class ContextMismatchError(CalsyncError):
    """Raised when a context pop does not match the most recent push."""

    kind = ErrorKind.FATAL

    def __init__(self, expected: str, actual: str | None) -> None:
        super().__init__(
            f"Internal error in Diagnostics: popped context {actual!r} "
            f"did not match pushed {expected!r}",
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual


class AggregateError(CalsyncError):
    """
    The single report raised at the end of a failed aggregation.

    Attributes:
        label: Label of the aggregation scope
        records: Every recorded failure, in occurrence order
        report: Rendered multi-part report text
    """

    kind = ErrorKind.FATAL

    def __init__(self, label: str, records: Sequence[ErrorRecord]) -> None:
        from calsync.core.diagnostics.models import render_report

        self.label = label
        self.records = tuple(records)
        self.report = render_report(self.records)
        count = len(self.records)
        noun = "error" if count == 1 else "errors"
        super().__init__(f"{count} {noun} during {label}:\n\n{self.report}")


class AdapterError(CalsyncError):
    """
    Base exception for failures reported by a source or sink adapter.

    Adapters surface a structured status code and a transient flag so the
    retry policy never has to inspect message text.

    Attributes:
        adapter: Name of the adapter that failed
        status_code: HTTP status code, if the failure came from a response
        transient: Whether retrying the same call may succeed
    """

    def __init__(
        self,
        adapter: str,
        message: str,
        *,
        status_code: int | None = None,
        transient: bool = False,
        **context: object,
    ) -> None:
        super().__init__(message, adapter=adapter, status_code=status_code, **context)
        self.adapter = adapter
        self.status_code = status_code
        self.transient = transient
        self.kind = ErrorKind.TRANSIENT if transient else ErrorKind.ITEM_PROCESSING


class SourceError(AdapterError):
    """Raised when fetching from a source fails."""


class SinkError(AdapterError):
    """Raised when a sink mutation or listing fails."""


def error_kind(error: BaseException) -> ErrorKind:
    """Return the ErrorKind of an exception; foreign exceptions are item failures."""
    if isinstance(error, CalsyncError):
        return error.kind
    return ErrorKind.ITEM_PROCESSING


__all__ = [
    "AdapterError",
    "AggregateError",
    "BudgetExceededError",
    "CalsyncError",
    "ConfigurationError",
    "ContextMismatchError",
    "ErrorKind",
    "RetriesExhaustedError",
    "SinkError",
    "SourceError",
    "error_kind",
]
