"""
Diagnostics: context tracking, per-item failure isolation, classified retry
and cooperative time-budget cancellation.

Example:
    >>> from calsync.core.diagnostics import Diagnostics, is_transient_error
    >>> def job(diagnostics):
    ...     for item in items:
    ...         diagnostics.with_error_recording(f"Item {item}", lambda: handle(item))
    >>> Diagnostics.aggregate("Nightly sync", job, time_budget_seconds=300)
"""

from calsync.core.diagnostics.budget import Clock, TimeBudget
from calsync.core.diagnostics.context import ContextStack
from calsync.core.diagnostics.exceptions import (
    AdapterError,
    AggregateError,
    BudgetExceededError,
    CalsyncError,
    ConfigurationError,
    ContextMismatchError,
    ErrorKind,
    RetriesExhaustedError,
    SinkError,
    SourceError,
    error_kind,
)
from calsync.core.diagnostics.models import ErrorRecord, render_report
from calsync.core.diagnostics.retry import RetryPolicy, is_transient_error, is_transient_status
from calsync.core.diagnostics.service import Diagnostics, describe_error

__all__ = [
    # Service
    "Diagnostics",
    "describe_error",
    # Building blocks
    "Clock",
    "ContextStack",
    "ErrorRecord",
    "RetryPolicy",
    "TimeBudget",
    "is_transient_error",
    "is_transient_status",
    "render_report",
    # Errors
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
