"""
Diagnostics: scoped context tracking and error aggregation.

The purpose of this class is to let a batch job carry on despite errors and
report those errors with a comprehensible structure. A top-level
``Diagnostics.aggregate`` call creates a fresh handle, runs the job, and at
the end either returns the job's result (no errors), re-raises a lone
``BudgetExceededError`` (ran out of time, did not fail), or raises one
``AggregateError`` enumerating every recorded failure with its breadcrumb.

Example:
    >>> def sync(diagnostics: Diagnostics) -> int:
    ...     done = 0
    ...     for item in items:
    ...         if diagnostics.with_error_recording(f"Item {item}", lambda: process(item)):
    ...             done += 1
    ...     return done
    >>>
    >>> done = Diagnostics.aggregate("Sync to calendars", sync, time_budget_seconds=300)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import TypeVar

from calsync.core.diagnostics.budget import Clock, TimeBudget
from calsync.core.diagnostics.context import ContextStack
from calsync.core.diagnostics.exceptions import (
    AggregateError,
    BudgetExceededError,
    CalsyncError,
    ErrorKind,
    error_kind,
)
from calsync.core.diagnostics.models import ErrorRecord
from calsync.core.diagnostics.retry import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def describe_error(error: BaseException | str) -> str:
    """Render an error for a report: calsync errors by message, others with their type."""
    if isinstance(error, str):
        return error
    if isinstance(error, CalsyncError):
        return str(error)
    text = str(error)
    return f"{type(error).__name__}: {text}" if text else type(error).__name__


class Diagnostics:
    """
    Per-run handle for context tracking, error recording and the time budget.

    Instances are created by ``aggregate`` and are only valid inside it.
    """

    def __init__(
        self,
        budget: TimeBudget,
        retry_policy: RetryPolicy | None = None,
        log_errors: bool = False,
    ) -> None:
        self._stack = ContextStack()
        self._records: list[ErrorRecord] = []
        self._budget = budget
        self._budget_error: BudgetExceededError | None = None
        self._retry_policy = retry_policy or RetryPolicy()
        self.log_errors = log_errors

    @classmethod
    def aggregate(
        cls,
        label: str,
        body: Callable[[Diagnostics], T],
        *,
        time_budget_seconds: float | None = None,
        clock: Clock = time.monotonic,
        retry_policy: RetryPolicy | None = None,
        log_errors: bool = False,
    ) -> T:
        """
        Run ``body`` inside a fresh diagnostics scope and report all failures.

        Args:
            label: Outermost context label
            body: Job to run; receives the Diagnostics handle
            time_budget_seconds: Wall-clock budget for the whole run (None = unlimited)
            clock: Monotonic clock, injectable for tests
            retry_policy: Policy used by ``with_retry``
            log_errors: Log each failure at ERROR as soon as it is recorded

        Returns:
            The result of ``body`` when no errors were recorded

        Raises:
            BudgetExceededError: If running out of time was the only failure
            AggregateError: If any other failure was recorded
        """
        diagnostics = cls(
            TimeBudget(time_budget_seconds, clock),
            retry_policy=retry_policy,
            log_errors=log_errors,
        )
        diagnostics._stack.push(label)
        result: T | None = None
        try:
            result = body(diagnostics)
        except Exception as e:
            diagnostics._append(e)
        finally:
            diagnostics._stack.pop(label)

        return diagnostics._finish(label, result)

    def _finish(self, label: str, result: T | None) -> T:
        records = self._records
        if not records:
            return result  # type: ignore[return-value]
        if (
            len(records) == 1
            and records[0].kind is ErrorKind.BUDGET_EXCEEDED
            and self._budget_error is not None
        ):
            logger.warning("%s stopped early: %s", label, self._budget_error)
            raise self._budget_error
        raise AggregateError(label, records)

    # ------------------------------------------------------------------
    # Context tracking
    # ------------------------------------------------------------------

    def with_context(self, label: str | None, body: Callable[[], T]) -> T:
        """
        Run ``body`` within a named context. Does not catch errors.

        A falsy label runs ``body`` without pushing anything.

        Raises:
            ContextMismatchError: If the stack was not restored by ``body``
            BudgetExceededError: If the time budget ran out
        """
        with self.context(label):
            return body()

    @contextmanager
    def context(self, label: str | None) -> Iterator[None]:
        """Context-manager form of ``with_context``."""
        if not label:
            yield
            return
        self.check_time_budget()
        self._stack.push(label)
        try:
            yield
        except BaseException:
            # Unwinding: restore the stack but do not mask the in-flight error
            self._stack.pop(label)
            raise
        self._stack.pop(label)
        self.check_time_budget()

    # ------------------------------------------------------------------
    # Error recording
    # ------------------------------------------------------------------

    def record_error(self, error: BaseException | str) -> None:
        """
        Record a failure against the current context and keep going.

        Raises:
            BudgetExceededError: If the time budget ran out (after recording)
        """
        self._append(error)
        self.check_time_budget()

    def with_error_recording(self, label: str | None, body: Callable[[], T]) -> T | None:
        """
        Run ``body`` within a named context, recording any error it raises.

        This is the unit of per-item isolation. ``BudgetExceededError`` is
        never recorded here; it propagates so the whole run stops.

        Returns:
            The result of ``body``, or None if it failed
        """

        def guarded() -> T | None:
            try:
                return body()
            except BudgetExceededError:
                raise
            except Exception as e:
                self.record_error(e)
                return None

        return self.with_context(label, guarded)

    def with_retry(
        self,
        label: str,
        max_attempts: int,
        should_retry: Callable[[BaseException], bool],
        body: Callable[[], T],
    ) -> T:
        """
        Run ``body`` with classified retry inside a named context.

        See ``RetryPolicy.run`` for the retry semantics.
        """
        return self.with_context(
            label,
            lambda: self._retry_policy.run(self, label, max_attempts, should_retry, body),
        )

    def _append(self, error: BaseException | str) -> None:
        kind = ErrorKind.ITEM_PROCESSING if isinstance(error, str) else error_kind(error)
        if isinstance(error, BudgetExceededError) and self._budget_error is None:
            self._budget_error = error
        record = ErrorRecord(
            context=self._stack.snapshot(),
            message=describe_error(error),
            kind=kind,
        )
        self._records.append(record)

        breadcrumb = " > ".join(record.context)
        if self.log_errors:
            logger.error("[%s] %s", breadcrumb, record.message)
        else:
            logger.debug("Recorded error at [%s]: %s", breadcrumb, record.message)

    # ------------------------------------------------------------------
    # Time budget
    # ------------------------------------------------------------------

    def check_time_budget(self) -> None:
        """
        Raises:
            BudgetExceededError: If the run's deadline has passed
        """
        self._budget.check()

    @property
    def time_budget(self) -> TimeBudget:
        return self._budget

    @property
    def error_count(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Sequence[ErrorRecord]:
        return tuple(self._records)

    @property
    def context_labels(self) -> tuple[str, ...]:
        return self._stack.snapshot()
