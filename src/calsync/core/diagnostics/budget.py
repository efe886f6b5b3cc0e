"""
Wall-clock time budget for a single run.

The deadline is computed once, when the budget is created at the start of an
aggregation, from an injectable monotonic clock. It is never reset within a
run. Tests pass a fake clock and advance it explicitly.

Example:
    >>> budget = TimeBudget(300.0)
    >>> budget.check()            # fine for the next five minutes
    >>> budget.remaining() > 0
    True
"""

from __future__ import annotations

import time
from collections.abc import Callable

from calsync.core.diagnostics.exceptions import BudgetExceededError

Clock = Callable[[], float]


class TimeBudget:
    """
    A monotonic deadline.

    Attributes:
        seconds: Length of the budget, or None for unlimited
        started_at: Clock reading when the budget was created
        deadline: Clock reading after which the budget is exhausted
    """

    def __init__(self, seconds: float | None, clock: Clock = time.monotonic) -> None:
        if seconds is not None and seconds <= 0:
            raise ValueError(f"seconds must be positive, got {seconds}")
        self.seconds = seconds
        self._clock = clock
        self.started_at = clock()
        self.deadline = None if seconds is None else self.started_at + seconds

    def elapsed(self) -> float:
        return self._clock() - self.started_at

    def remaining(self) -> float | None:
        """Seconds left before the deadline (never negative), or None if unlimited."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    def expired(self) -> bool:
        return self.deadline is not None and self._clock() > self.deadline

    def check(self) -> None:
        """
        Raise if the deadline has passed.

        Raises:
            BudgetExceededError: If the budget is exhausted
        """
        if self.expired():
            assert self.seconds is not None
            raise BudgetExceededError(self.seconds, self.elapsed())
