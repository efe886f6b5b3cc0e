"""Tests for TimeBudget."""

import pytest

from calsync.core.diagnostics import BudgetExceededError, TimeBudget


class TestTimeBudget:
    """Tests for the monotonic run deadline."""

    def test_deadline_fixed_at_creation(self, clock) -> None:
        budget = TimeBudget(30, clock)
        assert budget.started_at == 1000
        assert budget.deadline == 1030

    def test_not_expired_at_deadline(self, clock) -> None:
        """Test the budget only expires once the clock passes the deadline."""
        budget = TimeBudget(10, clock)
        clock.advance(10)
        assert budget.expired() is False
        budget.check()

    def test_expired_after_deadline(self, clock) -> None:
        budget = TimeBudget(10, clock)
        clock.advance(10.5)
        assert budget.expired() is True
        with pytest.raises(BudgetExceededError) as exc_info:
            budget.check()
        assert str(exc_info.value) == "Time budget of 10s exceeded after 10.5s"

    def test_elapsed_and_remaining(self, clock) -> None:
        budget = TimeBudget(10, clock)
        clock.advance(4)
        assert budget.elapsed() == 4
        assert budget.remaining() == 6
        clock.advance(20)
        assert budget.remaining() == 0.0

    def test_unlimited(self, clock) -> None:
        budget = TimeBudget(None, clock)
        clock.advance(10**9)
        assert budget.deadline is None
        assert budget.remaining() is None
        assert budget.expired() is False
        budget.check()

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_non_positive_rejected(self, clock, seconds) -> None:
        with pytest.raises(ValueError):
            TimeBudget(seconds, clock)
