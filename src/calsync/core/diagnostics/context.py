"""
Context stack for error attribution.

A ContextStack is the breadcrumb of human-readable labels describing where
execution currently is, e.g. ``["Sync to calendars", 'Syncing source "Studio"',
'Processing "Yoga" event with ID 42']``. Pushes and pops must be strictly
nested.
"""

from calsync.core.diagnostics.exceptions import ContextMismatchError


class ContextStack:
    """Ordered, strictly nested stack of context labels."""

    def __init__(self) -> None:
        self._labels: list[str] = []

    def push(self, label: str) -> None:
        self._labels.append(label)

    def pop(self, expected: str) -> str:
        """
        Pop the innermost label, verifying it is the one that was pushed.

        Args:
            expected: Label the caller pushed

        Returns:
            The popped label

        Raises:
            ContextMismatchError: If the stack is empty or the popped label
                differs from ``expected``
        """
        actual = self._labels.pop() if self._labels else None
        if actual != expected:
            raise ContextMismatchError(expected, actual)
        return actual

    def snapshot(self) -> tuple[str, ...]:
        """Return an immutable copy of the current labels, outermost first."""
        return tuple(self._labels)

    @property
    def depth(self) -> int:
        return len(self._labels)

    def __len__(self) -> int:
        return len(self._labels)

    def __repr__(self) -> str:
        return f"ContextStack({self._labels!r})"
