"""
Data models for diagnostics: recorded errors and report rendering.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from calsync.core.diagnostics.exceptions import ErrorKind

INDENT = " " * 4


@dataclass(frozen=True)
class ErrorRecord:
    """
    A single isolated failure.

    Attributes:
        context: Context labels at the time of failure, outermost first
        message: Rendered error message
        kind: Classification of the failure
    """

    context: tuple[str, ...]
    message: str
    kind: ErrorKind = ErrorKind.ITEM_PROCESSING


def _common_prefix_length(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    length = 0
    for left, right in zip(a, b):
        if left != right:
            break
        length += 1
    return length


def render_report(records: Iterable[ErrorRecord]) -> str:
    """
    Render recorded failures as an indented tree.

    Context labels shared with the previous record are not repeated, so a run
    of failures under the same source or item only shows that ancestor once.
    Each label is indented by its depth and each message sits one level below
    its innermost label.

    Args:
        records: Failures in occurrence order

    Returns:
        Report text, one blank line between records

    Example:
        >>> print(render_report([
        ...     ErrorRecord(("A", "B"), "first"),
        ...     ErrorRecord(("A", "C"), "second"),
        ...     ErrorRecord(("D",), "third"),
        ... ]))
        A
            B
                first
        <BLANKLINE>
            C
                second
        <BLANKLINE>
        D
            third
    """
    blocks: list[str] = []
    previous: tuple[str, ...] = ()
    for record in records:
        context = record.context
        depth = _common_prefix_length(previous, context)
        lines = [INDENT * i + context[i] for i in range(depth, len(context))]
        message_indent = INDENT * len(context)
        lines.extend(message_indent + line for line in record.message.splitlines() or [""])
        blocks.append("\n".join(lines))
        previous = context
    return "\n\n".join(blocks)
