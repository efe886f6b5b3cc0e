"""Text formatting helpers for event summaries and descriptions."""

from collections.abc import Sequence


def to_natural_list(things: Sequence[str]) -> str:
    """
    Join items the way a sentence would.

    Example:
        >>> to_natural_list(["Ann"])
        'Ann'
        >>> to_natural_list(["Ann", "Bo"])
        'Ann and Bo'
        >>> to_natural_list(["Ann", "Bo", "Cy"])
        'Ann, Bo, and Cy'
    """
    if not things:
        return ""
    if len(things) == 1:
        return things[0]
    if len(things) == 2:
        return f"{things[0]} and {things[1]}"
    return ", ".join(things[:-1]) + f", and {things[-1]}"
