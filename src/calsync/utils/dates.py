"""
Date helpers shared by sources and the clear command.

All datetimes handled here are timezone-aware UTC.
"""

from datetime import datetime, timedelta, timezone


def days_ago(days: float, now: datetime | None = None) -> datetime:
    """
    Return the moment ``days`` days before ``now``.

    Negative values look into the future: ``days_ago(-30)`` is 30 days ahead.

    Args:
        days: Number of days to go back
        now: Reference time (defaults to the current UTC time)
    """
    if now is None:
        now = datetime.now(timezone.utc)
    return now - timedelta(days=days)


def parse_datetime(value: str) -> datetime:
    """
    Parse an ISO 8601 timestamp, treating naive values as UTC.

    Raises:
        ValueError: If the value is not a parseable timestamp
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f'Failed to parse date "{value}"')
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f'Failed to parse date "{value}"') from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_utc_date_string(moment: datetime) -> str:
    """Format the UTC calendar date of ``moment`` as YYYY-MM-DD."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d")


def to_iso_utc(moment: datetime) -> str:
    """Format ``moment`` as an ISO 8601 UTC timestamp with millisecond precision."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
