"""Utility modules for calsync."""

from .dates import days_ago, parse_datetime, to_iso_utc, to_utc_date_string
from .text import to_natural_list

__all__ = [
    "days_ago",
    "parse_datetime",
    "to_iso_utc",
    "to_natural_list",
    "to_utc_date_string",
]
