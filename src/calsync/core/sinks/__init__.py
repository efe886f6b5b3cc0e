"""
Destination adapters.

This module provides:
- SinkAdapter: Protocol every destination implements
- GoogleCalendarSink: Google Calendar v3 implementation
"""

from calsync.core.sinks.base import SinkAdapter
from calsync.core.sinks.google_calendar import GoogleCalendarSink

__all__ = ["GoogleCalendarSink", "SinkAdapter"]
