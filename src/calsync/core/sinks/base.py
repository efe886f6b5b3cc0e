"""
Sink adapter protocol.

A sink is a calendar-like destination. Mutations must be idempotent on the
event's stable id: applying the same event twice leaves one event, removing
an absent event is a no-op. The sync engine relies on this to tolerate a
crash between a successful mutation and the cache write that follows it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from calsync.core.sync.models import DesiredEvent, ExistingEvent


@runtime_checkable
class SinkAdapter(Protocol):
    """Protocol for destination adapters."""

    @property
    def name(self) -> str:
        ...

    def apply(self, event: DesiredEvent, destination: str) -> None:
        """
        Create or update ``event`` in ``destination``.

        Raises:
            SinkError: If the mutation failed
        """
        ...

    def remove(self, destination: str, stable_id: str) -> None:
        """
        Remove the event with ``stable_id`` from ``destination``.

        Raises:
            SinkError: If the removal failed
        """
        ...

    def list_existing(self, destination: str, since: datetime) -> list[ExistingEvent]:
        """List events in ``destination`` starting at or after ``since``."""
        ...

    def delete_existing(self, destination: str, event: ExistingEvent) -> bool:
        """
        Delete one listed event from ``destination``.

        Returns:
            True if an event was deleted, False if it was already gone

        Raises:
            SinkError: If the deletion failed
        """
        ...
