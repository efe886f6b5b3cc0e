"""
Data models for the sync engine.

Defines Pydantic models for desired events, fetched pages and the counters a
run reports back.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventStatus(str, Enum):
    """Desired state of an event in its destination."""

    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class DesiredEvent(BaseModel):
    """
    The state an event should have in every destination it maps to.

    Equality for caching is tested on ``canonical_json()``, which serializes
    with sorted keys and fixed separators so that identical logical events
    always produce identical text regardless of field insertion order.

    Example:
        >>> event = DesiredEvent(
        ...     stable_id="studio-123",
        ...     payload={"summary": "Yoga with Ann", "start": {"dateTime": "..."}},
        ... )
        >>> event.canonical_json() == event.model_copy().canonical_json()
        True
    """

    model_config = ConfigDict(frozen=True)

    stable_id: str = Field(..., min_length=1, description="Id the sink keys mutations by")
    status: EventStatus = Field(default=EventStatus.CONFIRMED)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Destination-facing fields (summary, description, start, end, ...)",
    )

    @property
    def is_cancelled(self) -> bool:
        return self.status is EventStatus.CANCELLED

    def canonical(self) -> dict[str, Any]:
        """Return the full canonical payload, including id and status."""
        return {**self.payload, "iCalUID": self.stable_id, "status": self.status.value}

    def canonical_json(self) -> str:
        return json.dumps(
            self.canonical(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        )


class PageResult(BaseModel):
    """One page fetched from a source."""

    items: list[Any] = Field(default_factory=list)
    keep_going: bool = False

    @classmethod
    def bounded(
        cls,
        items: Sequence[Any],
        *,
        has_next: bool,
        horizon: datetime,
        timestamp_of: Callable[[Any], datetime | None],
    ) -> PageResult:
        """
        Build a page result whose pagination is bounded by a time horizon.

        Pagination continues only while a continuation cursor exists and the
        latest item on this page is still earlier than ``horizon``. An empty
        page always stops pagination, and so does a page where no item has a
        known timestamp.

        Items whose timestamp is unknown are kept in ``items``; they only do
        not count toward the horizon.

        Args:
            items: Raw records on this page, in source order
            has_next: Whether the source returned a continuation cursor
            horizon: Stop once items reach this point in time
            timestamp_of: Extracts the timestamp of a raw record, or None

        Returns:
            PageResult with ``keep_going`` computed
        """
        items = list(items)
        timestamps = [ts for ts in map(timestamp_of, items) if ts is not None]
        if not timestamps:
            return cls(items=items, keep_going=False)
        latest = max(timestamps)
        return cls(items=items, keep_going=has_next and latest < horizon)


class ReconcileOutcome(str, Enum):
    """What reconciling one event in one destination did."""

    APPLIED = "applied"
    REMOVED = "removed"
    SKIPPED = "skipped"


class ExistingEvent(BaseModel):
    """An event as currently listed by a sink."""

    stable_id: str
    summary: str = ""
    sink_id: str | None = None


class SyncStats(BaseModel):
    """
    Progress counters for one source in one run.

    This model is mutable to allow incremental updates as pages are processed.
    """

    model_config = ConfigDict(validate_assignment=True)

    source: str
    pages: int = Field(default=0, ge=0)
    synced: int = Field(default=0, ge=0, description="Events applied to a destination")
    cancelled: int = Field(default=0, ge=0, description="Events removed from a destination")
    skipped: int = Field(default=0, ge=0, description="Events unchanged since last sync")
    failed: int = Field(default=0, ge=0, description="Items whose processing failed")
    removed: int = Field(default=0, ge=0, description="Events deleted by a clear run")

    def record(self, outcome: ReconcileOutcome) -> None:
        if outcome is ReconcileOutcome.APPLIED:
            self.synced += 1
        elif outcome is ReconcileOutcome.REMOVED:
            self.cancelled += 1
        else:
            self.skipped += 1

    @property
    def total_changes(self) -> int:
        return self.synced + self.cancelled + self.removed


class RunResult(BaseModel):
    """Counters for every source reached in a run, in processing order."""

    sources: list[SyncStats] = Field(default_factory=list)

    @property
    def total_changes(self) -> int:
        return sum(stats.total_changes for stats in self.sources)

    def for_source(self, name: str) -> SyncStats | None:
        for stats in self.sources:
            if stats.source == name:
                return stats
        return None
