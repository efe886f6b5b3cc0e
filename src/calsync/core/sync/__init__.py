"""
Paginated fetch-reconcile sync engine.

Example:
    >>> from calsync.core.sync import RunCoordinator
    >>> coordinator = RunCoordinator(sources, sink, cache, config.sync)
    >>> result = coordinator.run()
    >>> result.total_changes
    12
"""

from calsync.core.sync.models import (
    DesiredEvent,
    EventStatus,
    ExistingEvent,
    PageResult,
    ReconcileOutcome,
    RunResult,
    SyncStats,
)
from calsync.core.sync.reconciler import Reconciler
from calsync.core.sync.loop import SyncLoop
from calsync.core.sync.coordinator import RunCoordinator

__all__ = [
    "DesiredEvent",
    "EventStatus",
    "ExistingEvent",
    "PageResult",
    "ReconcileOutcome",
    "Reconciler",
    "RunCoordinator",
    "RunResult",
    "SyncLoop",
    "SyncStats",
]
