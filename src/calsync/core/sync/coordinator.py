"""
Run coordination across sources.

One run is one top-level aggregation. Sources are visited in a fresh uniformly
random order every run, so that when the time budget runs out partway through,
it is not always the same source that is left unprocessed across successive
scheduled runs. Each source is isolated: one source's unrecoverable failure
does not stop the others from being attempted.

Example:
    >>> coordinator = RunCoordinator(sources, sink, cache, config.sync)
    >>> result = coordinator.run()
    >>> for stats in result.sources:
    ...     print(stats.source, stats.synced, stats.skipped)
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from calsync.core.cache import CacheStore
from calsync.core.config.models import SyncSettings
from calsync.core.diagnostics import (
    Clock,
    ConfigurationError,
    Diagnostics,
    RetryPolicy,
    is_transient_error,
)
from calsync.core.sync.loop import SyncLoop
from calsync.core.sync.models import ExistingEvent, RunResult, SyncStats
from calsync.core.sync.reconciler import Reconciler
from calsync.utils.dates import days_ago

if TYPE_CHECKING:
    from calsync.core.sinks.base import SinkAdapter
    from calsync.core.sources.base import SourceAdapter

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunCoordinator:
    """
    Runs every configured source inside one aggregation.

    Attributes:
        sources: Configured sources
        sink: Destination adapter shared by all sources
        cache: Cache of last-synced payloads
        settings: Budget, retry and cache settings
    """

    SYNC_LABEL = "Sync to calendars"
    CLEAR_LABEL = "Clear calendars"

    def __init__(
        self,
        sources: Sequence[SourceAdapter],
        sink: SinkAdapter,
        cache: CacheStore,
        settings: SyncSettings | None = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            sources: Sources to sync
            sink: Destination adapter
            cache: Cache store
            settings: Sync settings (defaults if omitted)
            clock: Monotonic clock for the time budget
            sleep: Sleep function used for retry backoff
            rng: Random source for the per-run source order
            now: Wall-clock source for the clear window
        """
        self.sources = list(sources)
        self.sink = sink
        self.cache = cache
        self.settings = settings or SyncSettings()
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._now = now

    def shuffled_sources(self) -> list[SourceAdapter]:
        """Return the sources in a uniformly random order."""
        order = list(self.sources)
        self._rng.shuffle(order)
        return order

    def _aggregate(self, label: str, body: Callable[[Diagnostics], RunResult]) -> RunResult:
        return Diagnostics.aggregate(
            label,
            body,
            time_budget_seconds=self.settings.time_budget_seconds,
            clock=self._clock,
            retry_policy=RetryPolicy(self.settings.backoff_seconds, sleep=self._sleep),
            log_errors=self.settings.log_errors,
        )

    def run(self, *, use_cache: bool = True) -> RunResult:
        """
        Sync every source to its destinations.

        The cache is flushed when the run ends, whether or not it failed.

        Args:
            use_cache: If False, re-apply every event even when unchanged

        Returns:
            Counters for every source, in processing order

        Raises:
            BudgetExceededError: If running out of time was the only failure
            AggregateError: If any item, page or source failed
        """
        reconciler = Reconciler(
            self.sink,
            self.cache,
            cache_ttl_seconds=self.settings.cache_ttl_seconds,
            sink_max_attempts=self.settings.sink_max_attempts,
            use_cache=use_cache,
        )
        loop = SyncLoop(reconciler, fetch_max_attempts=self.settings.fetch_max_attempts)

        def body(diagnostics: Diagnostics) -> RunResult:
            result = RunResult()
            for source in self.shuffled_sources():
                stats = diagnostics.with_error_recording(
                    f'Syncing source "{source.name}"',
                    lambda source=source: loop.run(diagnostics, source),
                )
                if stats is not None:
                    result.sources.append(stats)
            return result

        try:
            return self._aggregate(self.SYNC_LABEL, body)
        finally:
            # Entries written before a failure or timeout are still valid
            self.cache.flush()

    def clear(self) -> RunResult:
        """
        Remove every event each source produced from its destinations.

        Only events whose stable id starts with the source's id prefix and
        that start within the source's lookback window are removed.

        Returns:
            Counters with ``removed`` set per source

        Raises:
            BudgetExceededError: If running out of time was the only failure
            AggregateError: If any removal or listing failed
        """

        def body(diagnostics: Diagnostics) -> RunResult:
            result = RunResult()
            for source in self.shuffled_sources():
                stats = SyncStats(source=source.name)
                done = diagnostics.with_error_recording(
                    f'Clearing source "{source.name}"',
                    lambda source=source, stats=stats: self._clear_source(
                        diagnostics, source, stats
                    ),
                )
                if done is not None:
                    result.sources.append(stats)
            return result

        return self._aggregate(self.CLEAR_LABEL, body)

    def _clear_source(
        self, diagnostics: Diagnostics, source: SourceAdapter, stats: SyncStats
    ) -> bool:
        if not source.id_prefix:
            raise ConfigurationError(
                f'Refusing to clear source "{source.name}" without an id prefix'
            )
        for destination in source.all_destinations():
            diagnostics.with_error_recording(
                f'Clearing calendar "{destination}"',
                lambda destination=destination: self._clear_destination(
                    diagnostics, source, destination, stats
                ),
            )
        return True

    def _clear_destination(
        self,
        diagnostics: Diagnostics,
        source: SourceAdapter,
        destination: str,
        stats: SyncStats,
    ) -> None:
        since = days_ago(source.past_days_to_fetch, now=self._now())
        deleted_ids: set[str] = set()
        keep_going = True
        while keep_going:
            # Re-list until a pass deletes nothing new
            keep_going = False
            existing = diagnostics.with_retry(
                f"List {destination}",
                self.settings.fetch_max_attempts,
                is_transient_error,
                lambda: self.sink.list_existing(destination, since),
            )
            for event in existing:
                if not event.stable_id.startswith(source.id_prefix):
                    continue
                key = event.sink_id or event.stable_id
                if key in deleted_ids:
                    continue
                deleted = diagnostics.with_error_recording(
                    f"Deleting {event.summary or event.stable_id}",
                    lambda event=event: self._delete(diagnostics, destination, event),
                )
                if deleted:
                    deleted_ids.add(key)
                    stats.removed += 1
                    keep_going = True
        logger.info("Removed %d events from %s", stats.removed, destination)

    def _delete(
        self, diagnostics: Diagnostics, destination: str, event: ExistingEvent
    ) -> bool:
        return diagnostics.with_retry(
            f"Delete from {destination}",
            self.settings.sink_max_attempts,
            is_transient_error,
            lambda: self.sink.delete_existing(destination, event),
        )
