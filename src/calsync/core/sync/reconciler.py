"""
Idempotent reconciliation of desired events against a sink.

For each raw record the reconciler computes the desired event, then for each
destination compares its canonical JSON with the cached value under
``CacheKey(destination, stable_id)``:

- equal: skip, no sink call and no cache write
- cancelled: ``sink.remove(destination, stable_id)``
- otherwise: ``sink.apply(event, destination)``

The cache entry is written only after the sink call returned, so a failed
mutation is retried on the next run instead of being marked done. The states
unknown / synced-confirmed / synced-cancelled are never stored explicitly:
the cached payload stands in for the current state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from calsync.core.cache import CacheKey, CacheStore
from calsync.core.diagnostics import Diagnostics, is_transient_error
from calsync.core.sync.models import DesiredEvent, ReconcileOutcome

if TYPE_CHECKING:
    from calsync.core.sinks.base import SinkAdapter
    from calsync.core.sources.base import SourceAdapter

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Decides, per event and destination, whether a sink mutation is needed.

    Example:
        >>> reconciler = Reconciler(sink, cache, cache_ttl_seconds=7200)
        >>> outcomes = reconciler.reconcile(diagnostics, source, raw)
    """

    def __init__(
        self,
        sink: SinkAdapter,
        cache: CacheStore,
        *,
        cache_ttl_seconds: int = 7200,
        sink_max_attempts: int = 10,
        use_cache: bool = True,
    ) -> None:
        """
        Initialize the reconciler.

        Args:
            sink: Destination adapter
            cache: Store of last-synced canonical payloads
            cache_ttl_seconds: Lifetime of a cache entry
            sink_max_attempts: Attempts per sink call on transient failures
            use_cache: If False, cached values are ignored (but still written)
        """
        self.sink = sink
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.sink_max_attempts = sink_max_attempts
        self.use_cache = use_cache

    def reconcile(
        self, diagnostics: Diagnostics, source: SourceAdapter, raw: Any
    ) -> list[ReconcileOutcome]:
        """
        Reconcile one raw record in every destination it maps to.

        Each destination is handled in its own error-recording scope, so a
        failure in one destination does not stop the others.

        Returns:
            Outcomes of the destinations that succeeded, in destination order

        Raises:
            ConfigurationError: If the record has no destination mapping
            Exception: Any failure mapping the record to an event
        """
        event = source.map_to_desired_event(raw)
        outcomes: list[ReconcileOutcome] = []
        for destination in source.destinations_for(raw):
            outcome = diagnostics.with_error_recording(
                f'Calendar "{destination}"',
                lambda destination=destination: self.reconcile_event(
                    diagnostics, event, destination
                ),
            )
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes

    def reconcile_event(
        self, diagnostics: Diagnostics, event: DesiredEvent, destination: str
    ) -> ReconcileOutcome:
        """
        Reconcile one event in one destination.

        Raises:
            RetriesExhaustedError: If the sink kept failing transiently
            SinkError: If the sink failed permanently
        """
        key = str(CacheKey(destination, event.stable_id))
        serialized = event.canonical_json()

        if self.use_cache and self.cache.get(key) == serialized:
            logger.debug("Skipping %s: unchanged since last sync", key)
            return ReconcileOutcome.SKIPPED

        if event.is_cancelled:
            diagnostics.with_retry(
                f"Remove from {destination}",
                self.sink_max_attempts,
                is_transient_error,
                lambda: self.sink.remove(destination, event.stable_id),
            )
            outcome = ReconcileOutcome.REMOVED
        else:
            diagnostics.with_retry(
                f"Sync to {destination}",
                self.sink_max_attempts,
                is_transient_error,
                lambda: self.sink.apply(event, destination),
            )
            outcome = ReconcileOutcome.APPLIED

        # Only reached once the sink call succeeded
        self.cache.put(key, serialized, self.cache_ttl_seconds)
        logger.debug("%s %s", outcome.value.capitalize(), key)
        return outcome
