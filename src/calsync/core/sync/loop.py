"""
Paginated fetch-reconcile loop for a single source.

Pages are fetched and fully processed strictly in sequence: page N+1 is never
fetched before every item of page N has been handled. Each fetch goes through
classified retry; each item is processed in its own error-recording scope so
one bad record never halts the page or the loop. The loop ends when a page
says not to keep going, or when the run's time budget is exhausted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from calsync.core.diagnostics import Diagnostics, is_transient_error
from calsync.core.sync.models import PageResult, SyncStats
from calsync.core.sync.reconciler import Reconciler

if TYPE_CHECKING:
    from calsync.core.sources.base import SourceAdapter

logger = logging.getLogger(__name__)


class SyncLoop:
    """Drives one source's pagination to completion."""

    def __init__(self, reconciler: Reconciler, *, fetch_max_attempts: int = 10) -> None:
        self.reconciler = reconciler
        self.fetch_max_attempts = fetch_max_attempts

    def run(self, diagnostics: Diagnostics, source: SourceAdapter) -> SyncStats:
        """
        Sync every page of ``source``.

        Args:
            diagnostics: Handle of the current run
            source: Source to paginate

        Returns:
            Counters for this source

        Raises:
            BudgetExceededError: If the run ran out of time
            RetriesExhaustedError: If a page fetch kept failing transiently
            SourceError: If a page fetch failed permanently
        """
        stats = SyncStats(source=source.name)
        page_number = 0
        while True:
            page_number += 1
            page = self._fetch(diagnostics, source, page_number)
            stats.pages += 1
            logger.info('Fetched %d events from "%s"', len(page.items), source.name)

            for raw in page.items:
                self._sync_item(diagnostics, source, raw, stats)

            logger.info("Cumulative errors: %d", diagnostics.error_count)
            logger.info("Cumulative syncs: %d", stats.synced)
            logger.info("Cumulative cancellations: %d", stats.cancelled)
            logger.info("Cumulative skipped (cached): %d", stats.skipped)

            if not page.keep_going:
                break
        return stats

    def _fetch(
        self, diagnostics: Diagnostics, source: SourceAdapter, page_number: int
    ) -> PageResult:
        return diagnostics.with_retry(
            f"Fetch #{page_number} for {source.name}",
            self.fetch_max_attempts,
            is_transient_error,
            lambda: source.fetch_page(diagnostics, page_number),
        )

    def _sync_item(
        self, diagnostics: Diagnostics, source: SourceAdapter, raw: Any, stats: SyncStats
    ) -> None:
        outcomes = diagnostics.with_error_recording(
            self._describe(source, raw),
            lambda: self.reconciler.reconcile(diagnostics, source, raw),
        )
        if outcomes is None:
            stats.failed += 1
            return
        for outcome in outcomes:
            stats.record(outcome)

    @staticmethod
    def _describe(source: SourceAdapter, raw: Any) -> str:
        # The label is computed before the item's recording scope exists
        try:
            return source.describe(raw)
        except Exception as e:
            logger.warning("Could not describe item from %s: %s", source.name, e)
            return f"Processing item from {source.name}"
