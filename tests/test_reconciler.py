"""Tests for Reconciler: cache-backed idempotence and per-destination isolation."""

import pytest

from calsync.core.cache import CacheKey
from calsync.core.diagnostics import AggregateError, ConfigurationError, SinkError
from calsync.core.sync import Reconciler, ReconcileOutcome


@pytest.fixture
def reconciler(sink, cache) -> Reconciler:
    return Reconciler(sink, cache, cache_ttl_seconds=7200, sink_max_attempts=3)


@pytest.fixture
def reconcile(aggregate):
    """Reconcile one raw record inside its own aggregation."""

    def _reconcile(reconciler, source, raw):
        return aggregate(lambda d: reconciler.reconcile(d, source, raw))

    return _reconcile


class TestIdempotence:
    """Tests for skipping unchanged events."""

    def test_first_sync_applies_and_caches(
        self, reconciler, reconcile, make_source, sink, cache
    ) -> None:
        source = make_source()
        raw = {"id": 1, "summary": "Yoga"}

        assert reconcile(reconciler, source, raw) == [ReconcileOutcome.APPLIED]

        assert sink.calls == [("apply", "primary", "studio-1")]
        event = source.map_to_desired_event(raw)
        assert cache.get(str(CacheKey("primary", "studio-1"))) == event.canonical_json()

    def test_unchanged_event_is_skipped(
        self, reconciler, reconcile, make_source, sink, cache
    ) -> None:
        """Test a second sync of the same payload makes no sink call."""
        source = make_source()
        raw = {"id": 1, "summary": "Yoga"}
        reconcile(reconciler, source, raw)

        assert reconcile(reconciler, source, raw) == [ReconcileOutcome.SKIPPED]

        assert len(sink.calls) == 1
        assert cache.writes == 1

    def test_changed_event_is_reapplied(self, reconciler, reconcile, make_source, sink) -> None:
        source = make_source()
        reconcile(reconciler, source, {"id": 1, "summary": "Yoga"})

        outcome = reconcile(reconciler, source, {"id": 1, "summary": "Yoga (moved)"})

        assert outcome == [ReconcileOutcome.APPLIED]
        assert sink.applied() == ["studio-1", "studio-1"]

    def test_expired_entry_is_reapplied(
        self, reconciler, reconcile, make_source, sink, clock
    ) -> None:
        source = make_source()
        raw = {"id": 1}
        reconcile(reconciler, source, raw)
        clock.advance(7200)

        assert reconcile(reconciler, source, raw) == [ReconcileOutcome.APPLIED]
        assert len(sink.calls) == 2

    def test_without_cache_reapplies_but_still_writes(
        self, sink, cache, reconcile, make_source
    ) -> None:
        """Test use_cache=False ignores cached values yet refreshes them."""
        reconciler = Reconciler(sink, cache, use_cache=False)
        source = make_source()
        raw = {"id": 1}

        reconcile(reconciler, source, raw)
        assert reconcile(reconciler, source, raw) == [ReconcileOutcome.APPLIED]

        assert len(sink.calls) == 2
        assert cache.writes == 2


class TestCancellation:
    """Tests for cancelled events."""

    def test_cancelled_event_is_removed(
        self, reconciler, reconcile, make_source, sink, cache
    ) -> None:
        source = make_source()

        outcome = reconcile(reconciler, source, {"id": 7, "cancelled": True})

        assert outcome == [ReconcileOutcome.REMOVED]
        assert sink.calls == [("remove", "primary", "studio-7")]
        assert cache.get("event studio-7 for primary") is not None

    def test_cancelled_event_removed_once(self, reconciler, reconcile, make_source, sink) -> None:
        source = make_source()
        raw = {"id": 7, "cancelled": True}
        reconcile(reconciler, source, raw)

        assert reconcile(reconciler, source, raw) == [ReconcileOutcome.SKIPPED]
        assert len(sink.calls) == 1

    def test_cancellation_after_sync_is_applied(
        self, reconciler, reconcile, make_source, sink
    ) -> None:
        """Test a cached confirmed event that gets cancelled is removed."""
        source = make_source()
        reconcile(reconciler, source, {"id": 7})

        outcome = reconcile(reconciler, source, {"id": 7, "cancelled": True})

        assert outcome == [ReconcileOutcome.REMOVED]
        assert [call[0] for call in sink.calls] == ["apply", "remove"]


class TestFailures:
    """Tests for sink failures and the cache."""

    def test_failed_sink_leaves_cache_untouched(
        self, reconciler, reconcile, make_source, sink, cache
    ) -> None:
        """Test a failed mutation is retried on the next run."""
        source = make_source()
        sink.fail("apply", "primary", SinkError("fake", "HTTP 400", status_code=400), times=1)

        with pytest.raises(AggregateError):
            reconcile(reconciler, source, {"id": 1})
        assert len(cache) == 0

        assert reconcile(reconciler, source, {"id": 1}) == [ReconcileOutcome.APPLIED]
        assert sink.applied() == ["studio-1", "studio-1"]

    def test_transient_failure_is_retried(
        self, reconciler, reconcile, make_source, sink, clock
    ) -> None:
        source = make_source()
        sink.fail("apply", "primary", SinkError("fake", "HTTP 503", transient=True), times=2)

        assert reconcile(reconciler, source, {"id": 1}) == [ReconcileOutcome.APPLIED]
        assert len(sink.calls) == 3

    def test_exhausted_retries_are_recorded_per_destination(
        self, reconciler, reconcile, make_source, sink
    ) -> None:
        source = make_source()
        sink.fail("apply", "primary", SinkError("fake", "HTTP 503", transient=True))

        with pytest.raises(AggregateError) as exc_info:
            reconcile(reconciler, source, {"id": 1})

        record = exc_info.value.records[0]
        assert record.context == ("Run", 'Calendar "primary"')
        assert record.message == "Gave up on Sync to primary after 3 attempts"
        assert len(sink.calls) == 3

    def test_fan_out_isolates_destinations(
        self, reconciler, reconcile, make_source, sink, cache
    ) -> None:
        """Test one failing destination does not stop the others."""
        source = make_source(destinations=("a", "b", "c"))
        sink.fail("apply", "b", SinkError("fake", "Calendar b is read-only", status_code=403))

        with pytest.raises(AggregateError) as exc_info:
            reconcile(reconciler, source, {"id": 1})

        assert sink.applied() == ["studio-1", "studio-1", "studio-1"]
        assert cache.get("event studio-1 for a") is not None
        assert cache.get("event studio-1 for b") is None
        assert cache.get("event studio-1 for c") is not None

        records = exc_info.value.records
        assert len(records) == 1
        assert records[0].context == ("Run", 'Calendar "b"')
        assert records[0].message == "Calendar b is read-only"

    def test_fan_out_returns_successful_outcomes(
        self, reconciler, make_source, sink, aggregate
    ) -> None:
        source = make_source(destinations=("a", "b"))
        sink.fail("apply", "a", SinkError("fake", "HTTP 400", status_code=400))
        outcomes = []

        def body(diagnostics):
            outcomes.extend(reconciler.reconcile(diagnostics, source, {"id": 1}))

        with pytest.raises(AggregateError):
            aggregate(body)
        assert outcomes == [ReconcileOutcome.APPLIED]

    def test_missing_destination_mapping_fails_item(
        self, reconciler, reconcile, make_source, sink
    ) -> None:
        """Test a record with no destinations fails before any sink call."""
        source = make_source()

        with pytest.raises(AggregateError) as exc_info:
            reconcile(reconciler, source, {"id": 1, "destinations": []})

        assert sink.calls == []
        assert "No target calendars" in exc_info.value.records[0].message

    def test_configuration_error_is_not_retried(
        self, reconciler, make_source, sink, aggregate
    ) -> None:
        source = make_source()
        sink.fail("apply", "primary", ConfigurationError("Unknown calendar"))

        with pytest.raises(AggregateError):
            aggregate(lambda d: reconciler.reconcile(d, source, {"id": 1}))
        assert len(sink.calls) == 1
