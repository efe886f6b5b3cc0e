"""
Pytest configuration and shared fixtures.

Provides a controllable clock, an in-memory source and sink that record every
call, and helpers to run code inside a Diagnostics aggregation. Nothing here
touches the network or really sleeps.
"""

from datetime import datetime
from typing import Any, Callable, TypeVar

import pytest

from calsync.core.cache import MemoryCacheStore
from calsync.core.diagnostics import ConfigurationError, Diagnostics, RetryPolicy
from calsync.core.sync.models import DesiredEvent, EventStatus, ExistingEvent, PageResult

T = TypeVar("T")


# ==============================================================================
# Time
# ==============================================================================


class FakeClock:
    """Monotonic clock that only moves when told to (or when slept on)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ==============================================================================
# Source / sink doubles
# ==============================================================================


class FakeSource:
    """
    Source serving pre-built pages.

    Raw records are dicts with an ``id`` and optional ``summary``,
    ``cancelled``, ``broken`` (mapping fails) and ``destinations`` keys.
    """

    def __init__(
        self,
        name: str = "Studio",
        pages: list[tuple[list[dict[str, Any]], bool]] | None = None,
        *,
        id_prefix: str = "studio-",
        destinations: tuple[str, ...] = ("primary",),
        past_days_to_fetch: int = 1,
        fetch_cost: float = 0.0,
        clock: FakeClock | None = None,
        journal: list[tuple[Any, ...]] | None = None,
    ) -> None:
        self._name = name
        self.pages = pages if pages is not None else [([], False)]
        self._id_prefix = id_prefix
        self._destinations = destinations
        self._past_days_to_fetch = past_days_to_fetch
        self.fetch_cost = fetch_cost
        self.clock = clock
        self.journal = journal if journal is not None else []
        self.fetch_errors: dict[int, list[BaseException]] = {}
        self.fetch_calls: list[int] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def id_prefix(self) -> str:
        return self._id_prefix

    @property
    def past_days_to_fetch(self) -> int:
        return self._past_days_to_fetch

    def fetch_page(self, diagnostics: Diagnostics, page_number: int) -> PageResult:
        self.fetch_calls.append(page_number)
        if self.clock is not None:
            self.clock.advance(self.fetch_cost)
        errors = self.fetch_errors.get(page_number)
        if errors:
            raise errors.pop(0)
        self.journal.append(("fetch", self.name, page_number))
        items, keep_going = self.pages[page_number - 1]
        return PageResult(items=list(items), keep_going=keep_going)

    def map_to_desired_event(self, raw: dict[str, Any]) -> DesiredEvent:
        if raw.get("broken"):
            raise ValueError(f"cannot map {raw['id']}")
        status = EventStatus.CANCELLED if raw.get("cancelled") else EventStatus.CONFIRMED
        return DesiredEvent(
            stable_id=f"{self.id_prefix}{raw['id']}",
            status=status,
            payload={"summary": raw.get("summary", "Class")},
        )

    def destinations_for(self, raw: dict[str, Any]) -> list[str]:
        if "destinations" in raw:
            if not raw["destinations"]:
                raise ConfigurationError(f"No target calendars for item {raw['id']}")
            return list(raw["destinations"])
        return list(self._destinations)

    def describe(self, raw: dict[str, Any]) -> str:
        return f"Item {raw['id']}"

    def all_destinations(self) -> list[str]:
        return list(self._destinations)


class FakeSink:
    """Sink recording every call, with per-operation failure injection."""

    name = "fake"

    def __init__(self, journal: list[tuple[Any, ...]] | None = None) -> None:
        self.journal = journal if journal is not None else []
        self.calls: list[tuple[str, str, str | None]] = []
        self.existing: dict[str, list[ExistingEvent]] = {}
        self.since: list[datetime] = []
        # Ids already deleted; deleting them again reports "already gone"
        self.gone: set[tuple[str, str]] = set()
        # When set, deleted events keep showing up in listings
        self.stale_listing = False
        self._failures: dict[tuple[str, str], list[Any]] = {}

    def fail(
        self, operation: str, destination: str, error: BaseException, times: int | None = None
    ) -> None:
        """Make ``operation`` on ``destination`` raise ``error`` (``times`` times, or always)."""
        self._failures[(operation, destination)] = [error, times]

    def _maybe_fail(self, operation: str, destination: str) -> None:
        entry = self._failures.get((operation, destination))
        if entry is None:
            return
        error, times = entry
        if times is not None:
            if times <= 0:
                return
            entry[1] = times - 1
        raise error

    def apply(self, event: DesiredEvent, destination: str) -> None:
        self.calls.append(("apply", destination, event.stable_id))
        self._maybe_fail("apply", destination)
        self.journal.append(("apply", destination, event.stable_id))

    def remove(self, destination: str, stable_id: str) -> None:
        self.calls.append(("remove", destination, stable_id))
        self._maybe_fail("remove", destination)
        self.journal.append(("remove", destination, stable_id))
        self.existing[destination] = [
            event for event in self.existing.get(destination, []) if event.stable_id != stable_id
        ]

    def delete_existing(self, destination: str, event: ExistingEvent) -> bool:
        self.calls.append(("delete", destination, event.stable_id))
        self._maybe_fail("delete", destination)
        if (destination, event.stable_id) in self.gone:
            return False
        self.journal.append(("delete", destination, event.stable_id))
        self.gone.add((destination, event.stable_id))
        if not self.stale_listing:
            self.existing[destination] = [
                e for e in self.existing.get(destination, []) if e.stable_id != event.stable_id
            ]
        return True

    def list_existing(self, destination: str, since: datetime) -> list[ExistingEvent]:
        self.calls.append(("list", destination, None))
        self.since.append(since)
        self._maybe_fail("list", destination)
        return list(self.existing.get(destination, []))

    def applied(self, destination: str | None = None) -> list[str]:
        return [
            stable_id
            for operation, dest, stable_id in self.calls
            if operation == "apply" and (destination is None or dest == destination)
            and stable_id is not None
        ]


@pytest.fixture
def journal() -> list[tuple[Any, ...]]:
    return []


@pytest.fixture
def sink(journal) -> FakeSink:
    return FakeSink(journal=journal)


@pytest.fixture
def make_source(clock, journal) -> Callable[..., FakeSource]:
    """Factory for FakeSource sharing the test's clock and journal."""

    def _make_source(*args: Any, **kwargs: Any) -> FakeSource:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("journal", journal)
        return FakeSource(*args, **kwargs)

    return _make_source


@pytest.fixture
def cache(clock) -> MemoryCacheStore:
    return MemoryCacheStore(clock=clock)


# ==============================================================================
# Diagnostics helpers
# ==============================================================================


@pytest.fixture
def aggregate(clock) -> Callable[..., Any]:
    """
    Run a body inside ``Diagnostics.aggregate`` with the fake clock.

    Retries sleep on the fake clock with no backoff unless ``backoff`` is given.
    """

    def _aggregate(
        body: Callable[[Diagnostics], T],
        *,
        label: str = "Run",
        budget: float | None = None,
        backoff: float = 0.0,
        log_errors: bool = False,
    ) -> T:
        return Diagnostics.aggregate(
            label,
            body,
            time_budget_seconds=budget,
            clock=clock,
            retry_policy=RetryPolicy(backoff, sleep=clock.sleep),
            log_errors=log_errors,
        )

    return _aggregate


# ==============================================================================
# Environment isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config_home(tmp_path, monkeypatch):
    """Keep the real user config and .env files out of every test."""
    config_home = tmp_path / "xdg-config"
    config_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    for name in ("CALSYNC_TIME_BUDGET", "CALSYNC_CACHE_TTL", "CALSYNC_CACHE_PATH"):
        monkeypatch.delenv(name, raising=False)
    return config_home
