"""
Source adapter protocol and registry.

This module defines the SourceAdapter protocol that all sources must
implement, and a small registry mapping a config ``type`` to the adapter
class that handles it:
- SourceAdapter is a runtime_checkable Protocol
- Sources are registered with a decorator
- ``build_source`` instantiates the adapter for a validated source config
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from calsync.core.sync.models import DesiredEvent, PageResult

if TYPE_CHECKING:
    from calsync.core.diagnostics import Diagnostics


@runtime_checkable
class SourceAdapter(Protocol):
    """
    Protocol for paginated record sources.

    Sources are responsible for:
    - Fetching pages of raw records and deciding whether to keep paginating
    - Mapping a raw record to the event it should become in its destinations
    - Naming the destinations a raw record belongs to
    """

    @property
    def name(self) -> str:
        """Source name used in logs and error reports."""
        ...

    @property
    def id_prefix(self) -> str:
        """Prefix of every stable id this source produces."""
        ...

    @property
    def past_days_to_fetch(self) -> int:
        """Lookback, in days, used to compute the initial fetch window."""
        ...

    def fetch_page(self, diagnostics: Diagnostics, page_number: int) -> PageResult:
        """
        Fetch the next page of raw records.

        Args:
            diagnostics: Handle of the current run
            page_number: 1-based page number, for labels and logs

        Returns:
            PageResult with items in source order

        Raises:
            SourceError: If the source could not be read
        """
        ...

    def map_to_desired_event(self, raw: Any) -> DesiredEvent:
        """Compute the desired event for a raw record."""
        ...

    def destinations_for(self, raw: Any) -> list[str]:
        """
        Destinations a raw record is mirrored to, in order, without duplicates.

        Raises:
            ConfigurationError: If no destination is configured for the record
        """
        ...

    def describe(self, raw: Any) -> str:
        """Human-readable context label for processing a raw record."""
        ...

    def all_destinations(self) -> list[str]:
        """Every destination this source may write to."""
        ...


# Source registry, keyed by config ``type``
_sources: dict[str, Callable[..., SourceAdapter]] = {}


def register_source(
    source_type: str,
) -> Callable[[Callable[..., SourceAdapter]], Callable[..., SourceAdapter]]:
    """
    Decorator to register a source adapter for a config type.

    Usage:
        @register_source("marianatek")
        class MarianaTekSource:
            def __init__(self, config: MarianaTekSourceConfig) -> None:
                ...

    Raises:
        ValueError: If the type is already registered
    """

    def decorator(source_class: Callable[..., SourceAdapter]) -> Callable[..., SourceAdapter]:
        if source_type in _sources:
            raise ValueError(
                f"Source '{source_type}' is already registered. "
                f"Available sources: {', '.join(_sources.keys())}"
            )
        _sources[source_type] = source_class
        return source_class

    return decorator


def build_source(config: Any, **kwargs: Any) -> SourceAdapter:
    """
    Instantiate the adapter registered for ``config.type``.

    Args:
        config: Validated source configuration
        **kwargs: Extra keyword arguments passed to the adapter

    Raises:
        ValueError: If no adapter is registered for the config type
    """
    source_type = getattr(config, "type", None)
    source_class = _sources.get(str(source_type))
    if source_class is None:
        available = ", ".join(sorted(_sources)) if _sources else "none registered"
        raise ValueError(f"Source '{source_type}' not registered. Available sources: {available}")
    return source_class(config, **kwargs)


def list_sources() -> list[str]:
    """List all registered source types in alphabetical order."""
    return sorted(_sources.keys())
