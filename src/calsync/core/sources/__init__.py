"""
Source adapter protocol and registry.

This module provides:
- SourceAdapter: Protocol that all sources must implement
- @register_source: Decorator for registering source implementations
- build_source(): Instantiate the adapter for a source config
- list_sources(): Get all registered source types

Example:
    >>> from calsync.core.sources import build_source
    >>> source = build_source(config.sources[0])
    >>> source.name
    'My Studio'
"""

from calsync.core.sources import base as _base
from calsync.core.sources.base import (
    SourceAdapter,
    build_source,
    list_sources,
    register_source,
)

# Import source implementations to register them
from calsync.core.sources import marianatek as _marianatek  # noqa: F401
from calsync.core.sources.marianatek import MarianaTekSource

# Expose the registry for testing purposes
_sources = _base._sources

__all__ = [
    "MarianaTekSource",
    "SourceAdapter",
    "build_source",
    "list_sources",
    "register_source",
]
