"""
Calsync - Resilient calendar sync

Mirrors class schedules from booking platforms into calendars, within a
fixed time budget, reporting every failure at the end of the run.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from calsync.core.config.models import CalsyncConfig
from calsync.core.sync.models import DesiredEvent, RunResult, SyncStats

__all__ = ["CalsyncConfig", "DesiredEvent", "RunResult", "SyncStats", "__version__"]
