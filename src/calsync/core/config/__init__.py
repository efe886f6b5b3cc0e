"""
Configuration models and loading.

This module provides Pydantic models for calsync configuration
with multi-layer merging: defaults < user < project < env vars.
"""

from .env import load_layered_env
from .loader import (
    get_project_config_path,
    get_user_config_path,
    get_xdg_config_home,
    load_config,
)
from .models import (
    CacheConfig,
    CalsyncConfig,
    GoogleCalendarConfig,
    LocationMode,
    MarianaTekSourceConfig,
    SyncSettings,
)

__all__ = [
    # Models
    "CacheConfig",
    "CalsyncConfig",
    "GoogleCalendarConfig",
    "LocationMode",
    "MarianaTekSourceConfig",
    "SyncSettings",
    # Loader functions
    "get_project_config_path",
    "get_user_config_path",
    "get_xdg_config_home",
    "load_config",
    "load_layered_env",
]
