"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config (or an explicit file) < env vars

Any problem (unreadable file, invalid JSON, failed validation) is raised as a
ConfigurationError with a descriptive message, before any network activity.
"""

import json
import os
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from calsync.core.diagnostics.exceptions import ConfigurationError

from .models import CalsyncConfig

PROJECT_CONFIG_NAME = "calsync.json"


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """Path to ~/.config/calsync/config.json (or XDG equivalent)."""
    return get_xdg_config_home() / "calsync" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """Path to calsync.json in the given (or current) directory."""
    if cwd is None:
        cwd = Path.cwd()
    return cwd / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested dicts
    are merged, everything else (including lists such as ``sources``) is
    replaced.

    Example:
        >>> deep_merge({"a": 1, "b": {"x": 10, "y": 20}}, {"b": {"y": 30}, "c": 3})
        {'a': 1, 'b': {'x': 10, 'y': 30}, 'c': 3}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path, *, required: bool = False) -> dict[str, Any] | None:
    """
    Load a JSON object from a file.

    Args:
        path: Path to the JSON file
        required: Raise if the file does not exist

    Returns:
        Parsed JSON object, or None if the file is absent and not required

    Raises:
        ConfigurationError: If the file is required and missing, unreadable,
            not valid JSON, or not a JSON object
    """
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}", path=str(path))
        return None

    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigurationError(f"Failed to parse config at {path}: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Config at {path} must be a JSON object, got {type(data).__name__}",
            path=str(path),
        )
    return data


def _env_number(name: str, cast: type) -> Any:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid {name} value '{raw}'", variable=name) from e


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        CALSYNC_TIME_BUDGET - overrides sync.time_budget_seconds
        CALSYNC_CACHE_TTL - overrides sync.cache_ttl_seconds
        CALSYNC_CACHE_PATH - overrides cache.path

    Raises:
        ConfigurationError: If a numeric override is not a number
    """
    result = config_dict.copy()

    if (budget := _env_number("CALSYNC_TIME_BUDGET", float)) is not None:
        result["sync"] = {**result.get("sync", {}), "time_budget_seconds": budget}

    if (ttl := _env_number("CALSYNC_CACHE_TTL", int)) is not None:
        result["sync"] = {**result.get("sync", {}), "cache_ttl_seconds": ttl}

    if cache_path := os.environ.get("CALSYNC_CACHE_PATH"):
        result["cache"] = {**result.get("cache", {}), "path": cache_path}

    return result


def format_validation_error(error: ValidationError) -> str:
    """Render pydantic validation errors as one line per problem."""
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        lines.append(f"  {location}: {item['msg']}")
    return "\n".join(lines)


def load_config(path: Path | None = None, project_dir: Path | None = None) -> CalsyncConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (CALSYNC_*)
        2. ``path`` if given, otherwise project config (calsync.json)
        3. User config (~/.config/calsync/config.json)
        4. Model defaults

    Args:
        path: Explicit config file; must exist
        project_dir: Directory to look for calsync.json in (defaults to cwd)

    Returns:
        Validated CalsyncConfig instance

    Raises:
        ConfigurationError: If any layer is unreadable or the merged
            config fails validation

    Example:
        >>> config = load_config(Path("calsync.json"))
        >>> [source.name for source in config.sources]
        ['My Studio']
    """
    merged: dict[str, Any] = {}

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if path is not None:
        config_path = Path(path)
        merged = deep_merge(merged, load_json_file(config_path, required=True) or {})
    else:
        config_path = get_project_config_path(project_dir)
        if project_config := load_json_file(config_path):
            merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    try:
        return CalsyncConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}:\n{format_validation_error(e)}",
            path=str(config_path),
        ) from e
