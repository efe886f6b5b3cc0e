"""
.env file loading.

The calendar access token (and anything else read from ``os.environ``) can
live in .env files instead of the shell:

    ~/.config/calsync/.env     per-user defaults
    ./.env, ./.env.local       per-project values, replacing per-user ones

A variable that is already exported when calsync starts always wins over
both files.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import dotenv_values

logger = logging.getLogger(__name__)


def default_env_paths(project_dir: Path) -> tuple[list[Path], list[Path]]:
    """Return the (user, project) .env files looked at by default."""
    xdg_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
    return (
        [xdg_home / "calsync" / ".env"],
        [project_dir / ".env", project_dir / ".env.local"],
    )


def _values(paths: Iterable[Path]) -> tuple[dict[str, str], list[Path]]:
    merged: dict[str, str] = {}
    loaded: list[Path] = []
    for path in map(Path, paths):
        if not path.is_file():
            continue
        merged.update(
            {key: value for key, value in dotenv_values(path).items() if key and value is not None}
        )
        loaded.append(path)
    return merged, loaded


def load_layered_env(
    *,
    project_dir: Path | None = None,
    user_env_paths: Iterable[Path] | None = None,
    project_env_paths: Iterable[Path] | None = None,
) -> list[Path]:
    """
    Copy values from user and project .env files into ``os.environ``.

    Args:
        project_dir: Directory holding the project .env files (defaults to cwd)
        user_env_paths: Override the user .env locations
        project_env_paths: Override the project .env locations

    Returns:
        The .env files that existed and were read, lowest precedence first
    """
    default_user, default_project = default_env_paths(project_dir or Path.cwd())
    user_values, user_loaded = _values(
        default_user if user_env_paths is None else user_env_paths
    )
    project_values, project_loaded = _values(
        default_project if project_env_paths is None else project_env_paths
    )

    exported = set(os.environ)
    for key, value in {**user_values, **project_values}.items():
        if key not in exported:
            os.environ[key] = value

    loaded = user_loaded + project_loaded
    for path in loaded:
        logger.debug("Loaded environment from %s", path)
    return loaded
