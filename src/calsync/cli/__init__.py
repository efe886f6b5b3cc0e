"""
Calsync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer
from rich.console import Console

from calsync import __version__
from calsync.cli import sync
from calsync.core.config.env import load_layered_env

# Create the main Typer app
app = typer.Typer(
    name="calsync",
    help="Mirror class schedules into calendars",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"calsync version {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show calsync version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """
    Calsync - Resilient calendar sync.

    Fetches classes from every configured source and mirrors them into
    calendars. Unchanged events are skipped using a local cache, transient
    failures are retried, and every failure is reported at the end.

    Quick Start:
        1. Create calsync.json with your sources
        2. export GOOGLE_CALENDAR_TOKEN=...
        3. calsync run
    """
    # Load layered env files early so tokens are available to all commands.
    # Precedence: OS env > project .env > user .env
    load_layered_env()


app.command(name="run")(sync.run)
app.command(name="clear")(sync.clear)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
