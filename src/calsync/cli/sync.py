"""
Calsync CLI - run and clear commands.

Both commands load configuration, build the configured sources and the
calendar sink, and hand them to a RunCoordinator. Failures collected during
the run are printed as one indented report at the end.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from calsync.cli.errors import (
    ExitCode,
    print_aggregate_error,
    print_configuration_error,
    print_interrupted,
    print_out_of_time,
)
from calsync.core.cache import JsonFileCacheStore
from calsync.core.config import load_config
from calsync.core.diagnostics import AggregateError, BudgetExceededError, ConfigurationError
from calsync.core.sinks import GoogleCalendarSink
from calsync.core.sources import build_source
from calsync.core.sync import RunCoordinator, RunResult

console = Console()


def setup_logging(debug: bool = False) -> None:
    """
    Configure logging for sync commands.

    Args:
        debug: If True, enable DEBUG level logging
    """
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    # Per-request noise from the HTTP client drowns out progress lines
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _build(config_path: Path | None) -> tuple[RunCoordinator, JsonFileCacheStore]:
    config = load_config(config_path)
    sources = [build_source(source_config) for source_config in config.sources]
    sink = GoogleCalendarSink(config.sink)
    cache = JsonFileCacheStore(config.cache.path)
    return RunCoordinator(sources, sink, cache, config.sync), cache


def _print_summary(title: str, result: RunResult, elapsed: float, *, removed: bool) -> None:
    console.print()
    console.print(
        Panel(
            Text.from_markup(f"{title} in {elapsed:.2f}s"),
            title=Text("✓", style="bold green"),
            border_style="green",
            expand=False,
        )
    )

    table = Table(title="Sources", border_style="cyan")
    table.add_column("Source", style="cyan", no_wrap=True)
    if removed:
        table.add_column("Removed", justify="right", style="bold")
    else:
        table.add_column("Pages", justify="right")
        table.add_column("Synced", justify="right", style="green")
        table.add_column("Cancelled", justify="right", style="yellow")
        table.add_column("Skipped", justify="right", style="dim")
        table.add_column("Failed", justify="right", style="red")

    for stats in result.sources:
        if removed:
            table.add_row(stats.source, str(stats.removed))
        else:
            table.add_row(
                stats.source,
                str(stats.pages),
                str(stats.synced),
                str(stats.cancelled),
                str(stats.skipped),
                str(stats.failed),
            )

    console.print(table)
    console.print()


def run(
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file to use instead of ./calsync.json",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    without_cache: Annotated[
        bool,
        typer.Option(
            "--without-cache",
            help="Re-apply every event even when it has not changed",
        ),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    Sync every configured source to its calendars.

    Sources are visited in random order. When the time budget runs out the
    run stops early and the next run picks up the sources it did not reach.

    Examples:
        calsync run
        calsync run --config ~/studio.json
        calsync run --without-cache --debug
    """
    setup_logging(debug)

    try:
        coordinator, _ = _build(config_path)
        start_time = time.monotonic()
        result = coordinator.run(use_cache=not without_cache)
        elapsed = time.monotonic() - start_time
    except ConfigurationError as e:
        print_configuration_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)
    except BudgetExceededError as e:
        print_out_of_time(e)
        raise typer.Exit(ExitCode.OUT_OF_TIME)
    except AggregateError as e:
        print_aggregate_error(e)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except KeyboardInterrupt:
        print_interrupted()
        raise typer.Exit(ExitCode.SIGINT)

    _print_summary("Sync complete", result, elapsed, removed=False)
    console.print(f"[bold cyan]Total changes:[/bold cyan] {result.total_changes}")


def clear(
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Config file to use instead of ./calsync.json",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging"),
    ] = False,
) -> None:
    """
    Remove every synced event from the configured calendars.

    Only events whose id starts with a source's id prefix are removed. The
    local cache is cleared as well, so the next run re-applies everything.

    Examples:
        calsync clear
        calsync clear --yes
    """
    setup_logging(debug)

    try:
        coordinator, cache = _build(config_path)
    except ConfigurationError as e:
        print_configuration_error(e)
        raise typer.Exit(ExitCode.USER_ERROR)

    if not yes:
        names = ", ".join(source.name for source in coordinator.sources)
        typer.confirm(f"Remove all synced events for {names}?", abort=True)

    try:
        start_time = time.monotonic()
        result = coordinator.clear()
        elapsed = time.monotonic() - start_time
    except BudgetExceededError as e:
        print_out_of_time(e)
        raise typer.Exit(ExitCode.OUT_OF_TIME)
    except AggregateError as e:
        print_aggregate_error(e)
        raise typer.Exit(ExitCode.GENERAL_ERROR)
    except KeyboardInterrupt:
        print_interrupted()
        raise typer.Exit(ExitCode.SIGINT)
    finally:
        cache.clear()

    _print_summary("Clear complete", result, elapsed, removed=True)
