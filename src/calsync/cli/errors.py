"""
Standardized error handling and exit codes for the calsync CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

from enum import IntEnum

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from calsync.core.diagnostics import AggregateError, BudgetExceededError, ConfigurationError

console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for calsync CLI operations."""

    SUCCESS = 0
    """Every source synced without errors."""

    GENERAL_ERROR = 1
    """One or more items, pages or sources failed."""

    USER_ERROR = 2
    """Configuration error (actionable by user)."""

    OUT_OF_TIME = 3
    """The run used up its time budget; the next run picks up the rest."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Invalid configuration",
        ...     reason="sources.0.brand: Field required",
        ...     solution="Edit calsync.json",
        ... )
    """
    console.print(f"[red]Error:[/red] {escape(problem)}")

    if reason:
        console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


def print_configuration_error(error: ConfigurationError) -> None:
    """Print a configuration error with the hint to fix the config file."""
    print_error(
        str(error),
        solution="Fix calsync.json (or the file passed with --config) and run again",
    )


def print_out_of_time(error: BudgetExceededError) -> None:
    """Print the early-exit notice for a run that used up its time budget."""
    console.print(f"[yellow]Stopped early:[/yellow] {escape(str(error))}")
    console.print("[dim]Sources not reached will be synced on the next run.[/dim]")


def print_aggregate_error(error: AggregateError) -> None:
    """Print every recorded failure as an indented report in a panel."""
    body = Text(error.report)
    count = len(error.records)
    noun = "error" if count == 1 else "errors"
    console.print()
    console.print(
        Panel(
            body,
            title=f"[bold red]{count} {noun} during {escape(error.label)}[/bold red]",
            border_style="red",
            expand=False,
        )
    )
    console.print()


def print_interrupted() -> None:
    """Print the notice for a run stopped with Ctrl+C."""
    console.print("[yellow]Interrupted.[/yellow] Changes made so far are kept.")
