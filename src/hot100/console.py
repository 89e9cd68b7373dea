"""Shared Rich console and progress utilities for the hot100 CLI."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

# Global console instance (initialized in CLI)
_console: Console | None = None


def get_console() -> Console:
    """Get the global Rich console, creating a stderr console on first use."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


@contextmanager
def make_progress(transient: bool = True, disable: bool = False) -> Iterator[Progress]:
    """Create a Rich Progress context for tracking weeks of a year.

    Example:
        with make_progress() as progress:
            task = progress.add_task("1984", total=52)
            for chart_date in dates:
                progress.update(task, advance=1)
    """
    columns = [
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
    ]

    with Progress(*columns, transient=transient, disable=disable, console=get_console()) as progress:
        yield progress
