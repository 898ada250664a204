"""Shared utility functions for jumpstarter.

Provides Rich-based status reporting, duration formatting, and JSON output
for run reports.  All console output goes through the module-level
``console`` so tests can capture or silence it in one place.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

console = Console()

# ---------------------------------------------------------------------------
# JSON output
# ---------------------------------------------------------------------------


async def save_json(data: dict[str, Any] | list[Any], path: str | Path) -> None:
    """Save data as pretty-printed JSON.

    Parent directories are created automatically.  The write itself is
    performed in a worker thread to avoid blocking the event loop.

    Args:
        data: Serialisable data (dict or list).
        path: Destination file path.
    """
    file_path = Path(path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    await asyncio.to_thread(file_path.write_text, content, "utf-8")


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------

PHASE_COLORS: dict[str, str] = {
    "setup": "bright_cyan",
    "post_install": "bright_green",
    "finalize": "bright_blue",
}

# Thor-style status verbs printed in front of each file action.
STATUS_COLORS: dict[str, str] = {
    "create": "green",
    "append": "green",
    "insert": "green",
    "gsub": "green",
    "route": "green",
    "environment": "green",
    "gemfile": "green",
    "remove": "red",
    "run": "cyan",
    "force": "yellow",
    "skip": "yellow",
    "identical": "blue",
}


def print_step_header(index: int, name: str, phase: str) -> None:
    """Print a rule announcing the next step.

    Args:
        index: 1-based position of the step in the recipe.
        name: Step name.
        phase: Phase the step belongs to (drives the colour).
    """
    color = PHASE_COLORS.get(phase, "white")
    console.print(
        Rule(f"[bold {color}] {index:>2}. {name} [/bold {color}]", style=color, align="left")
    )


def print_status(verb: str, message: str) -> None:
    """Print a right-aligned status verb followed by *message*.

    Mirrors the ``      create  config/database.yml`` lines that Rails
    generators print, so our own file actions read the same way.
    """
    color = STATUS_COLORS.get(verb, "white")
    console.print(f"[bold {color}]{verb:>12}[/bold {color}]  {escape(message)}", highlight=False)


def print_summary_table(rows: list[tuple[str, ...]], columns: list[str], title: str = "Summary") -> None:
    """Print a summary table.

    Args:
        rows: One tuple of cell values per row.
        columns: Column headings; the first column is rendered dim.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for i, column in enumerate(columns):
        table.add_column(column, style="dim" if i == 0 else None, no_wrap=i == 0)

    for row in rows:
        table.add_row(*(str(cell) for cell in row))

    console.print(table)
    console.print()


def print_success(message: str) -> None:
    """Print a green success message."""
    console.print(f"[bold green]{message}[/bold green]")


def print_error(message: str) -> None:
    """Print a red error message."""
    console.print(f"[bold red]{escape(message)}[/bold red]")


def print_warning(message: str) -> None:
    """Print a yellow warning message."""
    console.print(f"[bold yellow]{escape(message)}[/bold yellow]")
