"""
Console output for the stratum CLI, built on rich.

NO_COLOR and FORCE_COLOR are honoured; piped output is plain text.
"""

from __future__ import annotations

import os

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from stratum.orchestration.results import Outcome

# Nord color palette (https://www.nordtheme.com/)
STRATUM_THEME = Theme(
    {
        "info": "#88C0D0",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "muted": "#D8DEE9",
        "outcome.succeeded": "#A3BE8C",
        "outcome.failed": "#BF616A bold",
        "outcome.skipped": "#EBCB8B",
        "outcome.rolled_back": "#81A1C1",
    }
)

_OUTCOME_SYMBOLS = {
    Outcome.SUCCEEDED: "✓",
    Outcome.FAILED: "✗",
    Outcome.SKIPPED: "-",
    Outcome.ROLLED_BACK: "↺",
}

console = Console(
    theme=STRATUM_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def outcome_marker(outcome: Outcome) -> str:
    """Coloured one-character marker for a report entry."""
    style = f"outcome.{outcome.value}"
    return f"[{style}]{_OUTCOME_SYMBOLS[outcome]}[/{style}]"


def warning(message: str) -> None:
    console.print(f"[warning]⚠ {escape(message)}[/warning]")


def info(message: str) -> None:
    console.print(f"[info]{escape(message)}[/info]")


def header(title: str) -> None:
    console.print()
    console.print(Panel(f"[bold]{escape(title)}[/bold]", border_style="#88C0D0"))


def print_table(title: str, columns: list[str], rows: list[list[str]]) -> None:
    table = Table(title=title or None, header_style="bold")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(escape(cell) for cell in row))
    console.print(table)
