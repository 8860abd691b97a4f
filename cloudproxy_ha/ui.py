"""Colorized console output for cloudproxy-ha runs.

Thin wrapper around :mod:`rich` that degrades gracefully when stdout
is not a TTY (e.g. piped, cloud-init, CI).  All operator-facing status
messages flow through this module; ``logger.*`` calls are kept for
structured logging.
"""

from __future__ import annotations

from typing import Mapping

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

# Shared console; force_terminal=None lets Rich detect the TTY.
console = Console(stderr=False, force_terminal=None)

# ── Symbols ────────────────────────────────────────────────────────────────

_PASS = "[bold green]✓[/]"
_FAIL = "[bold red]✗[/]"
_WARN = "[bold yellow]⚠[/]"
_ARROW = "[bold cyan]›[/]"
_DOT = "[dim]·[/]"


def phase(title: str) -> None:
    """Print a bold phase header (e.g. ``RESOLVE``, ``RENDER``)."""
    console.print()
    console.print(f"[bold blue]── {title} ──[/]")


def ok(msg: str) -> None:
    console.print(f"  {_PASS} {escape(msg)}")


def fail(msg: str) -> None:
    console.print(f"  {_FAIL} [red]{escape(msg)}[/]")


def warn(msg: str) -> None:
    console.print(f"  {_WARN} [yellow]{escape(msg)}[/]")


def step(msg: str) -> None:
    """Cyan arrow + in-progress action."""
    console.print(f"  {_ARROW} {escape(msg)}")


def info(msg: str) -> None:
    console.print(f"  {_DOT} [dim]{escape(msg)}[/]")


def values_table(title: str, values: Mapping[str, str]) -> None:
    """Two-column table of resolved values (callers mask secrets first)."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Variable")
    table.add_column("Value", overflow="fold")
    for key, value in values.items():
        table.add_row(key, escape(value) if value else "[dim](empty)[/]")
    console.print(table)


def success_panel(title: str, body: str) -> None:
    console.print()
    console.print(
        Panel(
            escape(body),
            title=f"[bold green]{title}[/]",
            border_style="green",
            padding=(1, 2),
        )
    )


def error_panel(title: str, body: str) -> None:
    console.print()
    console.print(
        Panel(
            escape(body),
            title=f"[bold red]{title}[/]",
            border_style="red",
            padding=(1, 2),
        )
    )
