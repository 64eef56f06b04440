"""Terminal feedback for ``ctxc``: phase lines, status messages, warning tables.

All output goes to stderr so that ``ctxc compile --json`` keeps stdout clean.
On a TTY each phase shows a spinner and structlog's console output is held
back until the phase ends; elsewhere the phase name is printed once.

Usage::

    with task("Resolving overrides"):
        resolver = PreferenceResolver(...)

    status(f"Wrote {pluralize(n, 'document')}", style="success")
"""

from __future__ import annotations

import sys
import threading
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from rich.console import Console
from rich.table import Table

_console = Console(stderr=True)

_MARKERS = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_suppressed = threading.local()


def is_console_suppressed() -> bool:
    return getattr(_suppressed, "active", False)


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Hold back console log records on this thread; file outputs are unaffected."""
    _suppressed.active = True
    try:
        yield
    finally:
        _suppressed.active = False


def get_console() -> Console:
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    _console.print(f"{' ' * indent}{_MARKERS.get(style, '')}{message}", highlight=False)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """``1 document`` / ``8 documents``."""
    return f"{count} {singular if count == 1 else (plural or singular + 's')}"


@contextmanager
def task(name: str) -> Iterator[None]:
    """Show one pipeline phase and its duration.

    On failure the phase is marked with the error and the exception
    propagates unchanged.
    """
    start = time.perf_counter()
    try:
        if sys.stderr.isatty():
            with suppress_console_logs(), _console.status(f"[cyan]{name}[/cyan]", spinner="dots"):
                yield
        else:
            _console.print(f"{name}...", highlight=False)
            yield
    except Exception as e:
        status(f"{name} failed: {e}", style="error")
        raise
    status(f"{name} ({time.perf_counter() - start:.1f}s)", style="success")


def warnings_table(warnings: Sequence[dict[str, Any]], *, limit: int = 20) -> Table:
    """Recorded warnings as a table; rows past ``limit`` are summarized in the caption."""
    table = Table(title="Warnings", title_justify="left")
    table.add_column("category", style="yellow", no_wrap=True)
    table.add_column("code", style="dim", no_wrap=True)
    table.add_column("source", style="dim")
    table.add_column("message")
    for w in warnings[:limit]:
        code = w.get("code")
        table.add_row(
            w.get("category", ""),
            "" if code is None else str(code),
            w.get("source", ""),
            w.get("message", ""),
        )
    if len(warnings) > limit:
        table.caption = f"... and {len(warnings) - limit} more (see manifest.json)"
    return table
