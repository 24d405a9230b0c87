"""Human-facing status lines on stderr.

Query results own stdout, so everything here writes to a shared stderr
console::

    status("Loaded 3 files (120 rows)", style="success")
    with spinner("Compiling protos"):
        run_protoc()
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from rich.console import Console
from rich.markup import escape

_console = Console(stderr=True, highlight=False)

_MARKS = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}

_state = threading.local()


def is_console_suppressed() -> bool:
    """True while a spinner is drawing on this thread."""
    return bool(getattr(_state, "suppressed", False))


@contextmanager
def suppress_console_logs() -> Iterator[None]:
    """Keep console log handlers quiet; file handlers are unaffected."""
    previous = is_console_suppressed()
    _state.suppressed = True
    try:
        yield
    finally:
        _state.suppressed = previous


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    word = singular if count == 1 else (plural or f"{singular}s")
    return f"{count} {word}"


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print one marked line to stderr."""
    _console.print(" " * indent + _MARKS.get(style, "") + escape(message))
    structlog.get_logger().debug("status", message=message, style=style)


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Animate while the block runs on a terminal; stay silent otherwise."""
    if not _console.is_terminal:
        structlog.get_logger().debug("spinner", message=message)
        yield
        return
    with suppress_console_logs(), _console.status(" " * indent + f"[cyan]{message}[/cyan]", spinner="dots"):
        yield
