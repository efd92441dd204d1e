"""Terminal feedback for CLI commands: status lines and spinners on stderr.

Status lines are also logged at DEBUG, so a log file tells the same story
as the terminal. A spinner animates only on an interactive stderr and
holds back console log lines while it runs; piped output gets one plain
line instead.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from rich.console import Console

from cutplane.core.logging import quiet_console

_console = Console(stderr=True)

_MARKS = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
}


def get_console() -> Console:
    """Shared stderr console, also used for diff summary panels."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    _console.print(" " * indent + _MARKS.get(style, "") + message, highlight=False)
    structlog.get_logger("cutplane.progress").debug("progress.status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """``1 facet``, ``3 facets``."""
    word = singular if count == 1 else plural or f"{singular}s"
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    text = " " * indent + message
    if not _console.is_terminal:
        _console.print(f"{text}...", highlight=False)
        yield
        return
    with quiet_console(), _console.status(f"[cyan]{text}[/cyan]", spinner="dots"):
        yield
