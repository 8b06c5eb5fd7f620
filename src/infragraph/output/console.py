"""Rich Console factory and theme for infragraph output.

Creates Console instances that render to a StringIO buffer, preserving
the ``format_result() -> str`` contract.  In non-TTY environments
(tests, pipes) Rich automatically disables color codes.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

IG_THEME = Theme(
    {
        "ig.ok": "bold green",
        "ig.error": "bold red",
        "ig.warning": "bold yellow",
        "ig.op": "bold cyan",
        "ig.key": "dim",
        "ig.id": "bold blue",
        "ig.path": "dim",
        "ig.title": "bold",
        "ig.score": "magenta",
        "ig.severity.low": "dim",
        "ig.severity.medium": "yellow",
        "ig.severity.high": "bold red",
        "ig.severity.critical": "bold white on red",
    }
)


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=IG_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_severity(severity: str) -> str:
    """Return the Rich style name for an anomaly severity."""
    return f"ig.severity.{severity}" if severity in ("low", "medium", "high", "critical") else ""
