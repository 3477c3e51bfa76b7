"""Shared Rich console for Diff Digest terminal output."""

from typing import Optional

from rich.console import Console

_console: Optional[Console] = None


def get_console() -> Console:
    """Get the process-wide console, creating it on first use."""
    global _console
    if _console is None:
        _console = Console(highlight=False)
    return _console


def set_console(console: Console) -> None:
    """Replace the process-wide console (tests, --no-color)."""
    global _console
    _console = console
