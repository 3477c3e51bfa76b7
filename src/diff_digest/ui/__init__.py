"""Terminal presentation for Diff Digest."""

from diff_digest.ui.console import get_console, set_console
from diff_digest.ui.display import items_table, notes_panel, page_summary

__all__ = [
    "get_console",
    "set_console",
    "items_table",
    "notes_panel",
    "page_summary",
]
