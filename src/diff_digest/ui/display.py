"""Rendering of items and release notes with Rich."""

from typing import Dict, Iterable

from rich.console import Group, RenderableType
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from diff_digest.pagination.fetcher import PageResult
from diff_digest.state.schema import GenerationState, ItemView, PaginationState


STATE_STYLES: Dict[GenerationState, str] = {
    GenerationState.IDLE: "dim",
    GenerationState.GENERATING: "bold cyan",
    GenerationState.COMPLETE: "green",
    GenerationState.INTERRUPTED: "yellow",
    GenerationState.FAILED: "red",
}


def state_label(state: GenerationState) -> Text:
    return Text(state.value, style=STATE_STYLES[state])


def items_table(views: Iterable[ItemView], pagination: PaginationState) -> Table:
    """Tabulate held items with their generation state."""
    table = Table(
        title="Merged pull requests",
        caption=pagination_caption(pagination),
        expand=False,
    )
    table.add_column("ID", style="bold")
    table.add_column("Description", overflow="fold")
    table.add_column("Notes")
    table.add_column("Chars", justify="right")
    table.add_column("Shown", justify="center")

    for view in views:
        table.add_row(
            view.item.id,
            view.item.description,
            state_label(view.state),
            str(len(view.accumulated_text)) if view.state is not GenerationState.IDLE else "",
            "✓" if view.visible else "",
        )
    return table


def pagination_caption(pagination: PaginationState) -> str:
    if not pagination.initial_fetch_done:
        return "Nothing fetched yet. Run `diff-digest fetch`."
    if pagination.cursor is None:
        return f"Page {pagination.current_page} - no more pages"
    return f"Page {pagination.current_page} - next page {pagination.cursor} (`diff-digest more`)"


def page_summary(result: PageResult) -> str:
    summary = f"Fetched page {result.current_page}: {result.added} new items"
    if result.dropped:
        summary += f", {result.dropped} invalid skipped"
    return summary


def notes_panel(view: ItemView) -> RenderableType:
    """Render one item's notes, honouring visibility and state."""
    title = f"{view.item.id} - {view.item.description}"
    if view.state is GenerationState.IDLE:
        body: RenderableType = Text("No notes yet. Run `diff-digest generate`.", style="dim")
    elif not view.visible:
        body = Text("Notes hidden. Run `diff-digest toggle` to show them.", style="dim")
    elif view.state is GenerationState.FAILED:
        body = Text(view.accumulated_text, style="red")
    else:
        body = Markdown(view.accumulated_text)

    parts = [body]
    if view.interruption_marker:
        parts.append(
            Text(
                f"\n{view.interruption_marker} Run `diff-digest resume {view.item.id}`.",
                style="yellow",
            )
        )
    return Panel(
        Group(*parts),
        title=title,
        subtitle=f"{view.state.value} · {view.item.source_url}",
        border_style=STATE_STYLES[view.state],
    )
