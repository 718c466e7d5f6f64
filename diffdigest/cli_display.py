"""Rich displays for the notes CLI.

NotesDisplay is a two-panel Live view (developer on the left, marketing
on the right) that subscribes to a NotesPublisher and redraws on every
snapshot.
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from diffdigest.schemas.notes import DiffItem, DiffPage
from diffdigest.schemas.streaming import NotesSnapshot

_CURSOR = "▌"


def _note_panel(title: str, body: str, style: str, *, streaming: bool) -> Panel:
    text = Text(body or "", style="white")
    if streaming:
        text.append(_CURSOR, style=f"bold {style}")
    elif not body:
        text = Text("(empty)", style="dim")
    return Panel(text, title=f"[bold {style}]{title}[/bold {style}]", border_style=style)


def render_notes(snapshot: NotesSnapshot, *, streaming: bool = False) -> Group:
    """Render both notes side by side, with an error line if present."""
    grid = Table.grid(expand=True, padding=(0, 1))
    grid.add_column(ratio=1)
    grid.add_column(ratio=1)
    grid.add_row(
        _note_panel("Developer", snapshot.developer, "cyan", streaming=streaming),
        _note_panel("Marketing", snapshot.marketing, "magenta", streaming=streaming),
    )

    parts: list = [grid]
    if snapshot.error is not None:
        parts.append(
            Text(f"✗ {snapshot.error.kind.value}: {snapshot.error.message}", style="bold red")
        )
    return Group(*parts)


class NotesDisplay:
    """Live two-panel notes view driven by published snapshots.

    Usage::

        with NotesDisplay(console, item) as display:
            generator.publisher.add_listener(display.update)
            await generator.generate(item)
    """

    def __init__(self, console: Console, item: DiffItem) -> None:
        self._console = console
        self._item = item
        self._snapshot = NotesSnapshot(item_id=item.id)
        self._live: Live | None = None

    @property
    def snapshot(self) -> NotesSnapshot:
        return self._snapshot

    def _render(self) -> Layout:
        streaming = self._snapshot.error is None and not self._snapshot.is_complete
        layout = Layout()
        layout.split_column(
            Layout(
                Text(f"#{self._item.id}  {self._item.description}", style="bold"),
                name="header",
                size=1,
            ),
            Layout(render_notes(self._snapshot, streaming=streaming), name="body"),
        )
        return layout

    def update(self, snapshot: NotesSnapshot) -> None:
        """Publisher listener: redraw with the latest snapshot."""
        self._snapshot = snapshot
        if self._live is not None:
            self._live.update(self._render())

    def __enter__(self) -> NotesDisplay:
        self._live = Live(
            self._render(),
            console=self._console,
            refresh_per_second=12,
            transient=True,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *exc_info) -> None:
        if self._live is not None:
            self._live.__exit__(*exc_info)
            self._live = None


def render_diff_page(page: DiffPage) -> Table:
    """Table of one page of merged changes."""
    table = Table(
        title=f"Merged Changes (page {page.current_page})",
        show_lines=False,
    )
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Diff", justify="right", style="dim")
    table.add_column("URL", style="dim")

    for item in page.diffs:
        lines = item.diff.count("\n")
        table.add_row(item.id, item.description, f"{lines} lines", item.url or "—")
    return table
