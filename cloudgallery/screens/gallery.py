"""Newest-first gallery pages over the merged photo index."""

import asyncio

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import Button, Footer, Label, Static

from cloudgallery import config
from cloudgallery.cloud.manager import ProviderManagerError
from cloudgallery.cloud.provider import FileRecord
from cloudgallery.errors import ErrorCode, app_error
from cloudgallery.gallery import has_more
from cloudgallery.widgets.app_header import AppHeader
from cloudgallery.widgets.record_table import RecordTable


def _format_size(size: int) -> str:
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


class GalleryScreen(Screen):
    BINDINGS = [
        ("n", "newer", "Newer"),
        ("o", "older", "Older"),
        ("t", "thumbnail", "Thumbnail"),
        ("escape", "go_back", "Back"),
    ]

    CSS = """
    GalleryScreen {
        layout: vertical;
    }
    #gallery-section {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
        margin: 0 2;
    }
    #page-label {
        margin: 0;
    }
    #thumb-label {
        color: $success;
    }
    #gallery-actions {
        height: auto;
    }
    #gallery-actions Button {
        margin: 0 1;
    }
    """

    def __init__(self, page_size: int = config.PAGE_SIZE, **kwargs) -> None:
        super().__init__(**kwargs)
        self.page_size = page_size
        self.offset = 0
        self._page: list[FileRecord] = []

    def compose(self) -> ComposeResult:
        yield AppHeader("Gallery")
        with Vertical(id="gallery-section"):
            yield Static("Photos, newest first", markup=False)
            yield Label("", id="page-label")
            yield RecordTable(id="photo-table")
            yield Label("", id="thumb-label")
            with Horizontal(id="gallery-actions"):
                yield Button("Newer", id="newer-btn")
                yield Button("Older", id="older-btn")
                yield Button("Thumbnail", id="thumb-btn", variant="primary")
                yield Button("Back", id="back-btn")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#photo-table", RecordTable)
        table.add_columns("Date", "Name", "Provider", "Size")
        self.load_page()

    def on_screen_resume(self) -> None:
        # Columns are added on mount; resume can arrive first on the initial push.
        if self.query_one("#photo-table", RecordTable).columns:
            self.load_page()

    def load_page(self) -> None:
        thumbnails = self.app.thumbnails
        total = len(thumbnails)
        if self.offset >= total:
            self.offset = max(0, total - self.page_size)
        self._page = thumbnails.get_page(self.offset, self.page_size)

        table = self.query_one("#photo-table", RecordTable)
        table.clear()
        for pos, record in enumerate(self._page):
            table.add_row(
                record.date_taken.strftime("%Y-%m-%d %H:%M"),
                record.name,
                f"{record.provider_type} #{record.instance_index}",
                _format_size(record.size),
                key=str(pos),
            )

        if self._page:
            first = self.offset + 1
            last = self.offset + len(self._page)
            self.query_one("#page-label", Label).update(f"{first}-{last} of {total}")
        else:
            self.query_one("#page-label", Label).update("No photos yet. Link an account first.")
        self.query_one("#newer-btn", Button).disabled = self.offset == 0
        self.query_one("#older-btn", Button).disabled = not has_more(self._page, self.page_size)

    def _selected_record(self) -> FileRecord | None:
        key = self.query_one("#photo-table", RecordTable).selected_key()
        if key is None:
            return None
        return self._page[int(key)]

    @on(Button.Pressed, "#newer-btn")
    def action_newer(self) -> None:
        if self.offset == 0:
            return
        self.offset = max(0, self.offset - self.page_size)
        self.load_page()

    @on(Button.Pressed, "#older-btn")
    def action_older(self) -> None:
        if not has_more(self._page, self.page_size):
            return
        self.offset += self.page_size
        self.load_page()

    @on(Button.Pressed, "#thumb-btn")
    def action_thumbnail(self) -> None:
        record = self._selected_record()
        if record is not None:
            self.fetch_thumbnail(record)

    @work(exclusive=True)
    async def fetch_thumbnail(self, record: FileRecord) -> None:
        label = self.query_one("#thumb-label", Label)
        try:
            provider = self.app.manager.get_provider(record.provider_type, record.instance_index)
        except ProviderManagerError:
            app_error(self, ErrorCode.LOOKUP)
            return
        result = await asyncio.to_thread(provider.get_thumbnail, record.path)
        if result.success:
            label.update(f"{record.name}: {result.mime_type} thumbnail, {len(result.data)} bytes")
        else:
            label.update(f"{record.name}: thumbnail unavailable ({result.error})")

    @on(Button.Pressed, "#back-btn")
    def action_go_back(self) -> None:
        self.app.pop_screen()
