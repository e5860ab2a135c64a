"""Row-cursor data table used by the provider and gallery screens."""

from textual.binding import Binding
from textual.widgets import DataTable


class RecordTable(DataTable):
    """A DataTable with row cursor, zebra stripes and vi-style movement."""

    BINDINGS = [
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("g", "scroll_home", "Top", show=False),
        Binding("G", "scroll_end", "Bottom", show=False),
    ]

    DEFAULT_CSS = """
    RecordTable {
        height: 1fr;
    }
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, cursor_type="row", zebra_stripes=True, **kwargs)

    def action_scroll_home(self) -> None:
        if self.row_count > 0:
            self.move_cursor(row=0)

    def action_scroll_end(self) -> None:
        if self.row_count > 0:
            self.move_cursor(row=self.row_count - 1)

    def selected_key(self) -> str | None:
        """Key of the row under the cursor, or None for an empty table."""
        if self.row_count == 0 or self.cursor_row is None:
            return None
        row_key, _ = self.coordinate_to_cell_key(self.cursor_coordinate)
        return row_key.value
