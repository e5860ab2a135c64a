"""Custom application header widget with a stacked-frames logo."""

from rich.table import Table
from rich.text import Text
from textual.widget import Widget

from cloudgallery import __version__

FRAMES_ART = " ┌───┐\n┌┤ ▲ │\n│└───┘"


class AppHeader(Widget):
    """App-wide header showing the logo, app name, version and a subtitle."""

    DEFAULT_CSS = """
    AppHeader {
        height: 3;
        background: $primary;
        color: $text;
        dock: top;
        padding: 0 1;
    }
    """

    def __init__(self, subtitle: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.subtitle = subtitle

    def render(self) -> Table:
        grid = Table.grid(expand=True)
        grid.add_column(width=8, no_wrap=True)
        grid.add_column(ratio=1)
        grid.add_column(width=10, no_wrap=True)

        logo = Text(FRAMES_ART, style="bold")
        heading = "Cloud Gallery" + (f" · {self.subtitle}" if self.subtitle else "")
        title = Text(f"\n{heading}", style="bold", justify="center")
        version = Text(f"\nv{__version__}", justify="right")

        grid.add_row(logo, title, version)
        return grid
