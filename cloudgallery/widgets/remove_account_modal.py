"""Confirmation dialog for removing a linked account."""

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Static


def index_shifts(instance_index: int, instance_count: int) -> list[tuple[int, int]]:
    """(old, new) index pairs for the accounts renumbered by a removal."""
    return [(old, old - 1) for old in range(instance_index + 1, instance_count)]


class RemoveAccountModal(ModalScreen[bool]):
    """Names the account being removed and the accounts that move down.

    Dismisses with True when the removal is confirmed.
    """

    CSS = """
    RemoveAccountModal {
        align: center middle;
    }
    #remove-box {
        width: 60;
        height: auto;
        border: heavy $error;
        padding: 1 2;
        background: $surface;
    }
    #remove-shifts {
        margin: 1 0 0 0;
        color: $warning;
    }
    #remove-buttons {
        height: auto;
        margin: 1 0 0 0;
    }
    #remove-buttons Button {
        margin: 0 1;
    }
    """

    def __init__(self, provider_type: str, instance_index: int, instance_count: int, account: str = "") -> None:
        super().__init__()
        self.provider_type = provider_type
        self.instance_index = instance_index
        self.account = account
        self.shifts = index_shifts(instance_index, instance_count)

    def shift_text(self) -> str:
        if not self.shifts:
            return "No other accounts are renumbered."
        name = self.provider_type.title()
        return "\n".join(f"{name} #{old} becomes #{new}" for old, new in self.shifts)

    def compose(self) -> ComposeResult:
        title = f"Remove {self.provider_type.title()} account #{self.instance_index}?"
        with Vertical(id="remove-box"):
            yield Static(title, id="remove-title", markup=False)
            if self.account:
                yield Static(self.account, id="remove-account", markup=False)
            yield Static(
                "Its app key, app secret and tokens are deleted from the env file "
                "and its photos leave the gallery.",
                markup=False,
            )
            yield Static(self.shift_text(), id="remove-shifts", markup=False)
            with Horizontal(id="remove-buttons"):
                yield Button("Remove", id="confirm-btn", variant="error")
                yield Button("Cancel", id="cancel-btn")

    @on(Button.Pressed, "#confirm-btn")
    def confirm(self) -> None:
        self.dismiss(True)

    @on(Button.Pressed, "#cancel-btn")
    def cancel(self) -> None:
        self.dismiss(False)
