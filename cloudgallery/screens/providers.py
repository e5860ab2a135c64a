"""Linked account list with add, authorize, refresh, sync and remove actions."""

import asyncio
import webbrowser

from textual import on, work
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, Footer, Input, Label, Select, Static

from cloudgallery import gallery
from cloudgallery.cloud.manager import PROVIDER_REGISTRY, ProviderManagerError, UnsupportedProviderType
from cloudgallery.cloud.oauth import (
    InvalidOAuthState,
    MissingAppCredentialsError,
    decode_state,
    encode_state,
    parse_callback,
)
from cloudgallery.cloud.provider import ExternalAuthError
from cloudgallery.errors import ErrorCode, app_error
from cloudgallery.widgets.app_header import AppHeader
from cloudgallery.widgets.record_table import RecordTable
from cloudgallery.widgets.remove_account_modal import RemoveAccountModal


# ---------------------------------------------------------------------------
# Modals
# ---------------------------------------------------------------------------

class AddProviderModal(ModalScreen[dict | None]):
    """Collect provider type, app key and app secret for a new account."""

    CSS = """
    AddProviderModal {
        align: center middle;
    }
    #form-box {
        width: 60;
        height: auto;
        border: heavy $accent;
        padding: 1 2;
        background: $surface;
    }
    #form-box Label {
        margin: 1 0 0 0;
    }
    .form-buttons {
        height: auto;
        margin: 1 0 0 0;
    }
    .form-buttons Button {
        margin: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        types = [(name.title(), name) for name in sorted(PROVIDER_REGISTRY)]
        with Vertical(id="form-box"):
            yield Static("Add Account", markup=False)
            yield Label("Provider")
            yield Select(types, id="provider-type", value=types[0][1], allow_blank=False)
            yield Label("App Key")
            yield Input(id="app-key")
            yield Label("App Secret")
            yield Input(id="app-secret", password=True)
            with Horizontal(classes="form-buttons"):
                yield Button("Add", id="save-btn", variant="primary")
                yield Button("Cancel", id="cancel-btn")

    @on(Button.Pressed, "#save-btn")
    def save(self) -> None:
        provider_type = self.query_one("#provider-type", Select).value
        app_key = self.query_one("#app-key", Input).value.strip()
        app_secret = self.query_one("#app-secret", Input).value.strip()
        if not app_key or not app_secret:
            app_error(self, ErrorCode.VAL_REQUEST, detail="App key and app secret are required.")
            return
        self.dismiss({
            "providerType": provider_type,
            "credentials": {"appKey": app_key, "appSecret": app_secret},
        })

    @on(Button.Pressed, "#cancel-btn")
    def cancel(self) -> None:
        self.dismiss(None)


class CloudAuthModal(ModalScreen[str | None]):
    """Prompt user to paste the redirect URL (or just the code) after authorizing."""

    CSS = """
    CloudAuthModal {
        align: center middle;
    }
    #auth-box {
        width: 64;
        height: auto;
        max-height: 100%;
        border: heavy $accent;
        padding: 0 2;
        background: $surface;
    }
    #auth-box Label {
        width: 100%;
        margin: 1 0 0 0;
    }
    .form-buttons {
        height: auto;
        margin: 1 0 0 0;
    }
    .form-buttons Button {
        margin: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical(id="auth-box"):
            yield Static("Link Cloud Account", markup=False)
            yield Label(
                "A browser window has been opened. Sign in and allow access, "
                "then paste the address you were redirected to (or the code) below."
            )
            yield Label("Redirect URL or Code")
            yield Input(id="auth-code", placeholder="Paste here")
            with Horizontal(classes="form-buttons"):
                yield Button("Submit", id="submit-btn", variant="primary")
                yield Button("Cancel", id="cancel-btn")

    @on(Button.Pressed, "#submit-btn")
    def submit(self) -> None:
        code = self.query_one("#auth-code", Input).value.strip()
        if code:
            self.dismiss(code)

    @on(Button.Pressed, "#cancel-btn")
    def cancel(self) -> None:
        self.dismiss(None)


# ---------------------------------------------------------------------------
# Providers Screen
# ---------------------------------------------------------------------------

class ProvidersScreen(Screen):
    BINDINGS = [
        ("a", "add_provider", "Add"),
        ("r", "reload", "Reload"),
        ("p", "open_gallery", "Gallery"),
    ]

    CSS = """
    ProvidersScreen {
        layout: vertical;
    }
    #providers-section {
        height: 1fr;
        border: solid $accent;
        padding: 0 1;
        margin: 0 2;
    }
    #status-label {
        margin: 0;
        color: $success;
    }
    #provider-actions {
        height: auto;
    }
    #provider-actions Button {
        margin: 0 1;
    }
    """

    def compose(self) -> ComposeResult:
        yield AppHeader("Accounts")
        with Vertical(id="providers-section"):
            yield Static("Linked Accounts", markup=False)
            yield Label("", id="status-label")
            yield RecordTable(id="provider-table")
            with Horizontal(id="provider-actions"):
                yield Button("Add", id="add-btn", variant="primary")
                yield Button("Authorize", id="authorize-btn")
                yield Button("Refresh Token", id="refresh-btn")
                yield Button("Sync", id="sync-btn")
                yield Button("Remove", id="remove-btn", variant="error")
                yield Button("Gallery", id="gallery-btn")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#provider-table", RecordTable)
        table.add_columns("Type", "Index", "State", "Account")
        self._accounts: dict[str, str] = {}
        self.refresh_providers()

    # --- Helpers ---

    @work(exclusive=True, group="providers")
    async def refresh_providers(self) -> None:
        table = self.query_one("#provider-table", RecordTable)
        try:
            rows = await asyncio.to_thread(gallery.list_providers, self.app.manager)
        except Exception:
            app_error(self, ErrorCode.APP_UNEXPECTED)
            return
        table.clear()
        self._accounts = {}
        for row in rows:
            account = row.get("accountInfo")
            key = encode_state(row["type"], row["instanceIndex"])
            label = f"{account['name']} <{account['email']}>" if account else ""
            self._accounts[key] = label
            table.add_row(
                row["type"].title(),
                str(row["instanceIndex"]),
                row["tokenState"].replace("_", " "),
                label,
                key=key,
            )
        if not rows:
            self._set_status("No accounts yet. Press Add to link one.")

    def _selected(self) -> tuple[str, int] | None:
        key = self.query_one("#provider-table", RecordTable).selected_key()
        if key is None:
            self._set_status("Select an account first")
            return None
        return decode_state(key)

    def _set_status(self, msg: str) -> None:
        self.query_one("#status-label", Label).update(msg)

    # --- Actions ---

    @on(Button.Pressed, "#add-btn")
    def action_add_provider(self) -> None:
        def on_result(body: dict | None) -> None:
            if body:
                self._add(body)
        self.app.push_screen(AddProviderModal(), on_result)

    @work(exclusive=True, group="mutate")
    async def _add(self, body: dict) -> None:
        try:
            result = await asyncio.to_thread(gallery.add_provider, self.app.manager, body)
        except gallery.RequestError:
            app_error(self, ErrorCode.VAL_REQUEST)
            return
        except UnsupportedProviderType:
            app_error(self, ErrorCode.CFG_PROVIDER)
            return
        except OSError:
            app_error(self, ErrorCode.IO_CREDENTIALS)
            return
        self._set_status(
            f"Added {result['providerType']} account #{result['instanceIndex']}. "
            "Authorize it to load photos."
        )
        self.refresh_providers()

    @on(Button.Pressed, "#authorize-btn")
    def authorize(self) -> None:
        selected = self._selected()
        if selected is None:
            return
        provider_type, index = selected
        try:
            url = self.app.oauth.authorize(provider_type, index)
        except MissingAppCredentialsError as exc:
            app_error(self, ErrorCode.CFG_APP_KEYS, detail=str(exc))
            return
        except ProviderManagerError:
            app_error(self, ErrorCode.LOOKUP)
            return
        webbrowser.open(url)
        expected_state = encode_state(provider_type, index)

        def on_code(text: str | None) -> None:
            if text is None:
                return
            code, state = parse_callback(text)
            self._finish_authorization(code, state or expected_state)

        self.app.push_screen(CloudAuthModal(), on_code)

    @work(exclusive=True, group="mutate")
    async def _finish_authorization(self, code: str, state: str) -> None:
        self._set_status("Linking account...")
        try:
            await asyncio.to_thread(self.app.oauth.handle_callback, code, state)
        except ExternalAuthError as exc:
            app_error(self, ErrorCode.AUTH_EXCHANGE, detail=str(exc))
        except MissingAppCredentialsError as exc:
            app_error(self, ErrorCode.CFG_APP_KEYS, detail=str(exc))
        except (InvalidOAuthState, ProviderManagerError):
            app_error(self, ErrorCode.AUTH_STATE)
        except OSError:
            app_error(self, ErrorCode.IO_CREDENTIALS)
        else:
            self._set_status("Account linked successfully")
        self.refresh_providers()

    @on(Button.Pressed, "#refresh-btn")
    def refresh_token(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._refresh(*selected)

    @work(exclusive=True, group="mutate")
    async def _refresh(self, provider_type: str, index: int) -> None:
        try:
            result = await asyncio.to_thread(self.app.oauth.refresh, provider_type, index)
        except MissingAppCredentialsError as exc:
            app_error(self, ErrorCode.CFG_APP_KEYS, detail=str(exc))
            return
        except OSError:
            app_error(self, ErrorCode.IO_CREDENTIALS)
            return
        if result.success:
            self._set_status(result.message)
        elif result.reauth_required:
            app_error(self, ErrorCode.AUTH_REAUTH, detail=result.error)
        else:
            app_error(self, ErrorCode.AUTH_REFRESH, detail=result.error)
        self.refresh_providers()

    @on(Button.Pressed, "#sync-btn")
    def sync(self) -> None:
        selected = self._selected()
        if selected is not None:
            self._sync(*selected)

    @work(exclusive=True, group="mutate")
    async def _sync(self, provider_type: str, index: int) -> None:
        self._set_status("Listing files...")
        try:
            added = await asyncio.to_thread(self.app.manager.sync_provider, provider_type, index)
        except ProviderManagerError:
            app_error(self, ErrorCode.LOOKUP)
            return
        self._set_status(f"{added} photo(s) indexed from {provider_type} #{index}")
        self.refresh_providers()

    @on(Button.Pressed, "#remove-btn")
    def remove(self) -> None:
        selected = self._selected()
        if selected is None:
            return
        provider_type, index = selected

        def on_confirm(confirmed: bool) -> None:
            if confirmed:
                self._remove(provider_type, index)

        modal = RemoveAccountModal(
            provider_type,
            index,
            self.app.manager.instance_count(provider_type),
            account=self._accounts.get(encode_state(provider_type, index), ""),
        )
        self.app.push_screen(modal, on_confirm)

    @work(exclusive=True, group="mutate")
    async def _remove(self, provider_type: str, index: int) -> None:
        try:
            await asyncio.to_thread(
                gallery.remove_provider,
                self.app.manager,
                {"providerType": provider_type, "instanceIndex": index},
            )
        except ProviderManagerError:
            app_error(self, ErrorCode.LOOKUP)
            return
        except OSError:
            app_error(self, ErrorCode.IO_CREDENTIALS)
            return
        self._set_status(f"Removed {provider_type} account #{index}")
        self.refresh_providers()

    def action_reload(self) -> None:
        self.refresh_providers()

    @on(Button.Pressed, "#gallery-btn")
    def action_open_gallery(self) -> None:
        self.app.push_screen("gallery")
