"""Main Textual App class with screen routing."""

import asyncio
import logging

from textual import work
from textual.app import App

from cloudgallery import config
from cloudgallery.cloud.env_store import EnvFileStore
from cloudgallery.cloud.manager import ProviderManager
from cloudgallery.cloud.oauth import OAuthCoordinator
from cloudgallery.cloud.thumbnails import ThumbnailIndex
from cloudgallery.errors import ErrorCode, app_error
from cloudgallery.screens.gallery import GalleryScreen
from cloudgallery.screens.providers import ProvidersScreen

logger = logging.getLogger(__name__)


class CloudGalleryApp(App):
    TITLE = "cloudgallery"
    CSS = """
    Screen {
        background: $surface;
    }
    """

    SCREENS = {
        "providers": ProvidersScreen,
        "gallery": GalleryScreen,
    }

    def __init__(self, store: EnvFileStore | None = None, manager: ProviderManager | None = None):
        super().__init__()
        self._startup_error = False
        self.store = store or EnvFileStore(config.ENV_PATH)
        try:
            self.store.create()
        except OSError:
            logger.exception("Could not create %s", self.store.path)
            self._startup_error = True
        self.thumbnails = manager.thumbnails if manager else ThumbnailIndex()
        self.manager = manager or ProviderManager(
            self.store, self.thumbnails, listing_limit=config.LISTING_LIMIT
        )
        self.oauth = OAuthCoordinator(self.manager, config.REDIRECT_URI)

    def on_mount(self) -> None:
        self.push_screen("providers")
        if self._startup_error:
            app_error(self, ErrorCode.IO_CREDENTIALS)
        else:
            self.load_providers()

    @work(exclusive=True)
    async def load_providers(self) -> None:
        try:
            await asyncio.to_thread(self.manager.initialize)
        except OSError:
            logger.exception("Failed to read %s", self.store.path)
            app_error(self, ErrorCode.IO_CREDENTIALS)
            return
        if isinstance(self.screen, ProvidersScreen):
            self.screen.refresh_providers()

    def _handle_exception(self, error: Exception) -> None:
        """Best-effort safety net: show toast instead of crashing.

        Overrides Textual's private _handle_exception.
        """
        logger.exception("Unhandled error", exc_info=error)
        try:
            app_error(self, ErrorCode.APP_UNEXPECTED)
        except Exception:
            super()._handle_exception(error)
