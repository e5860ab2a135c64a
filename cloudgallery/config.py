"""Paths, endpoints and tunables, plus log file setup."""

import logging
import os
from pathlib import Path

APP_DIR = Path.home() / ".cloudgallery"

ENV_PATH = Path(os.environ.get("CLOUDGALLERY_ENV_FILE", APP_DIR / ".env"))
LOG_PATH = Path(os.environ.get("CLOUDGALLERY_LOG_FILE", APP_DIR / "cloudgallery.log"))

# Must match a redirect URI registered with the provider app.
REDIRECT_URI = os.environ.get("CLOUDGALLERY_REDIRECT_URI", "http://localhost:3000/oauth/")

LISTING_LIMIT = 2000
PAGE_SIZE = 50
HTTP_TIMEOUT = 30

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, log_path: Path | None = None) -> None:
    """Send log records to a file; the terminal belongs to the UI."""
    path = log_path or LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        filename=str(path),
        level=level,
        format=LOG_FORMAT,
        encoding="utf-8",
    )
    # The Dropbox SDK and urllib3 are chatty at INFO.
    logging.getLogger("dropbox").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
