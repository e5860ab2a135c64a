"""Shared fixtures: a temporary env file and an in-memory provider backend."""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from cloudgallery.cloud.env_store import EnvFileStore
from cloudgallery.cloud.manager import ProviderManager
from cloudgallery.cloud.provider import (
    CloudAccountInfo,
    CloudProvider,
    CloudProviderError,
    Credentials,
    EnvVariablePatterns,
    ExternalAuthError,
    FileRecord,
    MediaInfo,
    RefreshTokenResult,
    ThumbnailResult,
    TokenResponse,
)
from cloudgallery.cloud.thumbnails import ThumbnailIndex

BASE = datetime(2024, 1, 1, 12, 0, 0)


class FakeProvider(CloudProvider):
    """Stores nothing remotely; listings are looked up by app key."""

    # app key -> list of (name, day offset)
    listings: dict[str, list[tuple[str, int]]] = {}

    def __init__(self) -> None:
        super().__init__()
        self.credentials: Credentials | None = None
        self.list_error: Exception | None = None
        self.account_error: Exception | None = None
        self.refresh_result: RefreshTokenResult | None = None

    def provider_type(self) -> str:
        return "dropbox"

    def get_env_variable_patterns(self, instance_index: int) -> EnvVariablePatterns:
        return EnvVariablePatterns(
            app_key=f"DROPBOX_APP_KEY_{instance_index}",
            app_secret=f"DROPBOX_APP_SECRET_{instance_index}",
            access_token=f"DROPBOX_ACCESS_TOKEN_{instance_index}",
            refresh_token=f"DROPBOX_REFRESH_TOKEN_{instance_index}",
        )

    def get_authorization_url(self, app_key: str, redirect_uri: str, state: str) -> str:
        return f"https://auth.example/authorize?client_id={app_key}&state={state}"

    def exchange_code_for_token(self, code, app_key, app_secret, redirect_uri) -> TokenResponse:
        if code == "bad":
            raise ExternalAuthError("Code rejected", reason="invalid_grant")
        return TokenResponse(access_token=f"access-{code}", refresh_token=f"refresh-{code}")

    def authenticate(self, credentials: Credentials) -> bool:
        if not (credentials.app_key and credentials.app_secret
                and credentials.access_token and credentials.refresh_token):
            return False
        self.credentials = credentials
        return True

    def refresh_token(self, credentials: Credentials, instance_index: int) -> RefreshTokenResult:
        if self.refresh_result is not None:
            return self.refresh_result
        return RefreshTokenResult(
            success=True,
            access_token="access-refreshed",
            refresh_token=credentials.refresh_token,
            message="Access token refreshed successfully",
        )

    def is_authenticated(self) -> bool:
        return self.credentials is not None

    def get_account_info(self) -> CloudAccountInfo:
        if self.account_error:
            raise self.account_error
        key = self.credentials.app_key
        return CloudAccountInfo(account_id=f"id-{key}", name=f"User {key}", email=f"{key}@example.com")

    def list_files(self, folder_path="", recursive=False, limit=2000, instance_index=0) -> list[FileRecord]:
        if self.list_error:
            raise self.list_error
        if self.credentials is None:
            raise CloudProviderError("Not authenticated")
        return [
            FileRecord(
                id=f"id:{name}",
                name=name,
                path=f"/{name}",
                date_taken=BASE + timedelta(days=day),
                size=100,
                provider_type="dropbox",
                instance_index=instance_index,
            )
            for name, day in self.listings.get(self.credentials.app_key, [])
        ]

    def get_thumbnail(self, path: str) -> ThumbnailResult:
        if "missing" in path:
            return ThumbnailResult(success=False, error="File not found")
        return ThumbnailResult(success=True, data=b"jpeg" + path.encode(), mime_type="image/jpeg")

    def get_storage(self) -> int:
        return 0

    def get_media_info(self, path: str) -> MediaInfo:
        return MediaInfo()

    def download_file(self, remote_path: str, local_path: str) -> None:
        Path(local_path).write_bytes(b"")


@pytest.fixture
def fake_provider_cls():
    FakeProvider.listings = {}
    yield FakeProvider
    FakeProvider.listings = {}


@pytest.fixture
def store():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = EnvFileStore(Path(tmpdir) / ".env")
        store.create()
        yield store


@pytest.fixture
def thumbnails():
    return ThumbnailIndex()


@pytest.fixture
def manager(store, thumbnails, fake_provider_cls):
    return ProviderManager(store, thumbnails, registry={"dropbox": fake_provider_cls})


@pytest.fixture
def seed(store):
    """Write complete credentials for instances named by their app keys."""
    def _seed(*app_keys: str) -> None:
        lines = []
        for index, key in enumerate(app_keys):
            lines += [
                f"DROPBOX_APP_KEY_{index}={key}",
                f"DROPBOX_APP_SECRET_{index}=secret-{key}",
                f"DROPBOX_ACCESS_TOKEN_{index}=access-{key}",
                f"DROPBOX_REFRESH_TOKEN_{index}=refresh-{key}",
            ]
        store.write_lines(lines)
    return _seed
