"""Abstract cloud storage provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from datetime import datetime

from .lifecycle import TokenLifecycle

CREDENTIAL_FIELDS = ("app_key", "app_secret", "access_token", "refresh_token")


class CloudProviderError(Exception):
    """Wraps all SDK-specific exceptions from cloud providers."""


class ExternalAuthError(CloudProviderError):
    """The OAuth server rejected a code exchange or a refresh."""

    def __init__(self, message: str, reason: str = "", details: str = "") -> None:
        super().__init__(message)
        self.reason = reason
        self.details = details


class TokenExpiredError(CloudProviderError):
    """The backend rejected the access token."""


@dataclass
class Credentials:
    app_key: str = ""
    app_secret: str = ""
    access_token: str | None = None
    refresh_token: str | None = None


@dataclass
class EnvVariablePatterns:
    """Env file key names for one provider instance, one per credential field."""

    app_key: str
    app_secret: str
    access_token: str
    refresh_token: str

    def as_dict(self) -> dict[str, str]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class TokenResponse:
    access_token: str
    refresh_token: str | None = None


@dataclass
class RefreshTokenResult:
    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    message: str = ""
    error: str = ""
    error_code: str = ""
    details: str = ""

    @property
    def reauth_required(self) -> bool:
        return self.error_code == "invalid_grant"


@dataclass
class CloudAccountInfo:
    account_id: str = ""
    name: str = ""
    email: str = ""


@dataclass
class FileRecord:
    """One remote file in the merged gallery index."""

    id: str
    name: str
    path: str
    date_taken: datetime
    size: int
    provider_type: str
    instance_index: int
    hash: str | None = None


@dataclass
class ThumbnailResult:
    success: bool
    data: bytes | None = None
    mime_type: str = ""
    error: str = ""


@dataclass
class MediaInfo:
    metadata: object = None
    media_info: object = None


class CloudProvider(ABC):
    """Strategy interface for cloud storage backends.

    Every instance carries its own ``lifecycle`` so the token state follows
    the instance when the manager renumbers it.
    """

    def __init__(self) -> None:
        self.lifecycle = TokenLifecycle()

    @abstractmethod
    def provider_type(self) -> str:
        """Registry tag, e.g. ``"dropbox"``."""
        ...

    @abstractmethod
    def get_env_variable_patterns(self, instance_index: int) -> EnvVariablePatterns:
        """Env key names for the instance. Must not depend on instance state."""
        ...

    @abstractmethod
    def get_authorization_url(self, app_key: str, redirect_uri: str, state: str) -> str:
        ...

    @abstractmethod
    def exchange_code_for_token(
        self, code: str, app_key: str, app_secret: str, redirect_uri: str
    ) -> TokenResponse:
        """Trade an authorization code for tokens. Raises ExternalAuthError."""
        ...

    @abstractmethod
    def authenticate(self, credentials: Credentials) -> bool:
        """Build the API client. False (not an error) when fields are missing."""
        ...

    @abstractmethod
    def refresh_token(self, credentials: Credentials, instance_index: int) -> RefreshTokenResult:
        """Obtain a new access token. Expected failures come back in the result."""
        ...

    @abstractmethod
    def is_authenticated(self) -> bool:
        ...

    @abstractmethod
    def get_account_info(self) -> CloudAccountInfo:
        ...

    @abstractmethod
    def list_files(
        self,
        folder_path: str = "",
        recursive: bool = False,
        limit: int = 2000,
        instance_index: int = 0,
    ) -> list[FileRecord]:
        """List every file under ``folder_path``, following pagination."""
        ...

    @abstractmethod
    def get_thumbnail(self, path: str) -> ThumbnailResult:
        """Fetch a thumbnail. Never raises."""
        ...

    @abstractmethod
    def get_storage(self) -> int:
        """Free space in bytes (allocated minus used)."""
        ...

    @abstractmethod
    def get_media_info(self, path: str) -> MediaInfo:
        ...

    @abstractmethod
    def download_file(self, remote_path: str, local_path: str) -> None:
        ...
