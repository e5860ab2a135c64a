"""Dropbox cloud storage provider implementation."""

import logging
from urllib.parse import urlencode

import dropbox
import requests
from dropbox.exceptions import ApiError, AuthError
from dropbox.files import FileMetadata, PathOrLink, ThumbnailFormat, ThumbnailMode, ThumbnailSize

from cloudgallery import config

from .provider import (
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
    TokenExpiredError,
    TokenResponse,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "dropbox"

AUTHORIZE_URL = "https://www.dropbox.com/oauth2/authorize"
TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"

_EXCHANGE_MESSAGES = {
    "invalid_grant": "The authorization code has expired or been used already. Please try again.",
    "redirect_uri_mismatch": "Redirect URI mismatch. Make sure the redirect URI is registered.",
}

_REFRESH_MESSAGES = {
    "invalid_grant": "Refresh token is invalid or expired. Re-authentication required.",
    "invalid_client": "Invalid client credentials.",
}

_THUMBNAIL_MESSAGES = (
    ("not_found", "File not found"),
    ("unsupported_extension", "Thumbnail not available for this file type"),
    ("unsupported_image", "Thumbnail not available for this file type"),
    ("conversion_error", "Failed to generate thumbnail for this file"),
)


def _token_error(response: requests.Response) -> tuple[str, str]:
    """Return (error, error_description) from an OAuth error response."""
    try:
        body = response.json()
    except ValueError:
        return "", response.text
    if not isinstance(body, dict):
        return "", response.text
    error = body.get("error", "")
    if isinstance(error, dict):
        error = error.get(".tag", "")
    description = body.get("error_description", "")
    if "redirect_uri" in description and error in ("invalid_request", "invalid_grant"):
        error = "redirect_uri_mismatch"
    return error, description


def _token_payload(response: requests.Response) -> dict | None:
    """The JSON body of a successful token response, or None if it carries no access token."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict) or not body.get("access_token"):
        return None
    return body


class DropboxProvider(CloudProvider):
    def __init__(self) -> None:
        super().__init__()
        self._client: dropbox.Dropbox | None = None
        self._authenticated = False

    def provider_type(self) -> str:
        return PROVIDER_NAME

    def get_env_variable_patterns(self, instance_index: int) -> EnvVariablePatterns:
        return EnvVariablePatterns(
            app_key=f"DROPBOX_APP_KEY_{instance_index}",
            app_secret=f"DROPBOX_APP_SECRET_{instance_index}",
            access_token=f"DROPBOX_ACCESS_TOKEN_{instance_index}",
            refresh_token=f"DROPBOX_REFRESH_TOKEN_{instance_index}",
        )

    # --- Auth ---

    def get_authorization_url(self, app_key: str, redirect_uri: str, state: str) -> str:
        query = urlencode({
            "client_id": app_key,
            "response_type": "code",
            "token_access_type": "offline",
            "redirect_uri": redirect_uri,
            "state": state,
        })
        return f"{AUTHORIZE_URL}?{query}"

    def exchange_code_for_token(
        self, code: str, app_key: str, app_secret: str, redirect_uri: str
    ) -> TokenResponse:
        try:
            response = requests.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "grant_type": "authorization_code",
                    "client_id": app_key,
                    "client_secret": app_secret,
                    "redirect_uri": redirect_uri,
                },
                timeout=config.HTTP_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise ExternalAuthError(f"Failed to exchange code for tokens: {exc}") from exc

        if response.status_code != 200:
            error, description = _token_error(response)
            message = _EXCHANGE_MESSAGES.get(error, "Failed to exchange code for tokens")
            raise ExternalAuthError(message, reason=error, details=description)

        data = _token_payload(response)
        if data is None:
            raise ExternalAuthError(
                "Failed to exchange code for tokens",
                details="Token response did not include an access token",
            )
        return TokenResponse(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
        )

    def authenticate(self, credentials: Credentials) -> bool:
        if not (
            credentials.app_key
            and credentials.app_secret
            and credentials.access_token
            and credentials.refresh_token
        ):
            logger.info("Missing authentication credentials for Dropbox provider")
            self._authenticated = False
            return False
        try:
            self._client = self._build_client(credentials)
        except Exception:
            logger.exception("Failed to authenticate Dropbox provider")
            self._client = None
            self._authenticated = False
            return False
        self._authenticated = True
        return True

    def refresh_token(self, credentials: Credentials, instance_index: int) -> RefreshTokenResult:
        if not (credentials.app_key and credentials.app_secret and credentials.refresh_token):
            return RefreshTokenResult(
                success=False,
                error="Missing required credentials for token refresh",
            )
        try:
            response = requests.post(
                TOKEN_URL,
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": credentials.refresh_token,
                    "client_id": credentials.app_key,
                    "client_secret": credentials.app_secret,
                },
                timeout=config.HTTP_TIMEOUT,
            )
        except requests.RequestException as exc:
            logger.exception("Failed to refresh Dropbox access token for instance %d", instance_index)
            return RefreshTokenResult(
                success=False,
                error="Failed to refresh access token",
                details=str(exc),
            )

        if response.status_code != 200:
            error, description = _token_error(response)
            logger.warning(
                "Dropbox refused token refresh for instance %d: %s", instance_index, error or response.status_code
            )
            return RefreshTokenResult(
                success=False,
                error=_REFRESH_MESSAGES.get(error, "Failed to refresh access token"),
                error_code=error,
                details=description,
            )

        data = _token_payload(response)
        if data is None:
            logger.warning("Dropbox token refresh for instance %d returned no access token", instance_index)
            return RefreshTokenResult(
                success=False,
                error="Failed to refresh access token",
                details="Token response did not include an access token",
            )
        access_token = data["access_token"]
        refresh_token = data.get("refresh_token") or credentials.refresh_token
        self._client = self._build_client(Credentials(
            app_key=credentials.app_key,
            app_secret=credentials.app_secret,
            access_token=access_token,
            refresh_token=refresh_token,
        ))
        self._authenticated = True
        logger.info("Refreshed Dropbox access token for instance %d", instance_index)
        return RefreshTokenResult(
            success=True,
            access_token=access_token,
            refresh_token=refresh_token,
            message="Access token refreshed successfully",
        )

    def is_authenticated(self) -> bool:
        return self._authenticated

    def get_account_info(self) -> CloudAccountInfo:
        client = self._get_client()
        try:
            acct = client.users_get_current_account()
        except AuthError as exc:
            raise TokenExpiredError(f"Dropbox rejected the access token: {exc}") from exc
        except Exception as exc:
            raise CloudProviderError(f"Failed to get Dropbox account info: {exc}") from exc
        return CloudAccountInfo(
            account_id=acct.account_id,
            name=acct.name.display_name,
            email=acct.email,
        )

    # --- File operations ---

    def list_files(
        self,
        folder_path: str = "",
        recursive: bool = False,
        limit: int = 2000,
        instance_index: int = 0,
    ) -> list[FileRecord]:
        client = self._get_client()
        try:
            result = client.files_list_folder(
                folder_path,
                recursive=recursive,
                include_mounted_folders=True,
                limit=limit,
            )
            entries = list(result.entries)
            while result.has_more:
                result = client.files_list_folder_continue(result.cursor)
                entries.extend(result.entries)
        except AuthError as exc:
            raise TokenExpiredError(f"Dropbox rejected the access token: {exc}") from exc
        except Exception as exc:
            raise CloudProviderError(f"Failed to list files from Dropbox: {exc}") from exc

        records = []
        for entry in entries:
            if not isinstance(entry, FileMetadata):
                continue
            records.append(FileRecord(
                id=entry.id,
                name=entry.name,
                path=entry.path_display,
                date_taken=entry.client_modified,
                size=entry.size,
                provider_type=PROVIDER_NAME,
                instance_index=instance_index,
                hash=entry.content_hash,
            ))
        return records

    def get_thumbnail(self, path: str) -> ThumbnailResult:
        if not self._authenticated or self._client is None:
            return ThumbnailResult(success=False, error="Provider not authenticated")
        try:
            _, response = self._client.files_get_thumbnail_v2(
                PathOrLink.path(path),
                format=ThumbnailFormat.jpeg,
                size=ThumbnailSize.w256h256,
                mode=ThumbnailMode.strict,
            )
            data = response.content
        except ApiError as exc:
            logger.warning("Failed to get thumbnail for %s: %s", path, exc)
            text = str(exc)
            for tag, message in _THUMBNAIL_MESSAGES:
                if tag in text:
                    return ThumbnailResult(success=False, error=message)
            return ThumbnailResult(success=False, error="Failed to get thumbnail")
        except Exception as exc:
            logger.warning("Failed to get thumbnail for %s: %s", path, exc)
            return ThumbnailResult(success=False, error=str(exc) or "Failed to get thumbnail")

        if not data:
            return ThumbnailResult(success=False, error="No thumbnail data received from Dropbox")
        return ThumbnailResult(success=True, data=data, mime_type="image/jpeg")

    def get_storage(self) -> int:
        client = self._get_client()
        try:
            usage = client.users_get_space_usage()
        except Exception as exc:
            raise CloudProviderError(f"Failed to fetch Dropbox storage info: {exc}") from exc
        allocated = 0
        if usage.allocation.is_individual():
            allocated = usage.allocation.get_individual().allocated
        elif usage.allocation.is_team():
            allocated = usage.allocation.get_team().allocated
        return allocated - usage.used

    def get_media_info(self, path: str) -> MediaInfo:
        client = self._get_client()
        try:
            metadata = client.files_get_metadata(path, include_media_info=True)
        except Exception as exc:
            raise CloudProviderError(f"Failed to get media info from Dropbox: {exc}") from exc
        return MediaInfo(metadata=metadata, media_info=getattr(metadata, "media_info", None))

    def download_file(self, remote_path: str, local_path: str) -> None:
        client = self._get_client()
        try:
            client.files_download_to_file(local_path, remote_path)
        except Exception as exc:
            raise CloudProviderError(f"Download failed: {exc}") from exc

    # --- Internal ---

    def _get_client(self) -> dropbox.Dropbox:
        if not self._authenticated or self._client is None:
            raise CloudProviderError("Not authenticated with Dropbox")
        return self._client

    @staticmethod
    def _build_client(credentials: Credentials) -> dropbox.Dropbox:
        return dropbox.Dropbox(
            oauth2_access_token=credentials.access_token,
            oauth2_refresh_token=credentials.refresh_token,
            app_key=credentials.app_key,
            app_secret=credentials.app_secret,
            timeout=config.HTTP_TIMEOUT,
        )
