"""OAuth authorize / callback / refresh flow on top of the provider manager."""

import logging
from urllib.parse import parse_qs, urlparse

from .lifecycle import TokenState
from .manager import ProviderManager
from .provider import CloudProvider, RefreshTokenResult

logger = logging.getLogger(__name__)


class MissingAppCredentialsError(Exception):
    """The instance has no app key/secret on file. Needs operator setup."""


class InvalidOAuthState(ValueError):
    """The ``state`` parameter does not name a provider instance."""


def encode_state(provider_type: str, instance_index: int) -> str:
    return f"{provider_type.lower()}:{instance_index}"


def decode_state(state: str) -> tuple[str, int]:
    provider_type, sep, index = (state or "").partition(":")
    if not sep or not provider_type or not index.isdigit():
        raise InvalidOAuthState(f"Malformed OAuth state: {state!r}")
    return provider_type.lower(), int(index)


def parse_callback(text: str) -> tuple[str, str | None]:
    """Split a pasted redirect URL into (code, state). A bare code has no state."""
    text = text.strip()
    if "code=" not in text:
        return text, None
    query = parse_qs(urlparse(text).query or text.lstrip("?"))
    code = query.get("code", [""])[0]
    state = query.get("state", [None])[0]
    return code, state


class OAuthCoordinator:
    """Drives each instance's :class:`TokenLifecycle` from OAuth events."""

    def __init__(self, manager: ProviderManager, redirect_uri: str) -> None:
        self.manager = manager
        self.redirect_uri = redirect_uri

    def state_of(self, provider_type: str, instance_index: int) -> TokenState:
        return self.manager.get_provider(provider_type, instance_index).lifecycle.state

    def authorize(self, provider_type: str, instance_index: int) -> str:
        """Return the authorization URL for an instance.

        An index one past the last instance appends a new one. Any other
        unknown index raises :class:`IndexOutOfRange`.
        """
        provider_type = provider_type.lower()
        provider = self.manager.ensure_provider(provider_type, instance_index)

        creds = self.manager.read_credentials(provider_type, instance_index)
        if not creds.app_key:
            key_name = provider.get_env_variable_patterns(instance_index).app_key
            raise MissingAppCredentialsError(f"{key_name} not configured")

        url = provider.get_authorization_url(
            creds.app_key, self.redirect_uri, encode_state(provider_type, instance_index)
        )
        provider.lifecycle.authorization_started()
        return url

    def handle_callback(self, code: str, state: str) -> CloudProvider:
        """Exchange the code, persist both tokens and re-authenticate the instance.

        ExternalAuthError from the exchange propagates and leaves the instance
        pending authorization.
        """
        provider_type, index = decode_state(state)
        provider = self.manager.get_provider(provider_type, index)
        creds = self.manager.read_credentials(provider_type, index)
        if not creds.app_key or not creds.app_secret:
            names = provider.get_env_variable_patterns(index)
            raise MissingAppCredentialsError(f"{names.app_key} or {names.app_secret} not configured")

        # A callback proves an authorization URL was issued, possibly by an
        # earlier process.
        if provider.lifecycle.state is not TokenState.PENDING_AUTHORIZATION:
            provider.lifecycle.authorization_started()

        tokens = provider.exchange_code_for_token(code, creds.app_key, creds.app_secret, self.redirect_uri)
        self.manager.update_env_variables(provider_type, index, {
            "access_token": tokens.access_token,
            "refresh_token": tokens.refresh_token,
        })

        if self.manager.add_credentials(provider_type, index):
            self.manager.sync_provider(provider_type, index)
            logger.info("Authenticated %s instance %d", provider_type, index)
        else:
            logger.warning("Tokens stored but %s instance %d did not authenticate", provider_type, index)
        return provider

    def refresh(self, provider_type: str, instance_index: int) -> RefreshTokenResult:
        provider_type = provider_type.lower()
        provider = self.manager.get_provider(provider_type, instance_index)
        if provider.lifecycle.state is TokenState.REAUTH_REQUIRED:
            return RefreshTokenResult(
                success=False,
                error="Refresh token is invalid or expired. Re-authentication required.",
                error_code="invalid_grant",
            )
        creds = self.manager.read_credentials(provider_type, instance_index)
        if not (creds.app_key and creds.app_secret and creds.refresh_token):
            raise MissingAppCredentialsError(
                f"Missing required environment variables for {provider_type} "
                f"provider at index {instance_index}"
            )

        result = provider.refresh_token(creds, instance_index)
        if result.success:
            self.manager.update_env_variables(provider_type, instance_index, {
                "access_token": result.access_token,
                "refresh_token": result.refresh_token,
            })
            provider.lifecycle.refreshed()
        else:
            provider.lifecycle.refresh_failed(result.reauth_required)
            if result.reauth_required:
                logger.warning(
                    "%s instance %d needs a new authorization: %s",
                    provider_type, instance_index, result.error,
                )
        return result

    def mark_expired(self, provider_type: str, instance_index: int) -> None:
        self.manager.get_provider(provider_type, instance_index).lifecycle.token_rejected()
