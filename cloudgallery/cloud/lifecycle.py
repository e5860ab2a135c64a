"""Credential validity state machine for a single provider instance."""

import logging
from enum import Enum

logger = logging.getLogger(__name__)


class TokenState(str, Enum):
    UNCONFIGURED = "unconfigured"
    PENDING_AUTHORIZATION = "pending_authorization"
    AUTHENTICATED = "authenticated"
    TOKEN_EXPIRED = "token_expired"
    REAUTH_REQUIRED = "reauth_required"


_TRANSITIONS: dict[TokenState, set[TokenState]] = {
    # Restoring stored tokens goes straight to AUTHENTICATED.
    TokenState.UNCONFIGURED: {TokenState.PENDING_AUTHORIZATION, TokenState.AUTHENTICATED},
    TokenState.PENDING_AUTHORIZATION: {TokenState.PENDING_AUTHORIZATION, TokenState.AUTHENTICATED},
    TokenState.AUTHENTICATED: {
        TokenState.AUTHENTICATED,
        TokenState.TOKEN_EXPIRED,
        TokenState.PENDING_AUTHORIZATION,
    },
    TokenState.TOKEN_EXPIRED: {
        TokenState.AUTHENTICATED,
        TokenState.REAUTH_REQUIRED,
        TokenState.PENDING_AUTHORIZATION,
    },
    TokenState.REAUTH_REQUIRED: {TokenState.PENDING_AUTHORIZATION},
}


class InvalidTransition(Exception):
    """Raised when a lifecycle event is not valid in the current state."""


class TokenLifecycle:
    def __init__(self, state: TokenState = TokenState.UNCONFIGURED) -> None:
        self.state = state

    def can_transition(self, target: TokenState) -> bool:
        return target in _TRANSITIONS[self.state]

    def transition(self, target: TokenState) -> None:
        if not self.can_transition(target):
            raise InvalidTransition(
                f"Cannot move from {self.state.value} to {target.value}"
            )
        logger.debug("Token state %s -> %s", self.state.value, target.value)
        self.state = target

    # --- Events ---

    def authorization_started(self) -> None:
        self.transition(TokenState.PENDING_AUTHORIZATION)

    def token_rejected(self) -> None:
        if self.state is TokenState.AUTHENTICATED:
            self.transition(TokenState.TOKEN_EXPIRED)

    def refreshed(self) -> None:
        self.transition(TokenState.AUTHENTICATED)

    def refresh_failed(self, reauth_required: bool) -> None:
        """A refresh token rejected outright means the user must authorize again."""
        if not reauth_required:
            return
        if self.state is TokenState.AUTHENTICATED:
            self.transition(TokenState.TOKEN_EXPIRED)
        if self.state is TokenState.TOKEN_EXPIRED:
            self.transition(TokenState.REAUTH_REQUIRED)

    def restored(self) -> bool:
        """Stored credentials authenticated the instance. False if not allowed here."""
        if self.state is TokenState.AUTHENTICATED:
            return True
        if not self.can_transition(TokenState.AUTHENTICATED):
            return False
        self.transition(TokenState.AUTHENTICATED)
        return True

    @property
    def needs_authorization(self) -> bool:
        return self.state in (TokenState.UNCONFIGURED, TokenState.REAUTH_REQUIRED)
