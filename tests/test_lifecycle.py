"""Tests for the per-instance token state machine."""

import pytest

from cloudgallery.cloud.lifecycle import InvalidTransition, TokenLifecycle, TokenState


class TestTransitions:
    def test_starts_unconfigured(self):
        lifecycle = TokenLifecycle()
        assert lifecycle.state is TokenState.UNCONFIGURED
        assert lifecycle.needs_authorization

    def test_authorization_then_restore(self):
        lifecycle = TokenLifecycle()
        lifecycle.authorization_started()
        assert lifecycle.state is TokenState.PENDING_AUTHORIZATION
        assert lifecycle.restored() is True
        assert lifecycle.state is TokenState.AUTHENTICATED

    def test_restore_from_unconfigured(self):
        lifecycle = TokenLifecycle()
        assert lifecycle.restored() is True
        assert lifecycle.state is TokenState.AUTHENTICATED

    def test_restore_not_allowed_from_reauth_required(self):
        lifecycle = TokenLifecycle(TokenState.REAUTH_REQUIRED)
        assert lifecycle.restored() is False
        assert lifecycle.state is TokenState.REAUTH_REQUIRED

    def test_invalid_transition_raises(self):
        lifecycle = TokenLifecycle(TokenState.REAUTH_REQUIRED)
        with pytest.raises(InvalidTransition):
            lifecycle.transition(TokenState.AUTHENTICATED)

    def test_reauth_required_can_start_authorization(self):
        lifecycle = TokenLifecycle(TokenState.REAUTH_REQUIRED)
        lifecycle.authorization_started()
        assert lifecycle.state is TokenState.PENDING_AUTHORIZATION


class TestTokenEvents:
    def test_token_rejected_expires(self):
        lifecycle = TokenLifecycle(TokenState.AUTHENTICATED)
        lifecycle.token_rejected()
        assert lifecycle.state is TokenState.TOKEN_EXPIRED

    def test_token_rejected_ignored_when_not_authenticated(self):
        lifecycle = TokenLifecycle(TokenState.PENDING_AUTHORIZATION)
        lifecycle.token_rejected()
        assert lifecycle.state is TokenState.PENDING_AUTHORIZATION

    def test_refresh_recovers_expired_token(self):
        lifecycle = TokenLifecycle(TokenState.TOKEN_EXPIRED)
        lifecycle.refreshed()
        assert lifecycle.state is TokenState.AUTHENTICATED

    def test_invalid_grant_requires_reauth(self):
        lifecycle = TokenLifecycle(TokenState.AUTHENTICATED)
        lifecycle.refresh_failed(reauth_required=True)
        assert lifecycle.state is TokenState.REAUTH_REQUIRED
        assert lifecycle.needs_authorization

    def test_transient_failure_keeps_state(self):
        lifecycle = TokenLifecycle(TokenState.TOKEN_EXPIRED)
        lifecycle.refresh_failed(reauth_required=False)
        assert lifecycle.state is TokenState.TOKEN_EXPIRED

    def test_state_values_are_strings(self):
        assert TokenState.REAUTH_REQUIRED.value == "reauth_required"
        assert TokenState("authenticated") is TokenState.AUTHENTICATED
