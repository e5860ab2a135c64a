"""Tests for the provider interface and its data types."""

import pytest

from cloudgallery.cloud.lifecycle import TokenState
from cloudgallery.cloud.provider import (
    CREDENTIAL_FIELDS,
    CloudProvider,
    CloudProviderError,
    EnvVariablePatterns,
    ExternalAuthError,
    RefreshTokenResult,
    TokenExpiredError,
)


class TestCloudProvider:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            CloudProvider()

    def test_subclass_gets_own_lifecycle(self, fake_provider_cls):
        a, b = fake_provider_cls(), fake_provider_cls()
        a.lifecycle.authorization_started()
        assert a.lifecycle.state is TokenState.PENDING_AUTHORIZATION
        assert b.lifecycle.state is TokenState.UNCONFIGURED


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(ExternalAuthError, CloudProviderError)
        assert issubclass(TokenExpiredError, CloudProviderError)

    def test_external_auth_error_fields(self):
        exc = ExternalAuthError("Bad code", reason="invalid_grant", details="code expired")
        assert str(exc) == "Bad code"
        assert exc.reason == "invalid_grant"
        assert exc.details == "code expired"


class TestDataTypes:
    def test_patterns_as_dict_covers_every_field(self):
        patterns = EnvVariablePatterns("K_0", "S_0", "A_0", "R_0")
        assert tuple(patterns.as_dict()) == CREDENTIAL_FIELDS
        assert patterns.as_dict()["refresh_token"] == "R_0"

    def test_reauth_required_only_for_invalid_grant(self):
        assert RefreshTokenResult(success=False, error_code="invalid_grant").reauth_required
        assert not RefreshTokenResult(success=False, error_code="invalid_client").reauth_required
        assert not RefreshTokenResult(success=True).reauth_required
