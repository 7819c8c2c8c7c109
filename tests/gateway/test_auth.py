"""Tests for shared-secret authentication."""

from multidict import CIMultiDict

from llmp.gateway.auth import (
    INVALID_CREDENTIAL,
    MISSING_CREDENTIAL,
    Authenticator,
)


class TestAuthDisabled:
    """An empty secret lets everything through."""

    def test_no_headers_allowed(self):
        assert Authenticator(secret="").authenticate(CIMultiDict()).allowed

    def test_any_credential_allowed(self):
        headers = CIMultiDict({"Authorization": "Bearer whatever"})
        assert Authenticator(secret="").authenticate(headers).allowed

    def test_enabled_flag(self):
        assert not Authenticator(secret="").enabled
        assert Authenticator(secret="s3cret").enabled


class TestAuthEnabled:
    def setup_method(self):
        self.auth = Authenticator(secret="s3cret")

    def test_bearer_token_allowed(self):
        headers = CIMultiDict({"Authorization": "Bearer s3cret"})
        result = self.auth.authenticate(headers)
        assert result.allowed
        assert result.reason is None

    def test_header_names_case_insensitive(self):
        headers = CIMultiDict({"authorization": "Bearer s3cret"})
        assert self.auth.authenticate(headers).allowed

    def test_x_api_key_allowed(self):
        headers = CIMultiDict({"x-api-key": "s3cret"})
        assert self.auth.authenticate(headers).allowed

    def test_missing_credential_rejected(self):
        result = self.auth.authenticate(CIMultiDict())
        assert not result.allowed
        assert result.reason == MISSING_CREDENTIAL
        assert "required" in result.reason

    def test_wrong_bearer_rejected(self):
        headers = CIMultiDict({"Authorization": "Bearer nope"})
        result = self.auth.authenticate(headers)
        assert not result.allowed
        assert result.reason == INVALID_CREDENTIAL

    def test_wrong_x_api_key_rejected(self):
        headers = CIMultiDict({"x-api-key": "nope"})
        assert self.auth.authenticate(headers).reason == INVALID_CREDENTIAL

    def test_authorization_preferred_over_x_api_key(self):
        headers = CIMultiDict({"Authorization": "Bearer nope", "x-api-key": "s3cret"})
        assert self.auth.authenticate(headers).reason == INVALID_CREDENTIAL

    def test_empty_bearer_is_invalid_not_missing(self):
        headers = CIMultiDict({"Authorization": "Bearer "})
        assert self.auth.authenticate(headers).reason == INVALID_CREDENTIAL

    def test_empty_authorization_falls_back_to_x_api_key(self):
        headers = CIMultiDict({"Authorization": "", "x-api-key": "s3cret"})
        assert self.auth.authenticate(headers).allowed

    def test_authorization_without_bearer_prefix_compared_whole(self):
        assert self.auth.authenticate(CIMultiDict({"Authorization": "s3cret"})).allowed
        assert not self.auth.authenticate(CIMultiDict({"Authorization": "Basic s3cret"})).allowed

    def test_undecodable_credential_is_invalid(self):
        # aiohttp surfaces non-UTF-8 header bytes as lone surrogates
        headers = CIMultiDict({"Authorization": "Bearer \udcff\udcfe"})
        assert self.auth.authenticate(headers).reason == INVALID_CREDENTIAL

    def test_comparison_is_exact(self):
        assert not self.auth.authenticate(CIMultiDict({"x-api-key": "S3CRET"})).allowed
        assert not self.auth.authenticate(CIMultiDict({"x-api-key": "s3cret "})).allowed
