# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from coreason_auth.config import AuthConfig, OAuthProviderConfig, SessionMode


def test_config_loading() -> None:
    """Test loading configuration from environment variables."""
    with patch.dict(
        os.environ,
        {
            "COREASON_AUTH_SESSION_MODE": "stateless",
            "COREASON_AUTH_TOKEN_SECRET": "env-secret",
            "COREASON_AUTH_SESSION_TTL": "60",
        },
    ):
        config = AuthConfig()
        assert config.session_mode == SessionMode.STATELESS
        assert config.token_secret is not None
        assert config.token_secret.get_secret_value() == "env-secret"
        assert config.session_ttl == 60


def test_config_case_insensitive() -> None:
    with patch.dict(os.environ, {"coreason_auth_session_mode": "stateful"}):
        assert AuthConfig().session_mode == SessionMode.STATEFUL


def test_nested_oauth_from_environment() -> None:
    with patch.dict(
        os.environ,
        {
            "COREASON_AUTH_SESSION_MODE": "stateful",
            "COREASON_AUTH_OAUTH__AUTH_URL": "https://provider.example/authorize",
            "COREASON_AUTH_OAUTH__TOKEN_URL": "https://provider.example/token",
            "COREASON_AUTH_OAUTH__CLIENT_ID": "client-1",
            "COREASON_AUTH_OAUTH__REDIRECT_URI": "https://app.example/callback",
            "COREASON_AUTH_OAUTH__CLIENT_SECRET": "shh",
        },
    ):
        config = AuthConfig()
        assert config.oauth is not None
        assert config.oauth.client_id == "client-1"
        assert config.oauth.client_secret is not None
        assert config.oauth.client_secret.get_secret_value() == "shh"
        assert config.oauth.pkce_ttl == 600


def test_defaults() -> None:
    config = AuthConfig(session_mode=SessionMode.STATEFUL)
    assert config.token_secret is None
    assert config.session_ttl == 1800
    assert config.clock_skew_leeway == 0
    assert config.http_timeout == 10.0
    assert config.oauth is None


def test_session_mode_is_required() -> None:
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ValidationError):
            AuthConfig()


def test_unknown_session_mode() -> None:
    with pytest.raises(ValidationError):
        AuthConfig(session_mode="cookie")


@pytest.mark.parametrize("value", ["", "   ", "\t\n"])
def test_blank_secret_is_treated_as_absent(value: str) -> None:
    config = AuthConfig(session_mode=SessionMode.STATELESS, token_secret=value)
    assert config.token_secret is None


def test_secret_is_not_exposed() -> None:
    config = AuthConfig(session_mode=SessionMode.STATELESS, token_secret="super-secret-value")
    assert "super-secret-value" not in repr(config)
    assert "super-secret-value" not in str(config.model_dump())


@pytest.mark.parametrize("field", ["session_ttl", "http_timeout"])
def test_positive_fields(field: str) -> None:
    with pytest.raises(ValidationError):
        AuthConfig(session_mode=SessionMode.STATEFUL, **{field: 0})


def test_negative_leeway_rejected() -> None:
    with pytest.raises(ValidationError):
        AuthConfig(session_mode=SessionMode.STATEFUL, clock_skew_leeway=-1)


class TestOAuthProviderConfig:
    def _build(self, **overrides: object) -> OAuthProviderConfig:
        values: dict[str, object] = {
            "auth_url": "https://provider.example/authorize",
            "token_url": "https://provider.example/token",
            "client_id": "client-1",
            "redirect_uri": "https://app.example/callback",
        }
        values.update(overrides)
        return OAuthProviderConfig(**values)  # type: ignore[arg-type]

    def test_valid(self) -> None:
        provider = self._build(scope="openid")
        assert provider.scope == "openid"
        assert provider.client_secret is None

    @pytest.mark.parametrize("field", ["auth_url", "token_url"])
    def test_http_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError, match="HTTPS"):
            self._build(**{field: "http://provider.example/x"})

    @pytest.mark.parametrize("value", ["provider.example/token", "ftp://provider.example/token", ""])
    def test_non_url_rejected(self, value: str) -> None:
        with pytest.raises(ValidationError):
            self._build(token_url=value)

    def test_http_allowed_for_local_dev(self) -> None:
        provider = self._build(
            unsafe_local_dev=True,
            auth_url="http://localhost:8080/authorize",
            token_url="http://localhost:8080/token",
        )
        assert provider.token_url == "http://localhost:8080/token"

    def test_whitespace_is_stripped(self) -> None:
        provider = self._build(token_url="  https://provider.example/token  ")
        assert provider.token_url == "https://provider.example/token"

    def test_empty_client_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            self._build(client_id="")

    def test_pkce_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            self._build(pkce_ttl=0)
