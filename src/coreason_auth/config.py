# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

"""
Configuration for the coreason-auth package.
"""

from enum import StrEnum

from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SessionMode(StrEnum):
    STATEFUL = "stateful"
    STATELESS = "stateless"


class OAuthProviderConfig(BaseModel):
    """
    Wiring for a remote OAuth2 authorization server.

    Attributes:
        unsafe_local_dev (bool): Allows plain-HTTP endpoints. Local testing only.
        auth_url (str): The provider's authorization endpoint.
        token_url (str): The provider's token endpoint.
        client_id (str): The OAuth client ID.
        redirect_uri (str): The callback registered with the provider.
        client_secret (SecretStr | None): The client secret, omitted for public clients.
        scope (str | None): Space-delimited scopes to request.
        pkce_ttl (int): Seconds a retained PKCE verifier stays usable.
    """

    unsafe_local_dev: bool = False
    auth_url: str
    token_url: str
    client_id: str = Field(..., min_length=1)
    redirect_uri: str = Field(..., min_length=1)
    client_secret: SecretStr | None = None
    scope: str | None = None
    pkce_ttl: int = Field(default=600, gt=0)

    @field_validator("auth_url", "token_url", mode="after")
    @classmethod
    def validate_https(cls, v: str, info: ValidationInfo) -> str:
        """
        Ensures provider endpoints use HTTPS, unless strictly opted out for local dev.
        """
        v = v.strip()
        if v.startswith("https://"):
            return v
        if v.startswith("http://") and info.data.get("unsafe_local_dev", False):
            return v
        raise ValueError(
            f"{info.field_name} must be an absolute HTTPS URL. Set 'unsafe_local_dev=True' only for local testing."
        )


class AuthConfig(BaseSettings):
    """
    Configuration settings for coreason-auth.

    Attributes:
        session_mode (SessionMode): Which session strategy is active.
        token_secret (SecretStr | None): HMAC secret for stateless tokens.
        session_ttl (int): Default session/token lifetime in seconds.
        token_issuer (str | None): `iss` claim stamped on and required from stateless tokens.
        token_audience (str | None): `aud` claim stamped on and required from stateless tokens.
        clock_skew_leeway (int): Seconds of tolerance applied to `nbf`.
        pii_salt (SecretStr): Salt for anonymizing subjects in logs/traces.
        http_timeout (float): Timeout in seconds for the default OAuth transport.
        oauth (OAuthProviderConfig | None): Optional OAuth provider wiring.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_AUTH_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    session_mode: SessionMode
    token_secret: SecretStr | None = None
    session_ttl: int = Field(default=1800, gt=0)
    token_issuer: str | None = None
    token_audience: str | None = None
    clock_skew_leeway: int = Field(default=0, ge=0)
    pii_salt: SecretStr = SecretStr("coreason-unsafe-default-salt")
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for OAuth token requests.")
    oauth: OAuthProviderConfig | None = None

    @field_validator("token_secret", mode="after")
    @classmethod
    def reject_blank_secret(cls, v: SecretStr | None) -> SecretStr | None:
        """
        Treats an empty or whitespace-only secret as absent.
        """
        if v is not None and not v.get_secret_value().strip():
            return None
        return v
