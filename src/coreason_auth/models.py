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
Data models for the coreason-auth package.
"""

from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    A locally known identity.

    This model is frozen (immutable). Updates are the host's business.

    Attributes:
        username (str): The unique, caller-defined identity key.
        password_hash (str | None): ``salt:derivedKey`` hex string; absent for OAuth-only identities.
        id (str | None): Storage-assigned identifier, if the host uses one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    username: str = Field(..., description="Unique identity key.", examples=["alice"])
    password_hash: str | None = Field(
        default=None,
        validation_alias=AliasChoices("password_hash", "passwordHash"),
        description="Credential hash. Protected from logging.",
    )
    id: str | None = Field(default=None, description="Storage-assigned identifier.")

    def __repr__(self) -> str:
        # The credential hash MUST be redacted in __repr__
        hashed = "'<REDACTED>'" if self.password_hash is not None else "None"
        return f"User(username={self.username!r}, password_hash={hashed}, id={self.id!r})"

    def __str__(self) -> str:
        return self.__repr__()


class SessionRecord(BaseModel):
    """
    Server-side session record owned by the storage backend.

    Storage implementations may hand back plain mappings; they are validated into this model,
    accepting the short claim-style aliases as well.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    subject: str = Field(..., validation_alias=AliasChoices("subject", "sub", "userId", "user_id"))
    expires_at: int = Field(..., validation_alias=AliasChoices("expires_at", "expiresAt", "exp"))
    session_id: str | None = Field(default=None, validation_alias=AliasChoices("session_id", "id"))


class TokenPayload(BaseModel):
    """
    Claims carried by a stateless session token.

    Unknown claims are preserved so introspection shows the full payload.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    sub: str
    exp: int
    jti: str
    iat: int | None = None
    nbf: int | None = None
    iss: str | None = None
    aud: str | list[str] | None = None


class PKCEPair(BaseModel):
    """A PKCE code verifier and the S256 challenge derived from it."""

    model_config = ConfigDict(frozen=True)

    code_verifier: str = Field(..., repr=False)
    code_challenge: str
    code_challenge_method: Literal["S256"] = "S256"


class OAuthTokenResponse(BaseModel):
    """
    Response from the provider's token endpoint.

    Attributes:
        token_type (str): The type of the token (e.g. "Bearer").
        access_token (str): The access token issued by the authorization server.
        expires_in (int | None): The lifetime in seconds of the access token.
        scope (str | None): The granted scope, if the provider narrowed it.
        refresh_token (str | None): The refresh token, if issued.
        id_token (str | None): The ID token, if issued.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    token_type: str
    access_token: str = Field(..., repr=False)
    expires_in: int | None = None
    scope: str | None = None
    refresh_token: str | None = Field(default=None, repr=False)
    id_token: str | None = Field(default=None, repr=False)
