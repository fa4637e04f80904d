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
OAuthDelegate component for the OAuth 2.0 Authorization Code Grant with PKCE (RFC 6749, RFC 7636).
"""

from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from coreason_auth import codec
from coreason_auth.clock import Clock, system_clock
from coreason_auth.config import OAuthProviderConfig
from coreason_auth.exceptions import ExchangeFailedError, VerifierMissingError
from coreason_auth.models import OAuthTokenResponse
from coreason_auth.transport import HTTPTransport, TransportResponse
from coreason_auth.utils.logger import logger

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


class OAuthDelegate:
    """
    Builds authorization URLs and exchanges codes / refresh tokens at the provider's token endpoint.

    PKCE verifiers generated on the caller's behalf are kept in a map keyed by the `state`
    parameter, so several authorization attempts can be in flight on one delegate.
    A retained verifier is dropped as soon as its exchange starts, when the attempt is
    discarded, or once `pkce_ttl` seconds have passed.

    Attributes:
        config (OAuthProviderConfig): The provider wiring.
        transport (HTTPTransport): The POST capability used to reach the token endpoint.
    """

    def __init__(self, config: OAuthProviderConfig, transport: HTTPTransport, clock: Clock = system_clock) -> None:
        """
        Initialize the OAuthDelegate.

        Args:
            config: The provider wiring.
            transport: The HTTP transport.
            clock: Time source for verifier expiry.
        """
        self.config = config
        self.transport = transport
        self.clock = clock
        # state -> (code_verifier, retained_at)
        self._verifiers: dict[str, tuple[str, float]] = {}

    def _purge_expired(self) -> None:
        cutoff = self.clock() - self.config.pkce_ttl
        expired = [state for state, (_, retained_at) in self._verifiers.items() if retained_at <= cutoff]
        for state in expired:
            del self._verifiers[state]

    @property
    def pending_attempts(self) -> int:
        """Number of authorization attempts still holding a retained verifier."""
        self._purge_expired()
        return len(self._verifiers)

    def get_auth_url(self, state: str, code_challenge: str | None = None) -> str:
        """
        Builds the provider authorization URL.

        If `code_challenge` is omitted, a verifier/challenge pair is generated and the verifier
        is retained under `state` for the matching `exchange_code` call.

        Args:
            state: The opaque CSRF/state value the caller will check on the callback.
            code_challenge: A caller-managed S256 challenge (optional).

        Returns:
            str: The authorization URL.

        Raises:
            ValueError: If `state` or a supplied `code_challenge` is empty.
        """
        if not state:
            raise ValueError("state must be a non-empty string.")
        if code_challenge is not None and not code_challenge:
            raise ValueError("code_challenge must be a non-empty string when supplied.")

        if code_challenge is None:
            pair = codec.generate_pkce_pair()
            self._purge_expired()
            self._verifiers[state] = (pair.code_verifier, self.clock())
            code_challenge = pair.code_challenge

        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "state": state,
        }
        if self.config.scope:
            params["scope"] = self.config.scope
        params["code_challenge"] = code_challenge
        params["code_challenge_method"] = "S256"

        separator = "&" if "?" in self.config.auth_url else "?"
        return f"{self.config.auth_url}{separator}{urlencode(params)}"

    def discard_attempt(self, state: str) -> None:
        """Abandons an authorization attempt, dropping its retained verifier if any."""
        self._verifiers.pop(state, None)

    def _take_verifier(self, state: str | None) -> str | None:
        self._purge_expired()
        if state is None:
            return None
        entry = self._verifiers.pop(state, None)
        return entry[0] if entry else None

    def _client_credentials(self) -> dict[str, str]:
        data = {"client_id": self.config.client_id}
        if self.config.client_secret is not None:
            data["client_secret"] = self.config.client_secret.get_secret_value()
        return data

    async def exchange_code(
        self, code: str, code_verifier: str | None = None, *, state: str | None = None
    ) -> OAuthTokenResponse:
        """
        Exchanges an authorization code for tokens.

        Args:
            code: The authorization code from the callback.
            code_verifier: A caller-managed verifier (optional).
            state: The attempt's state, used to look up a retained verifier when none is supplied.

        Returns:
            OAuthTokenResponse: The provider's token response.

        Raises:
            VerifierMissingError: If no verifier was supplied or retained for `state`.
            ExchangeFailedError: If the provider rejects the exchange or returns an invalid body.
        """
        retained = self._take_verifier(state)
        verifier = code_verifier or retained
        if not verifier:
            raise VerifierMissingError(
                "No PKCE code verifier available: pass code_verifier, or the state used in get_auth_url."
            )

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            **self._client_credentials(),
            "code_verifier": verifier,
        }
        return await self._token_request(data, "authorization_code")

    async def refresh_access_token(self, refresh_token: str, scope: str | None = None) -> OAuthTokenResponse:
        """
        Obtains a new access token with a refresh token.

        Args:
            refresh_token: The refresh token previously issued by the provider.
            scope: Optional narrower scope to request.

        Returns:
            OAuthTokenResponse: The provider's token response.

        Raises:
            ExchangeFailedError: If the provider rejects the request or returns an invalid body.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            **self._client_credentials(),
        }
        if scope:
            data["scope"] = scope
        return await self._token_request(data, "refresh_token")

    async def _token_request(self, data: dict[str, str], grant_type: str) -> OAuthTokenResponse:
        response = await self.transport.post_form(self.config.token_url, data, FORM_HEADERS)

        if not response.is_success:
            raise self._failure(response, grant_type)

        body = response.json_body
        if not isinstance(body, dict):
            logger.error(f"Token endpoint returned a non-JSON body for {grant_type} grant")
            raise ExchangeFailedError("Token response is not a JSON object.", status_code=response.status_code)

        try:
            token_response = OAuthTokenResponse.model_validate(body)
        except ValidationError as e:
            logger.error(f"Invalid token response for {grant_type} grant: {e.error_count()} error(s)")
            raise ExchangeFailedError(
                f"Invalid token response: {e}", status_code=response.status_code
            ) from e

        logger.info(f"OAuth {grant_type} grant succeeded.")
        return token_response

    @staticmethod
    def _failure(response: TransportResponse, grant_type: str) -> ExchangeFailedError:
        body: Any = response.json_body
        error = body.get("error") if isinstance(body, dict) else None
        description = body.get("error_description") if isinstance(body, dict) else None
        logger.warning(f"OAuth {grant_type} grant failed with status {response.status_code} ({error or 'no error code'})")
        return ExchangeFailedError(
            f"Token request failed: {response.status_code}",
            status_code=response.status_code,
            error=error if isinstance(error, str) else None,
            error_description=description if isinstance(description, str) else None,
        )
