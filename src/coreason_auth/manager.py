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
AuthManager component: the single entry point composing local credentials, sessions and OAuth.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import anyio
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from coreason_auth.clock import Clock, IdFactory, system_clock, uuid4_factory
from coreason_auth.config import AuthConfig, SessionMode
from coreason_auth.exceptions import CapabilityMissingError, ConfigurationInvalidError
from coreason_auth.local import LocalCredentialStrategy
from coreason_auth.models import OAuthTokenResponse, SessionRecord, User
from coreason_auth.oauth import OAuthDelegate
from coreason_auth.sessions import SessionStrategy, StatefulSessionStrategy, StatelessSessionStrategy
from coreason_auth.storage import USER_CAPABILITIES, StorageCapabilities
from coreason_auth.transport import HttpxTransport, HTTPTransport
from coreason_auth.utils.logger import anonymize, logger

tracer = trace.get_tracer(__name__)

T = TypeVar("T")


class AuthManager:
    """
    Async facade (The Core).

    Validates the configuration once, selects exactly one session strategy and wires
    the optional local-credential and OAuth components. Owns the default HTTP transport
    when it creates one; use it as an async context manager or call `aclose()`.
    """

    def __init__(
        self,
        config: AuthConfig,
        storage: Any | None = None,
        transport: HTTPTransport | None = None,
        clock: Clock = system_clock,
        id_factory: IdFactory = uuid4_factory,
    ) -> None:
        """
        Initialize the AuthManager.

        Args:
            config: The configuration object.
            storage: Host storage implementing some or all of the Storage Port operations.
            transport: HTTP transport for OAuth (optional). If not provided and OAuth is configured,
                an `HttpxTransport` is created and owned by the manager.
            clock: Time source shared by every component.
            id_factory: Source of unique token ids.

        Raises:
            ConfigurationInvalidError: If the selected session mode lacks its secret or storage.
            CapabilityMissingError: If stateful mode is selected and storage lacks session operations.
        """
        self.config = config
        self.capabilities = StorageCapabilities.negotiate(storage)
        self.session_strategy: SessionStrategy = self._build_session_strategy(storage, clock, id_factory)

        self.local: LocalCredentialStrategy | None = None
        if self.capabilities.supports(*USER_CAPABILITIES):
            self.local = LocalCredentialStrategy(storage, self.capabilities)

        self._internal_transport: HttpxTransport | None = None
        self.oauth: OAuthDelegate | None = None
        if config.oauth is not None:
            if transport is None:
                self._internal_transport = HttpxTransport(timeout=config.http_timeout)
                transport = self._internal_transport
            self.oauth = OAuthDelegate(config.oauth, transport, clock=clock)

        logger.info(
            f"AuthManager ready: session_mode={self.session_mode}, "
            f"local={'on' if self.local else 'off'}, oauth={'on' if self.oauth else 'off'}"
        )

    def _build_session_strategy(self, storage: Any | None, clock: Clock, id_factory: IdFactory) -> SessionStrategy:
        config = self.config
        if config.session_mode == SessionMode.STATELESS:
            if config.token_secret is None:
                raise ConfigurationInvalidError("token_secret is required for the stateless session mode.")
            return StatelessSessionStrategy(
                secret=config.token_secret,
                session_ttl=config.session_ttl,
                issuer=config.token_issuer,
                audience=config.token_audience,
                leeway=config.clock_skew_leeway,
                clock=clock,
                id_factory=id_factory,
            )
        if config.session_mode == SessionMode.STATEFUL:
            if storage is None:
                raise ConfigurationInvalidError("storage is required for the stateful session mode.")
            return StatefulSessionStrategy(storage, self.capabilities, session_ttl=config.session_ttl, clock=clock)
        raise ConfigurationInvalidError(f"Unknown session mode: {config.session_mode!r}")  # pragma: no cover

    async def __aenter__(self) -> "AuthManager":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Releases the internally created HTTP transport, if any."""
        if self._internal_transport is not None:
            await self._internal_transport.aclose()

    @property
    def session_mode(self) -> SessionMode:
        return self.session_strategy.mode

    def _anonymize(self, value: str) -> str:
        return anonymize(value, self.config.pii_salt)

    def _require_local(self) -> LocalCredentialStrategy:
        if self.local is None:
            raise CapabilityMissingError(
                "Local credentials require storage implementing find_user_by_unique_field and create_user.",
                missing=tuple(name for name in USER_CAPABILITIES if not self.capabilities.supports(name)),
            )
        return self.local

    def _require_oauth(self) -> OAuthDelegate:
        if self.oauth is None:
            raise ConfigurationInvalidError("OAuth is not configured.")
        return self.oauth

    async def register(self, username: str, password: str) -> User:
        """
        Registers a local user.

        Raises:
            CapabilityMissingError: If storage lacks the user operations.
            DuplicateUserError: If the username is taken.
        """
        local = self._require_local()
        with tracer.start_as_current_span("auth.register") as span:
            span.set_attribute("enduser.id", self._anonymize(username))
            return await local.register(username, password)

    async def login(self, username: str, password: str) -> User | None:
        """
        Authenticates a local user.

        Returns:
            User | None: The user, or None if not authenticated.

        Raises:
            CapabilityMissingError: If storage lacks the user operations.
        """
        local = self._require_local()
        with tracer.start_as_current_span("auth.login") as span:
            user_hash = self._anonymize(username)
            span.set_attribute("enduser.id", user_hash)
            user = await local.login(username, password)
            if user is None:
                logger.info(f"Login rejected for user {user_hash}")
                span.set_attribute("auth.authenticated", False)
            else:
                logger.info(f"Login succeeded for user {user_hash}")
                span.set_attribute("auth.authenticated", True)
            return user

    async def create_session(self, subject: str, expires_at: int | None = None) -> str:
        """
        Issues a session id (stateful) or a signed token (stateless) for `subject`.

        Args:
            subject: The user identifier.
            expires_at: Absolute expiry (Unix seconds). Defaults to now + `session_ttl`.

        Returns:
            str: The session credential.
        """
        with tracer.start_as_current_span("auth.create_session") as span:
            span.set_attribute("enduser.id", self._anonymize(subject))
            span.set_attribute("auth.session_mode", str(self.session_mode))
            return await self.session_strategy.issue(subject, expires_at)

    async def verify_session(self, credential: str) -> str | None:
        """
        Returns the subject bound to a live session id or token.

        Returns:
            str | None: The subject, or None if unknown, expired, or forged.
        """
        with tracer.start_as_current_span("auth.verify_session") as span:
            span.set_attribute("auth.session_mode", str(self.session_mode))
            subject = await self.session_strategy.verify(credential)
            if subject is not None:
                span.set_attribute("enduser.id", self._anonymize(subject))
            span.set_attribute("auth.authenticated", subject is not None)
            return subject

    async def get_session(self, credential: str) -> SessionRecord | None:
        """
        Returns the raw session record without expiry filtering.

        Raises:
            UnsupportedOperationError: In stateless mode.
        """
        return await self.session_strategy.inspect(credential)

    async def delete_session(self, credential: str) -> None:
        """
        Deletes a session. Idempotent.

        Raises:
            UnsupportedOperationError: In stateless mode.
        """
        await self.session_strategy.revoke(credential)

    def get_oauth_url(self, state: str, code_challenge: str | None = None) -> str:
        """
        Builds the provider authorization URL.

        Raises:
            ConfigurationInvalidError: If OAuth is not configured.
        """
        return self._require_oauth().get_auth_url(state, code_challenge)

    async def exchange_oauth_code(
        self, code: str, code_verifier: str | None = None, *, state: str | None = None
    ) -> OAuthTokenResponse:
        """
        Exchanges an authorization code for tokens.

        Raises:
            ConfigurationInvalidError: If OAuth is not configured.
            VerifierMissingError: If no verifier is available.
            ExchangeFailedError: If the provider rejects the exchange.
        """
        oauth = self._require_oauth()
        with tracer.start_as_current_span("oauth.exchange_code") as span:
            try:
                return await oauth.exchange_code(code, code_verifier, state=state)
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, type(e).__name__))
                raise

    async def refresh_oauth_token(self, refresh_token: str, scope: str | None = None) -> OAuthTokenResponse:
        """
        Refreshes an OAuth access token.

        Raises:
            ConfigurationInvalidError: If OAuth is not configured.
            ExchangeFailedError: If the provider rejects the request.
        """
        oauth = self._require_oauth()
        with tracer.start_as_current_span("oauth.refresh_token") as span:
            try:
                return await oauth.refresh_access_token(refresh_token, scope)
            except Exception as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, type(e).__name__))
                raise


class AuthManagerSync:
    """
    Blocking facade over `AuthManager`.

    Every call runs its coroutine in a fresh event loop via `anyio.run`, so it must not be
    used from inside a running loop.
    """

    def __init__(self, config: AuthConfig, **kwargs: Any) -> None:
        """
        Initialize the AuthManagerSync.

        Args:
            config: The configuration object.
            **kwargs: Passed through to `AuthManager` (storage, transport, clock, id_factory).
        """
        self._owned_transport: HttpxTransport | None = None
        if config.oauth is not None and kwargs.get("transport") is None:
            # Connections must not outlive the loop that opened them
            self._owned_transport = HttpxTransport(timeout=config.http_timeout, keepalive=False)
            kwargs["transport"] = self._owned_transport
        try:
            self._async = AuthManager(config, **kwargs)
        except Exception:
            if self._owned_transport is not None:
                self._run(self._owned_transport.aclose)
            raise

    def __enter__(self) -> "AuthManagerSync":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _run(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async def runner() -> T:
            return await func(*args, **kwargs)

        return anyio.run(runner)

    @property
    def session_mode(self) -> SessionMode:
        return self._async.session_mode

    def close(self) -> None:
        self._run(self._async.aclose)
        if self._owned_transport is not None:
            self._run(self._owned_transport.aclose)

    def register(self, username: str, password: str) -> User:
        return self._run(self._async.register, username, password)

    def login(self, username: str, password: str) -> User | None:
        return self._run(self._async.login, username, password)

    def create_session(self, subject: str, expires_at: int | None = None) -> str:
        return self._run(self._async.create_session, subject, expires_at)

    def verify_session(self, credential: str) -> str | None:
        return self._run(self._async.verify_session, credential)

    def get_session(self, credential: str) -> SessionRecord | None:
        return self._run(self._async.get_session, credential)

    def delete_session(self, credential: str) -> None:
        self._run(self._async.delete_session, credential)

    def get_oauth_url(self, state: str, code_challenge: str | None = None) -> str:
        return self._async.get_oauth_url(state, code_challenge)

    def exchange_oauth_code(
        self, code: str, code_verifier: str | None = None, *, state: str | None = None
    ) -> OAuthTokenResponse:
        return self._run(self._async.exchange_oauth_code, code, code_verifier, state=state)

    def refresh_oauth_token(self, refresh_token: str, scope: str | None = None) -> OAuthTokenResponse:
        return self._run(self._async.refresh_oauth_token, refresh_token, scope)
