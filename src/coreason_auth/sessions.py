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
Session strategies: server-side sessions (stateful) and self-contained signed tokens (stateless).

Both implement `SessionStrategy`, so the facade dispatches through one interface
without ever checking which variant it holds.
"""

from typing import Any, Protocol

from pydantic import SecretStr, ValidationError

from coreason_auth import codec
from coreason_auth.clock import Clock, IdFactory, now_seconds, system_clock, uuid4_factory
from coreason_auth.config import SessionMode
from coreason_auth.exceptions import UnsupportedOperationError
from coreason_auth.models import SessionRecord, TokenPayload
from coreason_auth.storage import SESSION_CAPABILITIES, SessionStore, StorageCapabilities
from coreason_auth.utils.logger import logger

DEFAULT_SESSION_TTL = 1800


class SessionStrategy(Protocol):
    """Uniform capability interface of both session modes."""

    mode: SessionMode

    async def issue(self, subject: str, expires_at: int | None = None) -> str:
        """Issues a session credential (session id or token) for `subject`."""
        ...

    async def verify(self, credential: str) -> str | None:
        """Returns the subject of a live credential, or None."""
        ...

    async def inspect(self, credential: str) -> SessionRecord | None:
        """Returns the raw server-side record, without expiry filtering."""
        ...

    async def revoke(self, credential: str) -> None:
        """Revokes a credential server-side."""
        ...


class StatefulSessionStrategy:
    """
    Server-side sessions persisted by the host's storage.

    Holds no state of its own. Expired records are filtered on read but never deleted here;
    purging them is the storage backend's job.
    """

    mode = SessionMode.STATEFUL

    def __init__(
        self,
        storage: SessionStore,
        capabilities: StorageCapabilities | None = None,
        session_ttl: int = DEFAULT_SESSION_TTL,
        clock: Clock = system_clock,
    ) -> None:
        """
        Initialize the StatefulSessionStrategy.

        Args:
            storage: Host storage implementing the session operations.
            capabilities: Pre-negotiated capabilities; negotiated here if omitted.
            session_ttl: Default lifetime in seconds.
            clock: Time source.

        Raises:
            CapabilityMissingError: If the storage lacks any session operation.
        """
        if capabilities is None:
            capabilities = StorageCapabilities.negotiate(storage)
        capabilities.require(*SESSION_CAPABILITIES)
        self.storage = storage
        self.session_ttl = session_ttl
        self.clock = clock

    async def create_session(self, subject: str, expires_at: int | None = None) -> str:
        """
        Creates a session record through the storage.

        Args:
            subject: The user identifier the session is bound to.
            expires_at: Absolute expiry (Unix seconds). Defaults to now + `session_ttl`.

        Returns:
            str: The storage-assigned session identifier.
        """
        if expires_at is None:
            expires_at = now_seconds(self.clock) + self.session_ttl
        session_id = await self.storage.create_session(subject, expires_at)
        logger.debug(f"Stateful session created, expires at {expires_at}")
        return session_id

    async def get_session(self, session_id: str) -> SessionRecord | None:
        """
        Fetches the raw session record, expired or not.

        Args:
            session_id: The session identifier.

        Returns:
            SessionRecord | None: The record, or None if storage does not know the id.

        Raises:
            pydantic.ValidationError: If storage returns a mapping that is not a session record.
        """
        raw = await self.storage.get_session(session_id)
        if raw is None:
            return None
        if isinstance(raw, SessionRecord):
            return raw
        return SessionRecord.model_validate(dict(raw))

    async def verify_session(self, session_id: str) -> str | None:
        """
        Returns the session's subject if the session exists and has not expired.

        Args:
            session_id: The session identifier.

        Returns:
            str | None: The subject, or None for unknown or expired sessions.
        """
        record = await self.get_session(session_id)
        if record is None:
            return None
        if record.expires_at > now_seconds(self.clock):
            return record.subject
        logger.debug("Stateful session rejected: expired")
        return None

    async def delete_session(self, session_id: str) -> None:
        """Deletes a session. Idempotent."""
        await self.storage.delete_session(session_id)

    async def issue(self, subject: str, expires_at: int | None = None) -> str:
        return await self.create_session(subject, expires_at)

    async def verify(self, credential: str) -> str | None:
        return await self.verify_session(credential)

    async def inspect(self, credential: str) -> SessionRecord | None:
        return await self.get_session(credential)

    async def revoke(self, credential: str) -> None:
        await self.delete_session(credential)


class StatelessSessionStrategy:
    """
    Self-contained HS256 tokens.

    Needs nothing but the shared secret, so it scales horizontally without shared storage.
    The trade-off: tokens cannot be revoked server-side before they expire.
    """

    mode = SessionMode.STATELESS

    def __init__(
        self,
        secret: SecretStr,
        session_ttl: int = DEFAULT_SESSION_TTL,
        issuer: str | None = None,
        audience: str | None = None,
        leeway: int = 0,
        clock: Clock = system_clock,
        id_factory: IdFactory = uuid4_factory,
    ) -> None:
        """
        Initialize the StatelessSessionStrategy.

        Args:
            secret: HMAC secret shared by every issuing/verifying node.
            session_ttl: Default lifetime in seconds.
            issuer: `iss` claim to stamp and require, if set.
            audience: `aud` claim to stamp and require, if set.
            leeway: Clock-skew tolerance in seconds for `nbf`.
            clock: Time source.
            id_factory: Source of unique `jti` values.
        """
        self._secret = secret
        self.session_ttl = session_ttl
        self.issuer = issuer
        self.audience = audience
        self.leeway = leeway
        self.clock = clock
        self.id_factory = id_factory

    async def create_token(self, subject: str, expires_at: int | None = None) -> str:
        """
        Issues a signed token for `subject`.

        Args:
            subject: The user identifier.
            expires_at: Absolute expiry (Unix seconds). Defaults to now + `session_ttl`.

        Returns:
            str: The compact signed token.
        """
        now = now_seconds(self.clock)
        payload: dict[str, Any] = {
            "sub": subject,
            "exp": expires_at if expires_at is not None else now + self.session_ttl,
            "jti": self.id_factory(),
            "iat": now,
            "nbf": now,
        }
        if self.issuer:
            payload["iss"] = self.issuer
        if self.audience:
            payload["aud"] = self.audience
        return codec.sign_token(payload, self._secret.get_secret_value())

    def _decode(self, token: str) -> TokenPayload | None:
        raw = codec.verify_token(token, self._secret.get_secret_value())
        if raw is None:
            return None
        try:
            return TokenPayload.model_validate(raw)
        except ValidationError:
            logger.debug("Stateless token rejected: payload is not a session payload")
            return None

    def _audience_matches(self, aud: str | list[str] | None) -> bool:
        if isinstance(aud, list):
            return self.audience in aud
        return aud == self.audience

    async def get_token_payload(self, token: str) -> TokenPayload | None:
        """
        Returns the signature-checked payload regardless of expiry, for introspection.

        Args:
            token: The compact token.

        Returns:
            TokenPayload | None: The payload, or None if the token is forged or malformed.
        """
        return self._decode(token)

    async def verify_token(self, token: str) -> str | None:
        """
        Returns the token's subject if the signature is valid and the token is live.

        Args:
            token: The compact token.

        Returns:
            str | None: The subject, or None if forged, expired, not yet valid, or issued for someone else.
        """
        payload = self._decode(token)
        if payload is None:
            return None

        now = now_seconds(self.clock)
        if payload.exp <= now:
            logger.debug("Stateless token rejected: expired")
            return None
        if payload.nbf is not None and payload.nbf > now + self.leeway:
            logger.debug("Stateless token rejected: not yet valid")
            return None
        if self.issuer and payload.iss != self.issuer:
            logger.debug("Stateless token rejected: issuer mismatch")
            return None
        if self.audience and not self._audience_matches(payload.aud):
            logger.debug("Stateless token rejected: audience mismatch")
            return None
        return payload.sub

    async def issue(self, subject: str, expires_at: int | None = None) -> str:
        return await self.create_token(subject, expires_at)

    async def verify(self, credential: str) -> str | None:
        return await self.verify_token(credential)

    async def inspect(self, credential: str) -> SessionRecord | None:
        raise UnsupportedOperationError("get_session is only available in stateful session mode.")

    async def revoke(self, credential: str) -> None:
        raise UnsupportedOperationError("delete_session is only available in stateful session mode.")
