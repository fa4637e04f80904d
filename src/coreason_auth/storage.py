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
Storage Port: the persistence operations the host application provides.

A host may implement only some of them. Which ones exist is negotiated once, when a
strategy is built, instead of being probed on every call.
"""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from coreason_auth.exceptions import CapabilityMissingError
from coreason_auth.models import SessionRecord, User

USER_CAPABILITIES = ("find_user_by_unique_field", "create_user")
SESSION_CAPABILITIES = ("create_session", "get_session", "delete_session")


@runtime_checkable
class UserStore(Protocol):
    """User lookup and creation."""

    async def find_user_by_unique_field(self, identifier: str) -> User | None:
        """Returns the user whose unique field equals `identifier`, or None."""
        ...

    async def create_user(self, user: User) -> User | None:
        """
        Persists a new user and returns it.

        Implementations signal a duplicate by raising `DuplicateUserError` or returning None.
        """
        ...


@runtime_checkable
class SessionStore(Protocol):
    """Server-side session persistence."""

    async def create_session(self, subject: str, expires_at: int) -> str:
        """Persists a session and returns its opaque identifier."""
        ...

    async def get_session(self, session_id: str) -> SessionRecord | Mapping[str, Any] | None:
        """Fetches a session record, or None if unknown."""
        ...

    async def delete_session(self, session_id: str) -> None:
        """Deletes a session. Deleting an unknown id is not an error."""
        ...


class StorageCapabilities(BaseModel):
    """
    The negotiated set of storage operations available on a host backend.

    Attributes:
        available (frozenset[str]): Names of the operations the backend implements.
    """

    model_config = ConfigDict(frozen=True)

    available: frozenset[str] = frozenset()

    @classmethod
    def negotiate(cls, storage: object | None) -> "StorageCapabilities":
        """
        Inspects a storage object once and records which operations it provides.

        Args:
            storage: The host storage object, or None.

        Returns:
            StorageCapabilities: The negotiated capability set.
        """
        if storage is None:
            return cls()
        names = USER_CAPABILITIES + SESSION_CAPABILITIES
        return cls(available=frozenset(name for name in names if callable(getattr(storage, name, None))))

    def supports(self, *names: str) -> bool:
        return all(name in self.available for name in names)

    def require(self, *names: str) -> None:
        """
        Fails fast if any of the named operations is missing.

        Raises:
            CapabilityMissingError: Listing every missing operation.
        """
        missing = tuple(name for name in names if name not in self.available)
        if missing:
            raise CapabilityMissingError(
                f"Storage backend does not implement: {', '.join(missing)}", missing=missing
            )
