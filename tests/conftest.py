# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

import itertools
from typing import Any

import pytest
from pydantic import SecretStr

from coreason_auth.exceptions import DuplicateUserError
from coreason_auth.models import SessionRecord, User

SECRET = "test-secret-with-enough-entropy-0123456789"
NOW = 1_700_000_000


class FrozenClock:
    """Deterministic clock that only moves when told to."""

    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SequentialIds:
    """Deterministic id factory: jti-1, jti-2, ..."""

    def __init__(self, prefix: str = "jti") -> None:
        self._counter = itertools.count(1)
        self.prefix = prefix

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


class InMemoryStorage:
    """Full Storage Port implementation backed by dictionaries."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.sessions: dict[str, SessionRecord] = {}
        self._ids = itertools.count(1)

    async def find_user_by_unique_field(self, identifier: str) -> User | None:
        return self.users.get(identifier)

    async def create_user(self, user: User) -> User | None:
        if user.username in self.users:
            raise DuplicateUserError(user.username)
        stored = user.model_copy(update={"id": str(len(self.users) + 1)})
        self.users[user.username] = stored
        return stored

    async def create_session(self, subject: str, expires_at: int) -> str:
        session_id = f"sess-{next(self._ids)}"
        self.sessions[session_id] = SessionRecord(subject=subject, expires_at=expires_at, session_id=session_id)
        return session_id

    async def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    async def delete_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


class UserOnlyStorage:
    """Storage that only knows about users."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}

    async def find_user_by_unique_field(self, identifier: str) -> User | None:
        return self.users.get(identifier)

    async def create_user(self, user: User) -> User | None:
        self.users[user.username] = user
        return user


class DictSessionStorage:
    """Session-only storage that hands back plain mappings with claim-style keys."""

    def __init__(self) -> None:
        self.sessions: dict[str, dict[str, Any]] = {}

    async def create_session(self, subject: str, expires_at: int) -> str:
        session_id = f"dict-{len(self.sessions) + 1}"
        self.sessions[session_id] = {"sub": subject, "exp": expires_at, "id": session_id}
        return session_id

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        return self.sessions.get(session_id)

    async def delete_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def ids() -> SequentialIds:
    return SequentialIds()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def secret() -> SecretStr:
    return SecretStr(SECRET)


@pytest.fixture
def user_only_storage() -> UserOnlyStorage:
    return UserOnlyStorage()


@pytest.fixture
def dict_session_storage() -> DictSessionStorage:
    return DictSessionStorage()
