import asyncio
import contextlib
import itertools
import os
import sys

# Add src to path for running directly
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from pydantic import SecretStr

from coreason_auth.config import AuthConfig, OAuthProviderConfig, SessionMode
from coreason_auth.exceptions import DuplicateUserError, UnsupportedOperationError
from coreason_auth.manager import AuthManager
from coreason_auth.models import SessionRecord, User


class MemoryStorage:
    """Minimal host storage keeping users and sessions in dictionaries."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.sessions: dict[str, SessionRecord] = {}
        self._ids = itertools.count(1)

    async def find_user_by_unique_field(self, identifier: str) -> User | None:
        return self.users.get(identifier)

    async def create_user(self, user: User) -> User | None:
        if user.username in self.users:
            raise DuplicateUserError(user.username)
        self.users[user.username] = user
        return user

    async def create_session(self, subject: str, expires_at: int) -> str:
        session_id = f"session-{next(self._ids)}"
        self.sessions[session_id] = SessionRecord(subject=subject, expires_at=expires_at, session_id=session_id)
        return session_id

    async def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    async def delete_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


async def main() -> None:
    """
    Demonstrates both session modes against the same storage.
    Includes:
    - Local registration and login (scrypt in a worker thread)
    - Stateful sessions that can be revoked
    - Stateless tokens that cannot
    - Building an OAuth authorization URL with a retained PKCE verifier
    """
    storage = MemoryStorage()

    print(">>> Stateful mode")
    stateful = AuthConfig(session_mode=SessionMode.STATEFUL)
    async with AuthManager(stateful, storage=storage) as manager:
        user = await manager.register("alice", "correct horse battery staple")
        print(f"    Registered: {user}")

        logged_in = await manager.login("alice", "correct horse battery staple")
        assert logged_in is not None
        session_id = await manager.create_session(logged_in.username)
        print(f"    Session {session_id} -> {await manager.verify_session(session_id)}")

        await manager.delete_session(session_id)
        print(f"    After logout -> {await manager.verify_session(session_id)}")

    print(">>> Stateless mode")
    stateless = AuthConfig(
        session_mode=SessionMode.STATELESS,
        token_secret=SecretStr("example-secret-do-not-use-in-production"),
        session_ttl=300,
        oauth=OAuthProviderConfig(
            auth_url="https://auth.example.com/authorize",
            token_url="https://auth.example.com/oauth/token",
            client_id="example-client",
            redirect_uri="http://localhost:8000/callback",
            scope="openid profile",
        ),
    )
    async with AuthManager(stateless, storage=storage) as manager:
        token = await manager.create_session("alice")
        print(f"    Token subject -> {await manager.verify_session(token)}")

        try:
            await manager.delete_session(token)
        except UnsupportedOperationError as e:
            print(f"    Expected: {e}")

        print(f"    Authorize at: {manager.get_oauth_url('example-state')}")
        # The provider redirects back with ?code=...&state=example-state;
        # pass both to manager.exchange_oauth_code(code, state=state).


if __name__ == "__main__":
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
