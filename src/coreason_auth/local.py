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
LocalCredentialStrategy component for username/password registration and login.
"""

import anyio

from coreason_auth import codec
from coreason_auth.exceptions import DuplicateUserError
from coreason_auth.models import User
from coreason_auth.storage import USER_CAPABILITIES, StorageCapabilities, UserStore
from coreason_auth.utils.logger import logger


class LocalCredentialStrategy:
    """
    Registers and authenticates users against the host's storage.

    scrypt is CPU-bound, so hashing and verification run in a worker thread.
    """

    def __init__(self, storage: UserStore, capabilities: StorageCapabilities | None = None) -> None:
        """
        Initialize the LocalCredentialStrategy.

        Args:
            storage: Host storage implementing the user operations.
            capabilities: Pre-negotiated capabilities; negotiated here if omitted.

        Raises:
            CapabilityMissingError: If the storage lacks any user operation.
        """
        if capabilities is None:
            capabilities = StorageCapabilities.negotiate(storage)
        capabilities.require(*USER_CAPABILITIES)
        self.storage = storage

    async def register(self, username: str, password: str) -> User:
        """
        Creates a user with a freshly hashed password.

        Args:
            username: The unique identity key.
            password: The plaintext password.

        Returns:
            User: The user as persisted by the storage.

        Raises:
            DuplicateUserError: If the username is already taken.
        """
        if await self.storage.find_user_by_unique_field(username) is not None:
            raise DuplicateUserError(f"User '{username}' already exists.")

        password_hash = await anyio.to_thread.run_sync(codec.hash_password, password)
        created = await self.storage.create_user(User(username=username, password_hash=password_hash))
        if created is None:
            raise DuplicateUserError(f"User '{username}' already exists.")

        logger.info("Local user registered.")
        return created

    async def login(self, username: str, password: str) -> User | None:
        """
        Authenticates a user by password.

        Args:
            username: The unique identity key.
            password: The plaintext password.

        Returns:
            User | None: The user on success; None for unknown users, OAuth-only users, or a wrong password.
        """
        user = await self.storage.find_user_by_unique_field(username)
        if user is None or not user.password_hash:
            return None

        if await anyio.to_thread.run_sync(codec.verify_password, user.password_hash, password):
            return user
        return None
