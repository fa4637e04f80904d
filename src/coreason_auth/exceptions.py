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
Custom exceptions for the coreason-auth package.

Authentication outcomes (wrong password, expired or tampered token, unknown session)
are never raised. They are returned as ``None`` by the corresponding calls.
"""


class CoreasonAuthError(Exception):
    """Base exception for all coreason-auth errors."""


class ConfigurationInvalidError(CoreasonAuthError):
    """Raised once, at construction time, when the configuration cannot be used."""


class CapabilityMissingError(CoreasonAuthError):
    """
    Raised when the host storage does not implement an operation the core needs.

    Attributes:
        missing (tuple[str, ...]): Names of the missing storage operations.
    """

    def __init__(self, message: str, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.missing = missing


class DuplicateUserError(CoreasonAuthError):
    """Raised when registering a username that already exists."""


class UnsupportedOperationError(CoreasonAuthError):
    """Raised when an operation is not available in the active session mode."""


class OAuthError(CoreasonAuthError):
    """Base exception for OAuth delegation errors."""


class VerifierMissingError(OAuthError):
    """Raised when no PKCE code verifier is available for a code exchange."""


class ExchangeFailedError(OAuthError):
    """
    Raised when the provider's token endpoint rejects a request or returns garbage.

    Attributes:
        status_code (int | None): HTTP status returned by the provider.
        error (str | None): The OAuth ``error`` code, if the provider sent one.
        error_description (str | None): The provider's ``error_description``, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
        error_description: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description


class OversizedResponseError(CoreasonAuthError):
    """Raised when an HTTP response is too large."""
