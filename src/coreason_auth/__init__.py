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
Pluggable authentication core: local credentials, stateful or stateless sessions, and OAuth2 + PKCE delegation.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .config import AuthConfig, OAuthProviderConfig, SessionMode
from .exceptions import (
    CapabilityMissingError,
    ConfigurationInvalidError,
    CoreasonAuthError,
    DuplicateUserError,
    ExchangeFailedError,
    UnsupportedOperationError,
    VerifierMissingError,
)
from .local import LocalCredentialStrategy
from .manager import AuthManager, AuthManagerSync
from .models import OAuthTokenResponse, PKCEPair, SessionRecord, TokenPayload, User
from .oauth import OAuthDelegate
from .sessions import StatefulSessionStrategy, StatelessSessionStrategy
from .storage import SessionStore, StorageCapabilities, UserStore
from .transport import HttpxTransport, HTTPTransport, TransportResponse

__all__ = [
    "AuthConfig",
    "AuthManager",
    "AuthManagerSync",
    "CapabilityMissingError",
    "ConfigurationInvalidError",
    "CoreasonAuthError",
    "DuplicateUserError",
    "ExchangeFailedError",
    "HTTPTransport",
    "HttpxTransport",
    "LocalCredentialStrategy",
    "OAuthDelegate",
    "OAuthProviderConfig",
    "OAuthTokenResponse",
    "PKCEPair",
    "SessionMode",
    "SessionRecord",
    "SessionStore",
    "StatefulSessionStrategy",
    "StatelessSessionStrategy",
    "StorageCapabilities",
    "TokenPayload",
    "TransportResponse",
    "UnsupportedOperationError",
    "User",
    "UserStore",
    "VerifierMissingError",
]
