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
Credential codec: password hashing, HS256 token signing and PKCE material.

This module performs no logging. Passwords, secrets and verifiers must never reach a log sink.
"""

import hashlib
import hmac
import secrets
from collections.abc import Mapping
from typing import Any

from authlib.common.encoding import json_loads, to_bytes, to_unicode, urlsafe_b64decode, urlsafe_b64encode
from authlib.jose import JsonWebToken

from coreason_auth.models import PKCEPair

SALT_BYTES = 16
DERIVED_KEY_BYTES = 64
# scrypt cost parameters (N, r, p). 128 * N * r = 16 MiB per derivation.
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_MAXMEM = 64 * 1024 * 1024

HASH_SEPARATOR = ":"
TOKEN_HEADER: dict[str, str] = {"alg": "HS256", "typ": "JWT"}
CODE_VERIFIER_BYTES = 64

# HS256 only
_jwt = JsonWebToken(["HS256"])


def _derive_key(password: str, salt_hex: str, length: int) -> bytes:
    # The hex text of the salt, not its raw bytes, is the scrypt salt
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt_hex.encode("ascii"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        maxmem=SCRYPT_MAXMEM,
        dklen=length,
    )


def hash_password(password: str) -> str:
    """
    Hashes a password with a fresh random salt.

    Args:
        password: The plaintext password. Empty strings are hashed like any other input.

    Returns:
        str: ``hex(salt):hex(derivedKey)``.
    """
    salt_hex = secrets.token_bytes(SALT_BYTES).hex()
    derived = _derive_key(password, salt_hex, DERIVED_KEY_BYTES)
    return f"{salt_hex}{HASH_SEPARATOR}{derived.hex()}"


def verify_password(stored: str, supplied: str) -> bool:
    """
    Checks a supplied password against a stored hash in constant time.

    Args:
        stored: A value previously produced by `hash_password`.
        supplied: The candidate plaintext password.

    Returns:
        bool: True if the password matches. Malformed stored values never match.
    """
    parts = stored.split(HASH_SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return False

    salt_hex, key_hex = parts
    try:
        expected = bytes.fromhex(key_hex)
        salt_hex.encode("ascii")
    except ValueError:
        return False
    if not expected:
        return False

    candidate = _derive_key(supplied, salt_hex, len(expected))
    return hmac.compare_digest(candidate, expected)


def _require_secret(secret: str) -> None:
    if not secret:
        raise ValueError("HMAC secret must not be empty.")


def _signature(signing_input: bytes, secret: str) -> bytes:
    digest = hmac.new(to_bytes(secret), signing_input, hashlib.sha256).digest()
    return urlsafe_b64encode(digest)


def sign_token(payload: Mapping[str, Any], secret: str) -> str:
    """
    Signs a payload as a compact HS256 JWT.

    Args:
        payload: JSON-serializable claims.
        secret: The shared HMAC secret.

    Returns:
        str: ``base64url(header).base64url(payload).base64url(signature)``.

    Raises:
        ValueError: If `secret` is empty.
    """
    _require_secret(secret)
    # check=False: claim names are the caller's choice, authlib's sensitive-name filter does not apply
    token = _jwt.encode(dict(TOKEN_HEADER), dict(payload), secret, check=False)
    return to_unicode(token)


def verify_token(token: str, secret: str) -> dict[str, Any] | None:
    """
    Verifies a compact HS256 token and returns its payload.

    The signature is checked before any segment is decoded, so unauthenticated data is never parsed.
    Expiry is NOT checked here; that is a session concern.

    Args:
        token: The compact token.
        secret: The shared HMAC secret.

    Returns:
        dict[str, Any] | None: The payload, or None if the token is malformed, forged or signed with another secret.

    Raises:
        ValueError: If `secret` is empty.
    """
    _require_secret(secret)
    segments = token.split(".")
    if len(segments) != 3:
        return None

    try:
        header_segment, payload_segment, signature_segment = (to_bytes(s) for s in segments)
    except UnicodeEncodeError:
        return None
    expected = _signature(header_segment + b"." + payload_segment, secret)
    if not hmac.compare_digest(expected, signature_segment):
        return None

    try:
        header = json_loads(to_unicode(urlsafe_b64decode(header_segment)))
        payload = json_loads(to_unicode(urlsafe_b64decode(payload_segment)))
    except ValueError:
        return None

    if not isinstance(header, dict) or header.get("alg") != TOKEN_HEADER["alg"]:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def generate_code_verifier() -> str:
    """Returns a high-entropy, URL-safe PKCE code verifier (RFC 7636 §4.1)."""
    return secrets.token_urlsafe(CODE_VERIFIER_BYTES)


def generate_code_challenge(verifier: str) -> str:
    """
    Computes the S256 code challenge for a verifier.

    Args:
        verifier: The PKCE code verifier.

    Returns:
        str: Base64url-encoded SHA-256 digest of the verifier, without padding.
    """
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return to_unicode(urlsafe_b64encode(digest))


def generate_pkce_pair() -> PKCEPair:
    """Generates a fresh verifier together with its challenge."""
    verifier = generate_code_verifier()
    return PKCEPair(code_verifier=verifier, code_challenge=generate_code_challenge(verifier))
