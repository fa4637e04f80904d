# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_auth

import base64
import hashlib
import hmac
import json
import re

import pytest

from coreason_auth import codec

SECRET = "test-secret-with-enough-entropy-0123456789"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64_decode(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


# --- Password hashing ---


def test_hash_password_format() -> None:
    hashed = codec.hash_password("abc")
    assert re.fullmatch(r"[0-9a-f]{32}:[0-9a-f]{128}", hashed)


def test_verify_password_correct_and_incorrect() -> None:
    hashed = codec.hash_password("abc")
    assert codec.verify_password(hashed, "abc") is True
    assert codec.verify_password(hashed, "abd") is False


def test_hashes_of_same_password_differ_and_both_verify() -> None:
    """Salt uniqueness: identical passwords never share a hash."""
    first = codec.hash_password("mypassword123")
    second = codec.hash_password("mypassword123")
    assert first != second
    assert first.split(":")[0] != second.split(":")[0]
    assert codec.verify_password(first, "mypassword123")
    assert codec.verify_password(second, "mypassword123")


def test_empty_password_is_hashed_like_any_other() -> None:
    hashed = codec.hash_password("")
    assert isinstance(hashed, str)
    assert codec.verify_password(hashed, "")
    assert not codec.verify_password(hashed, " ")


def test_unicode_password() -> None:
    hashed = codec.hash_password("pässwörd-🔑")
    assert codec.verify_password(hashed, "pässwörd-🔑")
    assert not codec.verify_password(hashed, "passwort-🔑")


def test_hash_uses_scrypt_over_hex_salt_text() -> None:
    """The stored hash is scrypt(password, salt=hex salt text, N=16384, r=8, p=1, dklen=64)."""
    hashed = codec.hash_password("portable")
    salt_hex, key_hex = hashed.split(":")
    expected = hashlib.scrypt(b"portable", salt=salt_hex.encode("ascii"), n=16384, r=8, p=1, dklen=64)
    assert key_hex == expected.hex()


@pytest.mark.parametrize(
    "stored",
    [
        "",
        "no-separator",
        "a:b:c",
        ":deadbeef",
        "deadbeef:",
        "deadbeef:not-hex",
        "aabb: ",
        "aabb:",
    ],
)
def test_verify_password_malformed_stored_value(stored: str) -> None:
    assert codec.verify_password(stored, "anything") is False


def test_verify_password_uses_constant_time_comparison(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[bytes, bytes]] = []
    real = hmac.compare_digest

    def spy(a: bytes, b: bytes) -> bool:
        calls.append((a, b))
        return real(a, b)

    monkeypatch.setattr(codec.hmac, "compare_digest", spy)
    hashed = codec.hash_password("abc")
    assert codec.verify_password(hashed, "abc")
    assert len(calls) == 1


# --- Token signing ---


def test_sign_and_verify_round_trip() -> None:
    payload = {"sub": "123", "exp": 4_000_000_000, "jti": "j1", "roles": ["a", "b"], "nested": {"k": 1}}
    token = codec.sign_token(payload, SECRET)
    assert codec.verify_token(token, SECRET) == payload


def test_token_wire_format() -> None:
    token = codec.sign_token({"sub": "123"}, SECRET)
    header_segment, payload_segment, signature_segment = token.split(".")

    assert json.loads(_b64_decode(header_segment)) == {"alg": "HS256", "typ": "JWT"}
    assert json.loads(_b64_decode(payload_segment)) == {"sub": "123"}
    assert "=" not in token

    expected = hmac.new(
        SECRET.encode(), f"{header_segment}.{payload_segment}".encode(), hashlib.sha256
    ).digest()
    assert signature_segment == _b64(expected)


def test_signature_is_deterministic() -> None:
    payload = {"sub": "alice", "exp": 1}
    assert codec.sign_token(payload, SECRET) == codec.sign_token(payload, SECRET)


def test_sensitive_claim_names_are_allowed() -> None:
    payload = {"sub": "alice", "token": "opaque", "password": "not-really"}
    token = codec.sign_token(payload, SECRET)
    assert codec.verify_token(token, SECRET) == payload


def test_tampered_signature_is_rejected() -> None:
    token = codec.sign_token({"sub": "123"}, SECRET)
    header_segment, payload_segment, _ = token.split(".")
    assert codec.verify_token(f"{header_segment}.{payload_segment}.tampered", SECRET) is None


def test_every_signature_character_matters() -> None:
    token = codec.sign_token({"sub": "123", "exp": 99}, SECRET)
    head, signature = token.rsplit(".", 1)
    for i, char in enumerate(signature):
        replacement = "A" if char != "A" else "B"
        forged = f"{head}.{signature[:i]}{replacement}{signature[i + 1:]}"
        assert codec.verify_token(forged, SECRET) is None


def test_tampered_payload_is_rejected() -> None:
    token = codec.sign_token({"sub": "alice", "exp": 1}, SECRET)
    header_segment, _, signature_segment = token.split(".")
    forged_payload = _b64(json.dumps({"sub": "mallory", "exp": 1}).encode())
    assert codec.verify_token(f"{header_segment}.{forged_payload}.{signature_segment}", SECRET) is None


def test_wrong_secret_is_rejected() -> None:
    token = codec.sign_token({"sub": "123"}, SECRET)
    assert codec.verify_token(token, "another-secret-with-enough-entropy-9876") is None


@pytest.mark.parametrize("token", ["", "not.a.token", "only.two", "a.b.c.d", "....", "ü.ö.ä"])
def test_malformed_tokens_are_rejected(token: str) -> None:
    assert codec.verify_token(token, SECRET) is None


def _forge(header: bytes, payload: bytes, secret: str = SECRET) -> str:
    header_segment = _b64(header)
    payload_segment = _b64(payload)
    signature = hmac.new(secret.encode(), f"{header_segment}.{payload_segment}".encode(), hashlib.sha256).digest()
    return f"{header_segment}.{payload_segment}.{_b64(signature)}"


def test_correctly_signed_but_unparseable_payload_is_rejected() -> None:
    token = _forge(b'{"alg":"HS256","typ":"JWT"}', b"{not json")
    assert codec.verify_token(token, SECRET) is None


def test_correctly_signed_non_object_payload_is_rejected() -> None:
    token = _forge(b'{"alg":"HS256","typ":"JWT"}', b'["sub", "alice"]')
    assert codec.verify_token(token, SECRET) is None


def test_correctly_signed_foreign_algorithm_header_is_rejected() -> None:
    token = _forge(b'{"alg":"none","typ":"JWT"}', b'{"sub":"alice"}')
    assert codec.verify_token(token, SECRET) is None


def test_token_with_unencodable_characters_is_rejected() -> None:
    assert codec.verify_token("a.b.\ud800", SECRET) is None
    assert codec.verify_token("\udfff.b.c", SECRET) is None


def test_empty_secret_is_rejected_by_both_directions() -> None:
    with pytest.raises(ValueError, match="secret"):
        codec.sign_token({"sub": "alice"}, "")
    token = codec.sign_token({"sub": "alice"}, SECRET)
    with pytest.raises(ValueError, match="secret"):
        codec.verify_token(token, "")


def test_unsigned_token_is_rejected() -> None:
    header_segment = _b64(b'{"alg":"none","typ":"JWT"}')
    payload_segment = _b64(b'{"sub":"alice"}')
    assert codec.verify_token(f"{header_segment}.{payload_segment}.", SECRET) is None


def test_payload_is_never_decoded_when_signature_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    """The signature gate runs before anything is parsed."""

    def explode(*_: object) -> None:
        raise AssertionError("payload decoded before signature check")

    monkeypatch.setattr(codec, "json_loads", explode)
    token = codec.sign_token({"sub": "alice"}, SECRET)
    assert codec.verify_token(token, "wrong-secret-wrong-secret-wrong-secret") is None


# --- PKCE ---


def test_code_verifier_is_long_and_url_safe() -> None:
    verifier = codec.generate_code_verifier()
    assert 43 <= len(verifier) <= 128
    assert re.fullmatch(r"[A-Za-z0-9_-]+", verifier)


def test_code_verifiers_are_unique() -> None:
    assert len({codec.generate_code_verifier() for _ in range(50)}) == 50


def test_code_challenge_is_rfc7636_s256() -> None:
    # RFC 7636 Appendix B test vector
    verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
    assert codec.generate_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_code_challenge_is_not_keyed_by_verifier() -> None:
    verifier = codec.generate_code_verifier()
    keyed = _b64(hmac.new(verifier.encode(), b"", hashlib.sha256).digest())
    assert codec.generate_code_challenge(verifier) != keyed


def test_generate_pkce_pair() -> None:
    pair = codec.generate_pkce_pair()
    assert pair.code_challenge == codec.generate_code_challenge(pair.code_verifier)
    assert pair.code_challenge_method == "S256"
    assert pair.code_verifier not in repr(pair)
