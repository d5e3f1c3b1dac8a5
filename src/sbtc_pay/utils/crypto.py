"""Cryptographic helpers — HMAC, constant-time compare, random identifiers."""

from __future__ import annotations

import hashlib
import hmac
import secrets


def hmac_sha256_hex(key: str | bytes, data: bytes) -> str:
    """Hex HMAC-SHA256 of *data* keyed by *key*."""
    if isinstance(key, str):
        key = key.encode("utf-8")
    return hmac.new(key, data, hashlib.sha256).hexdigest()


def constant_time_equals(a: str | bytes, b: str | bytes) -> bool:
    """Compare two secrets without leaking their common prefix length."""
    if isinstance(a, str):
        a = a.encode("utf-8")
    if isinstance(b, str):
        b = b.encode("utf-8")
    return hmac.compare_digest(a, b)


def generate_id(prefix: str, nbytes: int = 12) -> str:
    """Random URL-safe identifier such as ``evt_Xq3…``."""
    return f"{prefix}_{secrets.token_urlsafe(nbytes)}"


def generate_webhook_secret() -> str:
    """Signing secret handed to a merchant when an endpoint is registered."""
    return generate_id("whsec", 32)


def parse_bearer_token(authorization: str | None) -> str | None:
    """Return the credential of an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def bearer_matches(authorization: str | None, expected: str) -> bool:
    """Constant-time check of a bearer header against *expected*.

    An empty *expected* never matches, so an unconfigured secret fails closed.
    """
    token = parse_bearer_token(authorization)
    if token is None or not expected:
        return False
    return constant_time_equals(token, expected)
