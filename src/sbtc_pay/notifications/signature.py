"""Webhook signature codec.

Header format: ``t=<unix seconds>,v1=<hex HMAC-SHA256 of "<t>.<payload>">``.
Merchants verify with the same rules, so the hash, the layout and the
300 second tolerance are fixed.
"""

from __future__ import annotations

import logging
import time

from sbtc_pay.utils.crypto import constant_time_equals, hmac_sha256_hex

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-SBTC-Signature"
EVENT_ID_HEADER = "X-SBTC-Event-Id"
EVENT_TYPE_HEADER = "X-SBTC-Event-Type"

TOLERANCE_SECONDS = 300
SIGNATURE_VERSION = "v1"


def _unix_now() -> int:
    return int(time.time())


def _as_bytes(payload: bytes | str) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else payload


def _digest(timestamp: int, payload: bytes, secret: str) -> str:
    return hmac_sha256_hex(secret, str(timestamp).encode("ascii") + b"." + payload)


def sign(payload: bytes | str, secret: str, *, timestamp: int | None = None) -> str:
    """Build the signature header value for *payload*.

    Args:
        payload: Exact request body bytes (str is UTF-8 encoded).
        secret: The endpoint's signing secret.
        timestamp: Unix seconds to sign at; defaults to now.
    """
    ts = _unix_now() if timestamp is None else timestamp
    return f"t={ts},{SIGNATURE_VERSION}={_digest(ts, _as_bytes(payload), secret)}"


def _parse_header(header: str) -> tuple[int, str] | None:
    timestamp: int | None = None
    signature: str | None = None
    for element in header.split(","):
        key, sep, value = element.strip().partition("=")
        if not sep:
            continue
        if key == "t" and timestamp is None:
            try:
                timestamp = int(value)
            except ValueError:
                return None
        elif key == SIGNATURE_VERSION and signature is None:
            signature = value
    if timestamp is None or not signature:
        return None
    return timestamp, signature


def verify(payload: bytes | str, header: str | None, secret: str) -> bool:
    """Check a signature header against *payload*.

    Fails closed: a missing or malformed header, a timestamp more than
    :data:`TOLERANCE_SECONDS` away from now, or a digest mismatch all
    return ``False``.
    """
    if not header or not secret:
        return False
    parsed = _parse_header(header)
    if parsed is None:
        logger.debug("Rejecting malformed signature header")
        return False
    timestamp, signature = parsed
    if abs(_unix_now() - timestamp) > TOLERANCE_SECONDS:
        logger.debug("Rejecting signature outside the tolerance window (t=%d)", timestamp)
        return False
    expected = _digest(timestamp, _as_bytes(payload), secret)
    return constant_time_equals(expected, signature)
