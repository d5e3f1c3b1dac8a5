"""Tests for the X-SBTC-Signature codec."""

from __future__ import annotations

import hashlib
import hmac

import pytest

from sbtc_pay.notifications import signature
from sbtc_pay.notifications.signature import TOLERANCE_SECONDS, sign, verify

SECRET = "whsec_test_secret"
PAYLOAD = b'{"id":"evt_1","type":"payment_intent.succeeded"}'
NOW = 1_700_000_000


@pytest.fixture(autouse=True)
def _frozen_clock(monkeypatch):
    monkeypatch.setattr(signature, "_unix_now", lambda: NOW)


class TestSign:
    def test_header_layout(self) -> None:
        header = sign(PAYLOAD, SECRET, timestamp=NOW)
        ts, v1 = header.split(",")
        assert ts == f"t={NOW}"
        assert v1.startswith("v1=")
        assert len(v1) == len("v1=") + 64

    def test_known_vector(self) -> None:
        expected = hmac.new(
            SECRET.encode(), f"{NOW}.".encode() + PAYLOAD, hashlib.sha256
        ).hexdigest()
        assert sign(PAYLOAD, SECRET, timestamp=NOW) == f"t={NOW},v1={expected}"

    def test_defaults_to_now(self) -> None:
        assert sign(PAYLOAD, SECRET).startswith(f"t={NOW},")

    def test_str_payload_is_utf8(self) -> None:
        assert sign(PAYLOAD.decode(), SECRET, timestamp=NOW) == sign(
            PAYLOAD, SECRET, timestamp=NOW
        )


class TestVerify:
    def test_roundtrip(self) -> None:
        assert verify(PAYLOAD, sign(PAYLOAD, SECRET), SECRET) is True

    def test_tampered_payload(self) -> None:
        header = sign(PAYLOAD, SECRET)
        assert verify(PAYLOAD + b" ", header, SECRET) is False

    def test_wrong_secret(self) -> None:
        header = sign(PAYLOAD, SECRET)
        assert verify(PAYLOAD, header, "whsec_other") is False

    def test_tampered_timestamp(self) -> None:
        header = sign(PAYLOAD, SECRET, timestamp=NOW)
        forged = header.replace(f"t={NOW}", f"t={NOW - 1}")
        assert verify(PAYLOAD, forged, SECRET) is False

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "",
            "garbage",
            f"t={NOW}",
            "v1=abcdef",
            "t=notanumber,v1=abcdef",
            f"t={NOW},v1=",
        ],
    )
    def test_malformed_header(self, header) -> None:
        assert verify(PAYLOAD, header, SECRET) is False

    def test_empty_secret_fails_closed(self) -> None:
        header = sign(PAYLOAD, "")
        assert verify(PAYLOAD, header, "") is False

    def test_at_tolerance_edge(self) -> None:
        header = sign(PAYLOAD, SECRET, timestamp=NOW - TOLERANCE_SECONDS)
        assert verify(PAYLOAD, header, SECRET) is True

    def test_past_tolerance(self) -> None:
        header = sign(PAYLOAD, SECRET, timestamp=NOW - TOLERANCE_SECONDS - 1)
        assert verify(PAYLOAD, header, SECRET) is False

    def test_future_timestamp_past_tolerance(self) -> None:
        header = sign(PAYLOAD, SECRET, timestamp=NOW + TOLERANCE_SECONDS + 1)
        assert verify(PAYLOAD, header, SECRET) is False

    def test_tolerance_is_five_minutes(self) -> None:
        assert TOLERANCE_SECONDS == 300

    def test_element_order_does_not_matter(self) -> None:
        ts, v1 = sign(PAYLOAD, SECRET).split(",")
        assert verify(PAYLOAD, f"{v1}, {ts}", SECRET) is True
