"""Tests for ID token expiry extraction."""

from __future__ import annotations

import base64
import json
from datetime import datetime, timedelta, timezone

import pytest

from conftest import make_jwt
from mcp_gcloud_proxy.auth.token_parser import extract_expiry


def _unsigned(payload: object) -> str:
    """Three-segment token with an arbitrary payload and a junk signature."""
    header = base64.urlsafe_b64encode(b'{"alg":"RS256","typ":"JWT"}').rstrip(b"=").decode()
    body = base64.urlsafe_b64encode(json.dumps(payload).encode()).rstrip(b"=").decode()
    return f"{header}.{body}.c2lnbmF0dXJl"


class TestExtractExpiry:
    """Expiry comes from the exp claim, else a 1 hour fallback."""

    def test_reads_exp_claim(self, now: datetime) -> None:
        # Arrange
        expires = now + timedelta(minutes=42)

        # Act
        result = extract_expiry(make_jwt(expires), now)

        # Assert
        assert result == expires
        assert result.tzinfo is not None

    def test_signature_is_not_verified(self, now: datetime) -> None:
        expires = now + timedelta(minutes=30)

        assert extract_expiry(_unsigned({"exp": int(expires.timestamp())}), now) == expires

    def test_expired_token_still_reports_its_expiry(self, now: datetime) -> None:
        expires = now - timedelta(hours=2)

        assert extract_expiry(make_jwt(expires), now) == expires

    @pytest.mark.parametrize(
        "token",
        [
            "opaque-access-token",
            "two.segments",
            "not.valid.base64!!",
            "a.b.c.d",
        ],
    )
    def test_unrecognized_format_falls_back_to_one_hour(self, token: str, now: datetime) -> None:
        assert extract_expiry(token, now) == now + timedelta(hours=1)

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"exp": "soon"},
            {"exp": None},
            {"exp": True},
        ],
    )
    def test_missing_or_non_numeric_exp_falls_back(self, payload: dict, now: datetime) -> None:
        assert extract_expiry(_unsigned(payload), now) == now + timedelta(hours=1)

    def test_fallback_is_relative_to_fetch_time(self) -> None:
        # Arrange
        fetched = datetime(2030, 6, 1, tzinfo=timezone.utc)

        # Act
        result = extract_expiry("opaque", fetched)

        # Assert
        assert result == datetime(2030, 6, 1, 1, tzinfo=timezone.utc)
