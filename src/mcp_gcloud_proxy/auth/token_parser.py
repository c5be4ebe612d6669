"""ID token expiry extraction.

Google ID tokens are JWTs with a standard ``exp`` claim. The proxy only needs
the expiry for cache decisions; the signature is verified by the upstream,
not here.
"""

from __future__ import annotations

__all__ = ["extract_expiry"]

from datetime import datetime, timedelta, timezone

import jwt

from mcp_gcloud_proxy.constants import DEFAULT_TOKEN_VALIDITY_SECONDS


def extract_expiry(token: str, now: datetime) -> datetime:
    """Return when a token expires.

    Reads the ``exp`` claim from a three-segment JWT without verifying the
    signature. Anything else (opaque token, malformed payload, missing or
    non-numeric claim) falls back to ``now`` plus the default validity
    window. The fallback is an approximation, not a guarantee.

    Args:
        token: Raw token string.
        now: Fetch time (timezone-aware UTC).

    Returns:
        Timezone-aware UTC expiry.
    """
    fallback = now + timedelta(seconds=DEFAULT_TOKEN_VALIDITY_SECONDS)

    if token.count(".") != 2:
        return fallback

    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return fallback

    exp = claims.get("exp")
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return fallback

    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return fallback
