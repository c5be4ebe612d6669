"""Per-audience identity token cache.

The TokenManager hands out ID tokens for the upstream audience:
- Cached tokens are reused until they are within 5 minutes of expiry
- Expired or missing tokens are fetched from the credential provider
- Concurrent misses for the same audience share one provider call

Nothing is refreshed in the background and nothing is retried; a failed
fetch surfaces as an AuthError to the caller.
"""

from __future__ import annotations

__all__ = [
    "IdToken",
    "TokenManager",
]

import asyncio
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import httpx

from mcp_gcloud_proxy.auth.token_parser import extract_expiry
from mcp_gcloud_proxy.constants import APP_NAME, TOKEN_REFRESH_BUFFER_SECONDS
from mcp_gcloud_proxy.exceptions import AuthError, InvalidAudienceError, TokenFetchError

if TYPE_CHECKING:
    from mcp_gcloud_proxy.auth.credentials import IdTokenProvider

_logger = logging.getLogger(f"{APP_NAME}.auth.token_manager")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IdToken:
    """An identity token and its expiry.

    Attributes:
        value: Raw bearer token. Never shown in repr.
        expires_at: Expiry (timezone-aware UTC).
    """

    value: str
    expires_at: datetime

    def __repr__(self) -> str:
        return f"IdToken(value='[REDACTED]', expires_at={self.expires_at.isoformat()})"

    def seconds_until_expiry(self, now: datetime) -> float:
        """Seconds left before expiry (negative once expired)."""
        return (self.expires_at - now).total_seconds()


class TokenManager:
    """Caches ID tokens per audience and fetches them on demand.

    Usage:
        manager = TokenManager(GoogleIdTokenProvider())
        token = await manager.get_token("https://svc-abc.a.run.app")
        headers["Authorization"] = f"Bearer {token.value}"
    """

    def __init__(
        self,
        provider: "IdTokenProvider",
        fetch_timeout_seconds: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize token manager.

        Args:
            provider: Credential provider that mints tokens.
            fetch_timeout_seconds: Upper bound for one provider call.
            clock: Returns the current UTC time (injectable for tests).
        """
        self._provider = provider
        self._fetch_timeout = fetch_timeout_seconds
        self._clock = clock
        self._cache: dict[str, IdToken] = {}
        self._cache_lock = threading.Lock()
        self._fetch_locks: dict[str, asyncio.Lock] = {}

    async def get_token(self, audience: str) -> IdToken:
        """Return a valid token for audience, fetching one if needed.

        Args:
            audience: Target URL (must be absolute HTTPS).

        Returns:
            IdToken with more than the refresh buffer left before expiry,
            or a freshly fetched one.

        Raises:
            InvalidAudienceError: Audience is not an absolute HTTPS URL.
            NoCredentialsError: No usable credential source.
            TokenFetchError: Provider failed or returned an unusable value.
        """
        _validate_audience(audience)

        token = self._fresh_cached(audience)
        if token is not None:
            return token

        if audience not in self._fetch_locks:
            self._fetch_locks[audience] = asyncio.Lock()
        async with self._fetch_locks[audience]:
            # Another caller may have fetched while we waited
            token = self._fresh_cached(audience)
            if token is not None:
                return token
            return await self._fetch(audience)

    async def refresh_token(self, audience: str) -> IdToken:
        """Evict the cached token for audience and fetch a new one.

        Raises:
            AuthError: Same conditions as get_token().
        """
        self.invalidate(audience)
        return await self.get_token(audience)

    def invalidate(self, audience: str) -> None:
        """Drop the cached token for audience (no-op if absent)."""
        with self._cache_lock:
            self._cache.pop(audience, None)

    def cached_token(self, audience: str) -> IdToken | None:
        """Return the cached entry for audience, fresh or not."""
        with self._cache_lock:
            return self._cache.get(audience)

    def _fresh_cached(self, audience: str) -> IdToken | None:
        token = self.cached_token(audience)
        if token is None:
            return None
        if token.seconds_until_expiry(self._clock()) > TOKEN_REFRESH_BUFFER_SECONDS:
            return token
        return None

    async def _fetch(self, audience: str) -> IdToken:
        """Call the provider in a worker thread and cache the result."""
        try:
            value = await asyncio.wait_for(
                asyncio.to_thread(self._provider.fetch_id_token, audience),
                timeout=self._fetch_timeout,
            )
        except AuthError as e:
            _logger.warning(
                {
                    "event": "token_fetch_failed",
                    "message": e.message,
                    "kind": e.kind,
                    "audience": audience,
                }
            )
            raise
        except asyncio.TimeoutError as e:
            _logger.warning(
                {
                    "event": "token_fetch_failed",
                    "message": "Timed out fetching ID token",
                    "kind": TokenFetchError.kind,
                    "audience": audience,
                }
            )
            raise TokenFetchError(f"Failed to fetch ID token: timed out after {self._fetch_timeout}s") from e
        except Exception as e:
            _logger.warning(
                {
                    "event": "token_fetch_failed",
                    "message": f"Failed to fetch ID token: {e}",
                    "kind": TokenFetchError.kind,
                    "error_type": type(e).__name__,
                    "audience": audience,
                }
            )
            raise TokenFetchError(f"Failed to fetch ID token: {e}") from e

        if not isinstance(value, str) or not value:
            raise TokenFetchError("Failed to retrieve a valid ID token.")

        now = self._clock()
        token = IdToken(value=value, expires_at=extract_expiry(value, now))
        with self._cache_lock:
            self._cache[audience] = token

        _logger.info(
            {
                "event": "token_fetched",
                "message": "Fetched new ID token",
                "audience": audience,
                "expires_at": token.expires_at.isoformat(),
            }
        )
        return token


def _validate_audience(audience: str) -> None:
    """Raise InvalidAudienceError unless audience is an absolute HTTPS URL."""
    try:
        url = httpx.URL(audience)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidAudienceError(f"Invalid audience: {audience}. Must be a valid HTTPS URL.") from e
    if url.scheme != "https" or not url.host:
        raise InvalidAudienceError(f"Invalid audience: {audience}. Must be a valid HTTPS URL.")
