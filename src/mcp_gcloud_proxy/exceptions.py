"""Custom exceptions for mcp-gcloud-proxy.

This module contains all custom exceptions used throughout the package.
Exceptions are organized into three categories:

Authentication Errors (request fails before any upstream call):
    - AuthError: Base for identity token failures
    - NoCredentialsError, InvalidAudienceError, TokenFetchError, InvalidTokenError

Upstream Errors (the single upstream call failed):
    - UpstreamError: Base for transport-level failures
    - NetworkError, UpstreamTimeoutError, HttpStatusError, UpstreamParseError
    - ResponseShapeError: Upstream answered, but not with a JSON-RPC response

Startup Failures (proxy cannot start):
    - ConfigurationError: Invalid CLI options or environment

Every error carries a stable ``kind`` string that ends up in the ``data``
field of the JSON-RPC error returned to the client.

Usage:
    from mcp_gcloud_proxy.exceptions import AuthError, HttpStatusError
"""

from __future__ import annotations

__all__ = [
    "AuthError",
    "ConfigurationError",
    "HttpStatusError",
    "InvalidAudienceError",
    "InvalidTokenError",
    "NetworkError",
    "NoCredentialsError",
    "ProxyError",
    "ResponseShapeError",
    "TokenFetchError",
    "UpstreamError",
    "UpstreamParseError",
    "UpstreamTimeoutError",
]

from typing import Any


class ProxyError(Exception):
    """Base exception for failures the proxy turns into JSON-RPC errors.

    Attributes:
        kind: Stable machine-readable category (e.g. "network", "no-credentials").
        message: Human-readable description.
    """

    kind: str = "unknown"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


# =============================================================================
# Authentication Errors
# =============================================================================


class AuthError(ProxyError):
    """Identity token could not be obtained for the target audience.

    Raised by the token manager and credential providers. The proxy never
    sends the upstream request when this is raised.

    Attributes:
        suggestion: Short remediation hint shown to the user.
    """

    kind = "auth"
    suggestion: str = "Check your Google Cloud credentials"


class NoCredentialsError(AuthError):
    """No usable credential source, or one that cannot mint ID tokens.

    Raised when:
    - Application Default Credentials are not configured
    - The configured key file is missing or unreadable
    - The discovered credentials are user credentials, which cannot mint
      identity tokens for an arbitrary audience
    """

    kind = "no-credentials"
    suggestion = 'Run "gcloud auth application-default login" or set GOOGLE_APPLICATION_CREDENTIALS'


class InvalidAudienceError(AuthError):
    """Audience is not an absolute HTTPS URL."""

    kind = "invalid-audience"
    suggestion = "Ensure the URL is a valid HTTPS endpoint"


class TokenFetchError(AuthError):
    """Credential provider failed or returned an unusable token."""

    kind = "token-fetch-failed"
    suggestion = "Check your Google Cloud credentials and permissions"


class InvalidTokenError(AuthError):
    """A token was obtained but cannot be used as a bearer credential."""

    kind = "invalid-token"
    suggestion = "Try refreshing your authentication credentials"


# =============================================================================
# Upstream Errors
# =============================================================================


class UpstreamError(ProxyError):
    """The upstream HTTP call failed."""

    kind = "upstream"


class NetworkError(UpstreamError):
    """Connection-level failure (DNS, refused, reset, TLS)."""

    kind = "network"


class UpstreamTimeoutError(UpstreamError):
    """The upstream call exceeded its deadline or was cancelled."""

    kind = "timeout"


class HttpStatusError(UpstreamError):
    """Upstream answered with a non-success HTTP status.

    Attributes:
        status: HTTP status code.
        body: Raw response body text (may be empty).
    """

    kind = "http-status"

    def __init__(self, status: int, message: str, body: str = "") -> None:
        super().__init__(message)
        self.status = status
        self.body = body

    def __repr__(self) -> str:
        return f"HttpStatusError(status={self.status}, message={self.message!r})"


class UpstreamParseError(UpstreamError):
    """Upstream body could not be decoded as JSON (or as an SSE JSON event).

    Attributes:
        body: Raw response body text.
    """

    kind = "parse"

    def __init__(self, message: str, body: str = "") -> None:
        super().__init__(message)
        self.body = body


class ResponseShapeError(ProxyError):
    """Upstream body is not a JSON-RPC 2.0 response for the request.

    Attributes:
        received: The payload as received (already JSON-decoded).
    """

    kind = "invalid-response"

    def __init__(self, message: str, received: Any = None) -> None:
        super().__init__(message)
        self.received = received


# =============================================================================
# Startup Failures
# =============================================================================


class ConfigurationError(Exception):
    """Configuration is invalid or incomplete.

    Raised when:
    - Target URL is missing or not HTTP(S)
    - Timeout is outside the accepted range
    - Settings fail Pydantic validation
    """
