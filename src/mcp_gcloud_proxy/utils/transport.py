"""Upstream HTTP transport.

Issues the single POST per proxied message and normalizes the outcome:
either an UpstreamResponse (parsed body, status, headers) or an
UpstreamError subclass. Streamable HTTP servers may answer with plain JSON
or a Server-Sent Events stream; both are reduced to one JSON payload here.
"""

from __future__ import annotations

__all__ = [
    "USER_AGENT",
    "UpstreamResponse",
    "UpstreamTransport",
    "parse_body",
]

import json
import logging
from dataclasses import dataclass
from typing import Any

import anyio
import httpx

from mcp_gcloud_proxy import __version__
from mcp_gcloud_proxy.constants import APP_NAME
from mcp_gcloud_proxy.exceptions import (
    HttpStatusError,
    NetworkError,
    UpstreamParseError,
    UpstreamTimeoutError,
)
from mcp_gcloud_proxy.utils.logging.logging_helpers import redact_headers

# User-Agent header for upstream requests (informational, not security)
USER_AGENT = f"{APP_NAME}/{__version__}"

_logger = logging.getLogger(f"{APP_NAME}.transport")


@dataclass(frozen=True)
class UpstreamResponse:
    """Successful upstream reply.

    Attributes:
        data: Parsed JSON body, or None for an empty body (e.g. 202 Accepted).
        status: HTTP status code.
        headers: Response headers (case-insensitive lookup).
    """

    data: Any
    status: int
    headers: httpx.Headers


class UpstreamTransport:
    """POSTs JSON-RPC bodies to the upstream over one shared httpx client.

    Usage:
        async with UpstreamTransport() as transport:
            response = await transport.post(url, headers, body, timeout_ms=120000)
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        """Initialize transport.

        Args:
            client: Preconfigured client (tests inject one backed by
                httpx.MockTransport). A default client is created otherwise.
        """
        self._client = client or httpx.AsyncClient(headers={"User-Agent": USER_AGENT})

    async def post(
        self,
        url: str,
        headers: dict[str, str],
        body: Any,
        timeout_ms: int,
    ) -> UpstreamResponse:
        """Send one request and parse the reply.

        Args:
            url: Upstream endpoint.
            headers: Outbound headers (may include the bearer token).
            body: JSON-serializable message.
            timeout_ms: Deadline for the whole exchange in milliseconds.

        Returns:
            UpstreamResponse for any 2xx reply.

        Raises:
            UpstreamTimeoutError: Deadline exceeded.
            NetworkError: Connection-level failure.
            HttpStatusError: Non-2xx status.
            UpstreamParseError: Body is neither JSON nor an SSE JSON event.
        """
        _logger.debug(
            {
                "event": "upstream_request",
                "message": f"POST {url}",
                "headers": redact_headers(headers),
            }
        )

        # httpx timeouts are per phase; fail_after bounds the whole exchange
        try:
            with anyio.fail_after(timeout_ms / 1000):
                response = await self._client.post(
                    url,
                    headers=headers,
                    content=json.dumps(body).encode("utf-8"),
                    timeout=httpx.Timeout(timeout_ms / 1000),
                )
        except (httpx.TimeoutException, TimeoutError) as e:
            raise UpstreamTimeoutError(f"Request timed out after {timeout_ms} ms") from e
        except httpx.HTTPError as e:
            raise NetworkError(str(e) or type(e).__name__) from e

        text = response.text
        if not response.is_success:
            raise HttpStatusError(
                response.status_code,
                f"HTTP {response.status_code} {response.reason_phrase}".rstrip(),
                text,
            )

        data = parse_body(text, response.headers.get("content-type", ""))

        _logger.debug(
            {
                "event": "upstream_response",
                "message": f"HTTP {response.status_code} from {url}",
                "status": response.status_code,
            }
        )
        return UpstreamResponse(data=data, status=response.status_code, headers=response.headers)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> "UpstreamTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def parse_body(text: str, content_type: str = "") -> Any:
    """Decode an upstream body.

    Args:
        text: Response body.
        content_type: Response Content-Type header value.

    Returns:
        Parsed JSON value, or None for an empty body.

    Raises:
        UpstreamParseError: If no JSON payload can be extracted.
    """
    if not text.strip():
        return None

    if "text/event-stream" in content_type.lower() or _looks_like_sse(text):
        return _parse_sse(text)

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise UpstreamParseError(f"Invalid JSON in response: {e.msg}", text) from e


def _looks_like_sse(text: str) -> bool:
    first = text.lstrip().split("\n", 1)[0]
    return first.startswith(("event:", "data:"))


def _parse_sse(text: str) -> Any:
    """Return the first SSE data payload that parses as JSON."""
    for line in text.splitlines():
        if not line.startswith("data:"):
            continue
        payload = line[len("data:") :].strip()
        if not payload:
            continue
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            continue
    raise UpstreamParseError("No JSON data found in event stream", text)
