"""Proxy core: forwards JSON-RPC messages to the authenticated upstream.

Per message:
    Start -> TokenResolved -> Dispatched -> ResponseValidated | Failed -> Done

Requests always produce exactly one response dict, either the upstream
response verbatim or a JSON-RPC error. Notifications never produce one;
failures are logged and absorbed. Nothing is retried.

Session handling:
- Only an ``initialize`` response may establish the session id
- An upstream HTTP 404 on any message clears it
"""

from __future__ import annotations

__all__ = [
    "McpProxy",
    "ProxyContext",
    "create_proxy",
    "is_notification",
    "is_request",
    "is_response",
    "validate_response",
]

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from mcp_gcloud_proxy.auth.credentials import GoogleIdTokenProvider
from mcp_gcloud_proxy.auth.token_manager import TokenManager
from mcp_gcloud_proxy.constants import (
    ACCEPT_HEADER_VALUE,
    APP_NAME,
    HANDSHAKE_METHOD,
    JSON_CONTENT_TYPE,
    JSONRPC_VERSION,
    SESSION_HEADER,
)
from mcp_gcloud_proxy.error_translator import (
    error_response,
    from_unexpected,
    from_upstream,
    invalid_response,
)
from mcp_gcloud_proxy.exceptions import AuthError, HttpStatusError, ResponseShapeError, UpstreamError
from mcp_gcloud_proxy.session import SessionManager
from mcp_gcloud_proxy.utils.logging.logging_helpers import summarize_message
from mcp_gcloud_proxy.utils.transport import UpstreamTransport

if TYPE_CHECKING:
    from mcp_gcloud_proxy.auth.credentials import IdTokenProvider
    from mcp_gcloud_proxy.config import AppConfig
    from mcp_gcloud_proxy.utils.transport import UpstreamResponse

_logger = logging.getLogger(f"{APP_NAME}.proxy")


# =============================================================================
# Message Classification
# =============================================================================


def is_request(message: Any) -> bool:
    """True for ``{method, id}`` messages."""
    return isinstance(message, dict) and isinstance(message.get("method"), str) and "id" in message


def is_notification(message: Any) -> bool:
    """True for ``{method}`` messages without an id."""
    return isinstance(message, dict) and isinstance(message.get("method"), str) and "id" not in message


def is_response(message: Any) -> bool:
    """True for ``{id, result}`` or ``{id, error}`` messages."""
    return (
        isinstance(message, dict)
        and "method" not in message
        and "id" in message
        and ("result" in message or "error" in message)
    )


def validate_response(data: Any, request_id: Any) -> dict[str, Any]:
    """Check that data is a JSON-RPC 2.0 response to request_id.

    Args:
        data: Parsed upstream body.
        request_id: Id of the request that was forwarded.

    Returns:
        data, unchanged.

    Raises:
        ResponseShapeError: If the envelope is wrong, the id does not match,
            or the body carries neither result nor error.
    """
    if not isinstance(data, dict):
        raise ResponseShapeError("Response is not a JSON object", data)
    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise ResponseShapeError("Response is missing jsonrpc 2.0 marker", data)
    if "id" not in data or data["id"] != request_id or type(data["id"]) is not type(request_id):
        raise ResponseShapeError("Response id does not match request id", data)
    if "result" not in data and "error" not in data:
        raise ResponseShapeError("Response carries neither result nor error", data)
    return data


# =============================================================================
# Proxy
# =============================================================================


@dataclass
class ProxyContext:
    """Everything one proxy instance owns.

    Attributes:
        target_url: Upstream endpoint and token audience.
        timeout_ms: Per-request deadline in milliseconds.
        token_manager: ID token cache.
        session: Upstream session id holder.
        transport: Upstream HTTP transport.
    """

    target_url: str
    timeout_ms: int
    token_manager: TokenManager
    session: SessionManager
    transport: UpstreamTransport

    @property
    def requires_auth(self) -> bool:
        """Plain http:// targets (local development servers) get no token."""
        return self.target_url.lower().startswith("https://")


class McpProxy:
    """Forwards stdio JSON-RPC messages to the upstream over HTTPS.

    Usage:
        proxy = create_proxy(config)
        reply = await proxy.handle_message({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    """

    def __init__(self, context: ProxyContext) -> None:
        self.context = context

    async def handle_message(self, message: Any) -> Any:
        """Dispatch a message by kind.

        Args:
            message: Decoded inbound JSON-RPC message.

        Returns:
            For requests, the response dict. For notifications, the original
            notification (there is nothing to reply). Anything else is
            returned untouched.
        """
        if is_request(message):
            return await self.handle_request(message)
        if is_notification(message):
            await self._forward_notification(message)
            return message
        return message

    async def handle_request(self, request: dict[str, Any]) -> dict[str, Any]:
        """Forward a request and return the upstream response or an error.

        Never raises except for cancellation.

        Args:
            request: JSON-RPC request with ``id`` and ``method``.

        Returns:
            Upstream response verbatim, or a JSON-RPC error response.
        """
        request_id = request.get("id")
        try:
            response = await self._send(request)
            if request.get("method") == HANDSHAKE_METHOD:
                self._observe_handshake(response)
            return validate_response(response.data, request_id)
        except (AuthError, UpstreamError) as e:
            _logger.warning(
                {
                    "event": "request_failed",
                    "message": e.message,
                    "kind": e.kind,
                    **summarize_message(request),
                }
            )
            return error_response(request_id, from_upstream(e))
        except ResponseShapeError as e:
            _logger.warning(
                {
                    "event": "invalid_upstream_response",
                    "message": e.message,
                    **summarize_message(request),
                }
            )
            return error_response(request_id, invalid_response(e.received))
        except Exception as e:
            _logger.error(
                {
                    "event": "request_error",
                    "message": f"Unexpected error forwarding request: {e}",
                    "error_type": type(e).__name__,
                    **summarize_message(request),
                },
                exc_info=True,
            )
            return error_response(request_id, from_unexpected(e))

    async def _forward_notification(self, notification: dict[str, Any]) -> None:
        """Forward a notification, absorbing every failure."""
        try:
            await self._send(notification)
        except (AuthError, UpstreamError) as e:
            _logger.warning(
                {
                    "event": "notification_forward_failed",
                    "message": e.message,
                    "kind": e.kind,
                    **summarize_message(notification),
                }
            )
        except Exception as e:
            _logger.warning(
                {
                    "event": "notification_forward_failed",
                    "message": f"Unexpected error forwarding notification: {e}",
                    "error_type": type(e).__name__,
                    **summarize_message(notification),
                }
            )

    async def _send(self, message: dict[str, Any]) -> "UpstreamResponse":
        """Resolve the token, POST once, and clear the session on 404.

        Raises:
            AuthError: No token could be obtained (nothing was sent).
            UpstreamError: The POST failed.
        """
        ctx = self.context
        headers = {
            "Content-Type": JSON_CONTENT_TYPE,
            "Accept": ACCEPT_HEADER_VALUE,
        }

        session_id = ctx.session.get()
        if session_id:
            headers[SESSION_HEADER] = session_id

        if ctx.requires_auth:
            token = await ctx.token_manager.get_token(ctx.target_url)
            headers["Authorization"] = f"Bearer {token.value}"

        try:
            return await ctx.transport.post(ctx.target_url, headers, message, ctx.timeout_ms)
        except HttpStatusError as e:
            if e.status == 404:
                ctx.session.clear()
            raise

    def _observe_handshake(self, response: "UpstreamResponse") -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.context.session.set(session_id)


def create_proxy(
    config: "AppConfig",
    *,
    transport: UpstreamTransport | None = None,
    provider: "IdTokenProvider | None" = None,
) -> McpProxy:
    """Build a proxy from configuration.

    Args:
        config: Validated application configuration.
        transport: Upstream transport (default: new UpstreamTransport).
        provider: Credential provider (default: GoogleIdTokenProvider).

    Returns:
        McpProxy with fresh token cache and session.
    """
    if provider is None:
        provider = GoogleIdTokenProvider(credentials_path=config.auth.credentials_path)
    context = ProxyContext(
        target_url=config.proxy.target_url,
        timeout_ms=config.proxy.timeout_ms,
        token_manager=TokenManager(provider, fetch_timeout_seconds=config.proxy.timeout_seconds),
        session=SessionManager(),
        transport=transport or UpstreamTransport(),
    )
    return McpProxy(context)
