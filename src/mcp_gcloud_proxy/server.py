"""Stdio server loop.

Reads newline-delimited JSON-RPC messages from stdin and hands each one to
McpProxy in its own task, so a client may pipeline requests. Replies are
written to stdout one JSON line at a time under a lock. Stdout carries
nothing but protocol lines.

Cancellation: each in-flight request runs inside an anyio CancelScope keyed
by its id. A ``notifications/cancelled`` naming that id cancels the scope,
which aborts the upstream HTTP call. The client then gets a timeout-class
error, and the notification is still forwarded upstream.
"""

from __future__ import annotations

__all__ = [
    "StdioProxyServer",
    "run_server",
    "serve",
]

import json
import logging
import signal
import sys
from io import TextIOWrapper
from typing import TYPE_CHECKING, Any

import anyio

from mcp_gcloud_proxy.constants import APP_NAME, CANCELLED_NOTIFICATION
from mcp_gcloud_proxy.error_translator import error_response, from_upstream
from mcp_gcloud_proxy.exceptions import UpstreamTimeoutError
from mcp_gcloud_proxy.proxy import create_proxy, is_notification, is_request, is_response
from mcp_gcloud_proxy.utils.logging.logging_helpers import summarize_message

if TYPE_CHECKING:
    from anyio import AsyncFile

    from mcp_gcloud_proxy.config import AppConfig
    from mcp_gcloud_proxy.proxy import McpProxy

_logger = logging.getLogger(f"{APP_NAME}.server")


class StdioProxyServer:
    """Bridges a line-delimited JSON-RPC stream to McpProxy.

    Usage:
        server = StdioProxyServer(proxy)
        await server.serve()  # returns at EOF once in-flight requests finish
    """

    def __init__(
        self,
        proxy: "McpProxy",
        stdin: "AsyncFile[str] | None" = None,
        stdout: "AsyncFile[str] | None" = None,
    ) -> None:
        """Initialize server.

        Args:
            proxy: Proxy that handles each message.
            stdin: Async text stream to read (default: process stdin, UTF-8).
            stdout: Async text stream to write (default: process stdout, UTF-8).
        """
        self._proxy = proxy
        self._stdin = stdin or anyio.wrap_file(TextIOWrapper(sys.stdin.buffer, encoding="utf-8"))
        self._stdout = stdout or anyio.wrap_file(TextIOWrapper(sys.stdout.buffer, encoding="utf-8"))
        self._write_lock = anyio.Lock()
        self._in_flight: dict[Any, anyio.CancelScope] = {}

    @property
    def in_flight(self) -> int:
        """Number of requests awaiting a reply."""
        return len(self._in_flight)

    async def serve(self) -> None:
        """Read messages until EOF, then wait for in-flight requests."""
        async with anyio.create_task_group() as tg:
            async for line in self._stdin:
                message = self._decode(line)
                if message is None:
                    continue

                if is_request(message):
                    tg.start_soon(self._handle_request, message)
                elif is_notification(message):
                    if message["method"] == CANCELLED_NOTIFICATION:
                        self._cancel_request(message)
                    tg.start_soon(self._proxy.handle_message, message)
                elif is_response(message):
                    _logger.debug(
                        {
                            "event": "client_response_dropped",
                            "message": "Dropping response from client (server-initiated requests are not proxied)",
                            **summarize_message(message),
                        }
                    )
                else:
                    _logger.warning(
                        {
                            "event": "invalid_message",
                            "message": "Dropping message that is not a JSON-RPC request, notification or response",
                            **summarize_message(message),
                        }
                    )

        _logger.info({"event": "stdin_closed", "message": "Client closed stdin, shutting down"})

    async def _handle_request(self, request: dict[str, Any]) -> None:
        request_id = request["id"]
        scope = anyio.CancelScope()
        # Ids that cannot key the map are still forwarded, just not cancellable
        tracked = _is_cancellable_id(request_id)
        if tracked:
            self._in_flight[request_id] = scope
        response: dict[str, Any] | None = None
        try:
            with scope:
                response = await self._proxy.handle_request(request)
        finally:
            if tracked and self._in_flight.get(request_id) is scope:
                del self._in_flight[request_id]

        if scope.cancelled_caught or response is None:
            error = UpstreamTimeoutError("Request cancelled by client")
            response = error_response(request_id, from_upstream(error))

        await self._write(response)

    def _cancel_request(self, notification: dict[str, Any]) -> None:
        params = notification.get("params")
        request_id = params.get("requestId") if isinstance(params, dict) else None
        scope = self._in_flight.get(request_id) if _is_cancellable_id(request_id) else None
        if scope is None:
            _logger.debug(
                {
                    "event": "cancel_unknown_request",
                    "message": "Cancellation for a request that is not in flight",
                    "request_id": request_id,
                }
            )
            return

        _logger.info(
            {
                "event": "request_cancelled",
                "message": "Client cancelled request",
                "request_id": request_id,
            }
        )
        scope.cancel()

    def _decode(self, line: str) -> dict[str, Any] | None:
        """Parse one line; log and return None for blank or invalid input."""
        if not line.strip():
            return None
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            _logger.warning(
                {
                    "event": "invalid_json",
                    "message": f"Dropping line that is not valid JSON: {e.msg}",
                }
            )
            return None
        if not isinstance(message, dict):
            _logger.warning(
                {
                    "event": "invalid_message",
                    "message": "Dropping JSON value that is not an object",
                    "value_type": type(message).__name__,
                }
            )
            return None
        return message

    async def _write(self, message: dict[str, Any]) -> None:
        line = json.dumps(message, ensure_ascii=False)
        async with self._write_lock:
            await self._stdout.write(line + "\n")
            await self._stdout.flush()


def _is_cancellable_id(value: Any) -> bool:
    """JSON-RPC ids are strings or integers; anything else is left untracked."""
    return isinstance(value, (str, int)) and not isinstance(value, bool)


async def _watch_signals(scope: anyio.CancelScope) -> None:
    """Cancel scope on the first SIGINT or SIGTERM."""
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            _logger.info(
                {
                    "event": "signal_received",
                    "message": f"Received {signal.Signals(signum).name}, shutting down",
                }
            )
            scope.cancel()
            return


async def serve(config: "AppConfig", proxy: "McpProxy | None" = None) -> None:
    """Run the proxy on stdio until EOF or a termination signal.

    Args:
        config: Validated configuration.
        proxy: Prebuilt proxy (default: create_proxy(config)).
    """
    proxy = proxy or create_proxy(config)
    server = StdioProxyServer(proxy)

    _logger.info(
        {
            "event": "proxy_started",
            "message": f"Proxying stdio to {config.proxy.target_url}",
            "target_url": config.proxy.target_url,
            "timeout_ms": config.proxy.timeout_ms,
            "version": config.server.version,
        }
    )

    async with proxy.context.transport:
        async with anyio.create_task_group() as tg:
            if sys.platform != "win32":
                tg.start_soon(_watch_signals, tg.cancel_scope)
            await server.serve()
            tg.cancel_scope.cancel()

    _logger.info({"event": "proxy_stopped", "message": "Proxy stopped"})


def run_server(config: "AppConfig") -> None:
    """Blocking entry point used by the CLI."""
    anyio.run(serve, config)
