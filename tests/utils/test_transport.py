"""Tests for the upstream HTTP transport.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest

from conftest import TARGET_URL, RecordingUpstream, json_response
from mcp_gcloud_proxy import __version__
from mcp_gcloud_proxy.exceptions import (
    HttpStatusError,
    NetworkError,
    UpstreamParseError,
    UpstreamTimeoutError,
)
from mcp_gcloud_proxy.utils.transport import USER_AGENT, UpstreamTransport, parse_body

HEADERS = {"Content-Type": "application/json", "Authorization": "Bearer secret"}
BODY = {"jsonrpc": "2.0", "id": 1, "method": "ping"}


class TestPost:
    """Tests for UpstreamTransport.post()."""

    async def test_json_success(self) -> None:
        # Arrange
        payload = {"jsonrpc": "2.0", "id": 1, "result": {}}
        upstream = RecordingUpstream(json_response(payload, headers={"Mcp-Session-Id": "s1"}))

        # Act
        async with upstream.transport() as transport:
            response = await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=1500)

        # Assert
        assert response.data == payload
        assert response.status == 200
        assert response.headers.get("mcp-session-id") == "s1"

    async def test_sends_json_body_headers_and_timeout(self) -> None:
        # Arrange
        upstream = RecordingUpstream(json_response({"jsonrpc": "2.0", "id": 1, "result": {}}))

        # Act
        async with upstream.transport() as transport:
            await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=1500)

        # Assert
        sent = upstream.requests[0]
        assert upstream.bodies() == [BODY]
        assert sent.headers["authorization"] == "Bearer secret"
        assert sent.extensions["timeout"]["read"] == 1.5

    async def test_empty_body_yields_none(self) -> None:
        # Arrange
        upstream = RecordingUpstream(httpx.Response(202))

        # Act
        async with upstream.transport() as transport:
            response = await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=1000)

        # Assert
        assert response.data is None
        assert response.status == 202

    async def test_non_2xx_raises_http_status_error(self) -> None:
        # Arrange
        upstream = RecordingUpstream(httpx.Response(403, text="Forbidden by IAM"))

        # Act & Assert
        async with upstream.transport() as transport:
            with pytest.raises(HttpStatusError) as exc_info:
                await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=1000)

        assert exc_info.value.status == 403
        assert exc_info.value.message == "HTTP 403 Forbidden"
        assert exc_info.value.body == "Forbidden by IAM"

    async def test_timeout_raises_timeout_error(self) -> None:
        # Arrange
        upstream = RecordingUpstream(httpx.ReadTimeout("read timed out"))

        # Act & Assert
        async with upstream.transport() as transport:
            with pytest.raises(UpstreamTimeoutError, match="Request timed out after 250 ms"):
                await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=250)

    @pytest.mark.parametrize(
        "error",
        [
            httpx.ConnectError("Name or service not known"),
            httpx.RemoteProtocolError("Server disconnected"),
        ],
    )
    async def test_connection_failure_raises_network_error(self, error: Exception) -> None:
        # Arrange
        upstream = RecordingUpstream(error)

        # Act & Assert
        async with upstream.transport() as transport:
            with pytest.raises(NetworkError, match=str(error)):
                await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=1000)

    async def test_invalid_json_raises_parse_error(self) -> None:
        # Arrange
        upstream = RecordingUpstream(httpx.Response(200, text="<html>Service Unavailable</html>"))

        # Act & Assert
        async with upstream.transport() as transport:
            with pytest.raises(UpstreamParseError) as exc_info:
                await transport.post(TARGET_URL, HEADERS, BODY, timeout_ms=1000)

        assert exc_info.value.body == "<html>Service Unavailable</html>"


class TestDeadline:
    """The timeout bounds the whole exchange, not each socket read."""

    async def test_slow_body_hits_deadline(self) -> None:
        # Arrange
        payload = json.dumps({"jsonrpc": "2.0", "id": 1, "result": {}}).encode()
        stop = asyncio.Event()

        async def trickle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            # One byte every 100 ms keeps each read inside the per-phase timeout
            await reader.readuntil(b"\r\n\r\n")
            writer.write(
                b"HTTP/1.1 200 OK\r\nContent-Type: application/json\r\n"
                + f"Content-Length: {len(payload)}\r\n\r\n".encode()
            )
            try:
                for byte in payload:
                    if stop.is_set():
                        break
                    writer.write(bytes([byte]))
                    await writer.drain()
                    await asyncio.sleep(0.1)
            except ConnectionError:
                pass
            finally:
                writer.close()

        server = await asyncio.start_server(trickle, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]

        # Act
        started = time.monotonic()
        async with server:
            async with UpstreamTransport() as transport:
                with pytest.raises(UpstreamTimeoutError, match="Request timed out after 500 ms"):
                    await transport.post(f"http://127.0.0.1:{port}/mcp", HEADERS, BODY, timeout_ms=500)
            elapsed = time.monotonic() - started
            stop.set()

        # Assert
        assert elapsed < 1.5


class TestClientDefaults:
    """Tests for the default httpx client."""

    async def test_default_client_sets_user_agent(self) -> None:
        # Act
        async with UpstreamTransport() as transport:
            user_agent = transport._client.headers["User-Agent"]

        # Assert
        assert user_agent == USER_AGENT
        assert USER_AGENT == f"mcp-gcloud-proxy/{__version__}"


class TestParseBody:
    """Tests for JSON and SSE body decoding."""

    def test_plain_json(self) -> None:
        assert parse_body('{"a": 1}', "application/json") == {"a": 1}

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_blank_body_is_none(self, text: str) -> None:
        assert parse_body(text, "application/json") is None

    def test_sse_by_content_type(self) -> None:
        # Arrange
        text = 'event: message\nid: 1\ndata: {"jsonrpc":"2.0","id":1,"result":{}}\n\n'

        # Act
        result = parse_body(text, "text/event-stream; charset=utf-8")

        # Assert
        assert result == {"jsonrpc": "2.0", "id": 1, "result": {}}

    def test_sse_detected_without_content_type(self) -> None:
        text = 'data: {"jsonrpc":"2.0","id":2,"result":{}}\n\n'

        assert parse_body(text) == {"jsonrpc": "2.0", "id": 2, "result": {}}

    def test_sse_skips_non_json_data_lines(self) -> None:
        # Arrange
        text = 'data: ping\n\ndata: {"jsonrpc":"2.0","id":3,"result":{}}\n\ndata: {"ignored": true}\n'

        # Act
        result = parse_body(text, "text/event-stream")

        # Assert
        assert result == {"jsonrpc": "2.0", "id": 3, "result": {}}

    def test_sse_without_json_raises(self) -> None:
        with pytest.raises(UpstreamParseError, match="No JSON data"):
            parse_body("event: ping\ndata: hello\n\n", "text/event-stream")

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(UpstreamParseError, match="Invalid JSON"):
            parse_body("{broken", "application/json")
