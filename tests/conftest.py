"""Shared fixtures for mcp-gcloud-proxy tests.

Upstream HTTP is simulated with httpx.MockTransport; credential providers
are replaced with FakeProvider so no test touches Google APIs.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import jwt
import pytest

from mcp_gcloud_proxy.constants import APP_NAME
from mcp_gcloud_proxy.utils.transport import UpstreamTransport

TARGET_URL = "https://mcp-server-abc123-uc.a.run.app/mcp"

# HS256 needs a key of at least 32 bytes to avoid PyJWT key-length warnings
_SIGNING_KEY = "test-signing-key-0123456789abcdef"


def make_jwt(expires_at: datetime | None, **claims: Any) -> str:
    """Build a signed JWT; only the payload matters to the proxy."""
    payload: dict[str, Any] = {"aud": TARGET_URL, "iss": "https://accounts.google.com", **claims}
    if expires_at is not None:
        payload["exp"] = int(expires_at.timestamp())
    return jwt.encode(payload, _SIGNING_KEY, algorithm="HS256")


class FakeProvider:
    """IdTokenProvider double that records calls.

    Each call returns the next queued token (the last one repeats) or raises
    the configured error.
    """

    def __init__(self, tokens: list[Any] | None = None, error: Exception | None = None) -> None:
        self.tokens = list(tokens or [])
        self.error = error
        self.calls: list[str] = []

    def fetch_id_token(self, audience: str) -> Any:
        self.calls.append(audience)
        if self.error is not None:
            raise self.error
        if len(self.tokens) > 1:
            return self.tokens.pop(0)
        return self.tokens[0]


class RecordingUpstream:
    """httpx.MockTransport handler that records requests.

    Responses come from a queue of httpx.Response objects, callables taking
    the request, or exceptions to raise. The last entry repeats.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def bodies(self) -> list[Any]:
        return [json.loads(r.content) for r in self.requests]

    def transport(self) -> UpstreamTransport:
        return UpstreamTransport(httpx.AsyncClient(transport=httpx.MockTransport(self)))


def json_response(body: Any, status: int = 200, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, json=body, headers=headers)


def echo_result(result: Any, headers: dict[str, str] | None = None) -> Callable[[httpx.Request], httpx.Response]:
    """Reply with a success response echoing the request id."""

    def respond(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return json_response({"jsonrpc": "2.0", "id": body["id"], "result": result}, headers=headers)

    return respond


@pytest.fixture
def now() -> datetime:
    return datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def valid_jwt(now: datetime) -> str:
    """JWT valid for one hour from the fixed clock."""
    return make_jwt(now + timedelta(hours=1))


@pytest.fixture
def app_logger() -> Iterator[logging.Logger]:
    """The application namespace logger, restored after the test."""
    logger = logging.getLogger(APP_NAME)
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    saved_propagate = logger.propagate
    yield logger
    for handler in logger.handlers:
        if handler not in saved_handlers:
            handler.close()
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)
    logger.propagate = saved_propagate
