"""Translation of proxy failures into JSON-RPC errors.

Every failure reachable from a request becomes an ``mcp.types.ErrorData``
with a stable code. The ``data`` field carries the failure ``kind`` plus
kind-specific details for diagnosis. Request headers are never included, so
bearer tokens cannot leak into error responses.

Code table:
    AuthError (any)          -32603  "Authentication failed: "
    HTTP 401 / 403           -32002  "HTTP error: "
    HTTP 404                 -32601  "HTTP error: "
    HTTP 4xx (other)         -32602  "HTTP error: "
    HTTP 5xx / other         -32603  "HTTP error: "
    network                  -32603  "Network error: "
    timeout                  -32603  "Request timeout: "
    parse                    -32700  "Parse error: "
    invalid response shape   -32603  "Invalid response format from target server"
    unexpected exception     -32603  "Internal error: "
"""

from __future__ import annotations

__all__ = [
    "INVALID_RESPONSE_MESSAGE",
    "error_response",
    "from_unexpected",
    "from_upstream",
    "http_status_code",
    "invalid_response",
]

from typing import Any

from mcp.types import INTERNAL_ERROR, INVALID_PARAMS, METHOD_NOT_FOUND, PARSE_ERROR, ErrorData, RequestId

from mcp_gcloud_proxy.constants import AUTH_HTTP_ERROR_CODE, JSONRPC_VERSION
from mcp_gcloud_proxy.exceptions import (
    AuthError,
    HttpStatusError,
    NetworkError,
    UpstreamError,
    UpstreamParseError,
    UpstreamTimeoutError,
)

INVALID_RESPONSE_MESSAGE = "Invalid response format from target server"


def http_status_code(status: int) -> int:
    """Map an upstream HTTP status to a JSON-RPC error code."""
    if status in (401, 403):
        return AUTH_HTTP_ERROR_CODE
    if status == 404:
        return METHOD_NOT_FOUND
    if 400 <= status < 500:
        return INVALID_PARAMS
    return INTERNAL_ERROR


def from_upstream(error: UpstreamError | AuthError) -> ErrorData:
    """Translate an auth or upstream failure.

    Args:
        error: The failure raised by the token manager or transport.

    Returns:
        ErrorData with the code and message prefix for the failure kind.
    """
    data: dict[str, Any] = {"kind": error.kind}

    if isinstance(error, AuthError):
        data["suggestion"] = error.suggestion
        return ErrorData(code=INTERNAL_ERROR, message=f"Authentication failed: {error.message}", data=data)

    if isinstance(error, HttpStatusError):
        data["status"] = error.status
        data["body"] = error.body
        return ErrorData(code=http_status_code(error.status), message=f"HTTP error: {error.message}", data=data)

    if isinstance(error, UpstreamTimeoutError):
        return ErrorData(code=INTERNAL_ERROR, message=f"Request timeout: {error.message}", data=data)

    if isinstance(error, UpstreamParseError):
        return ErrorData(code=PARSE_ERROR, message=f"Parse error: {error.message}", data=data)

    if isinstance(error, NetworkError):
        return ErrorData(code=INTERNAL_ERROR, message=f"Network error: {error.message}", data=data)

    return ErrorData(code=INTERNAL_ERROR, message=f"Internal error: {error.message}", data=data)


def invalid_response(payload: Any) -> ErrorData:
    """Error for an upstream body that is not a JSON-RPC response."""
    return ErrorData(
        code=INTERNAL_ERROR,
        message=INVALID_RESPONSE_MESSAGE,
        data={"kind": "invalid-response", "received": payload},
    )


def from_unexpected(error: BaseException) -> ErrorData:
    """Error for an exception nothing else handled."""
    detail = str(error) or type(error).__name__
    return ErrorData(
        code=INTERNAL_ERROR,
        message=f"Internal error: {detail}",
        data={"kind": "unexpected", "type": type(error).__name__},
    )


def error_response(request_id: RequestId, error: ErrorData) -> dict[str, Any]:
    """Wrap error in a JSON-RPC 2.0 error response for request_id."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "error": error.model_dump(exclude_unset=True),
    }
