"""Application-wide constants for mcp-gcloud-proxy.

Constants that define protocol and proxy behavior.
For user-configurable settings per run, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # MCP protocol
    "HANDSHAKE_METHOD",
    "CANCELLED_NOTIFICATION",
    "JSONRPC_VERSION",
    "SESSION_HEADER",
    "JSON_CONTENT_TYPE",
    "ACCEPT_HEADER_VALUE",
    # JSON-RPC error codes
    "AUTH_HTTP_ERROR_CODE",
    # Upstream HTTP
    "DEFAULT_TIMEOUT_MS",
    "MIN_TIMEOUT_MS",
    "MAX_TIMEOUT_MS",
    # Identity tokens
    "TOKEN_REFRESH_BUFFER_SECONDS",
    "DEFAULT_TOKEN_VALIDITY_SECONDS",
    # Logging
    "DEFAULT_LOG_FILENAME",
    "SENSITIVE_HEADERS",
]

APP_NAME = "mcp-gcloud-proxy"

# ============================================================================
# MCP Protocol
# ============================================================================

# The handshake is the only exchange allowed to establish a session
HANDSHAKE_METHOD = "initialize"

CANCELLED_NOTIFICATION = "notifications/cancelled"

JSONRPC_VERSION = "2.0"

# Streamable HTTP session header (case-insensitive on the wire)
SESSION_HEADER = "Mcp-Session-Id"

JSON_CONTENT_TYPE = "application/json"

# Streamable HTTP servers may answer with plain JSON or a single SSE event
ACCEPT_HEADER_VALUE = "application/json, text/event-stream"

# ============================================================================
# JSON-RPC Error Codes
# ============================================================================

# Server-defined code (-32000 to -32099) for upstream 401/403 responses.
# Standard codes come from mcp.types (PARSE_ERROR, INTERNAL_ERROR, ...).
AUTH_HTTP_ERROR_CODE = -32002

# ============================================================================
# Upstream HTTP
# ============================================================================

# Per-request deadline for the upstream call (milliseconds)
DEFAULT_TIMEOUT_MS: int = 120_000

# Timeout validation range (milliseconds)
MIN_TIMEOUT_MS: int = 1
MAX_TIMEOUT_MS: int = 600_000  # 10 minutes

# ============================================================================
# Identity Tokens
# ============================================================================

# Cached tokens are reused only while more than 5 minutes of validity remain.
# Covers clock skew and the duration of the in-flight request.
TOKEN_REFRESH_BUFFER_SECONDS: int = 300

# Assumed lifetime when the token carries no readable exp claim
DEFAULT_TOKEN_VALIDITY_SECONDS: int = 3600

# ============================================================================
# Logging
# ============================================================================

DEFAULT_LOG_FILENAME = "mcp-gcloud-proxy.jsonl"

# Header names (lowercase) whose values are masked before logging
SENSITIVE_HEADERS: frozenset[str] = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "x-api-key",
    }
)
