"""Sanitization and summarization helpers for log records.

Identity tokens must never reach a log sink. Anything that logs headers
goes through redact_headers() first.
"""

from __future__ import annotations

__all__ = [
    "REDACTED",
    "redact_headers",
    "summarize_message",
]

from collections.abc import Mapping
from typing import Any

from mcp_gcloud_proxy.constants import SENSITIVE_HEADERS

REDACTED = "[REDACTED]"


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of headers with credential values masked.

    Bearer tokens keep their scheme so the log still shows which kind of
    credential was attached.

    Args:
        headers: Header mapping (any case).

    Returns:
        New dict safe for logging.
    """
    redacted: dict[str, str] = {}
    for name, value in headers.items():
        if name.lower() in SENSITIVE_HEADERS:
            scheme = value.split(" ", 1)[0] if " " in value else ""
            redacted[name] = f"{scheme} {REDACTED}" if scheme else REDACTED
        else:
            redacted[name] = value
    return redacted


def summarize_message(message: Any) -> dict[str, Any]:
    """Extract id and method from a JSON-RPC message for log context.

    Params and results are omitted; they may contain user data.
    """
    if not isinstance(message, dict):
        return {"message_type": type(message).__name__}
    summary: dict[str, Any] = {}
    if "id" in message:
        summary["request_id"] = message["id"]
    if "method" in message:
        summary["method"] = message["method"]
    return summary
