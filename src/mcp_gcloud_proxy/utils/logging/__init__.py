"""Logging utilities and helpers.

This package provides logging infrastructure for mcp-gcloud-proxy:
- iso_formatter: ISO 8601 timestamp formatting for JSONL logs
- logger_setup: Handler configuration for pretty/json/file output
- logging_helpers: Redaction and summarization utilities

Import directly from submodules to avoid circular imports:
    from mcp_gcloud_proxy.utils.logging.logger_setup import configure_logging
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
