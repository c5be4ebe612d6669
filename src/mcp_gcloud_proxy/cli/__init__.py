"""Command-line interface for mcp-gcloud-proxy.

Provides the single command that starts the stdio proxy.
"""

from .main import cli, main

__all__ = ["cli", "main"]
