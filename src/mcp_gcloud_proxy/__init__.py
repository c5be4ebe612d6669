"""mcp-gcloud-proxy: stdio-to-HTTPS MCP proxy with Google identity tokens."""

__version__ = "0.1.0"

__all__ = ["__version__"]
