"""Utility modules for mcp-gcloud-proxy.

Import directly from submodules:
    from mcp_gcloud_proxy.utils.transport import UpstreamTransport
    from mcp_gcloud_proxy.utils.logging.logger_setup import configure_logging
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
