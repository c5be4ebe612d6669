"""Allow running the proxy with ``python -m mcp_gcloud_proxy``."""

from mcp_gcloud_proxy.cli import main

if __name__ == "__main__":
    main()
