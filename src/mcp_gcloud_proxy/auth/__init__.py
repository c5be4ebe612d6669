"""Google identity token acquisition for upstream requests.

Modules:
- credentials: Credential providers that mint ID tokens (google-auth)
- token_parser: Expiry extraction from ID tokens
- token_manager: Per-audience token cache with expiry-aware refresh

Import directly from submodules:
    from mcp_gcloud_proxy.auth.token_manager import TokenManager
"""

__all__: list[str] = []  # Direct submodule imports required (see docstring)
