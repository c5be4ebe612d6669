"""Credential providers that mint Google ID tokens.

The token manager talks to providers through the IdTokenProvider protocol
so tests can substitute a fake. GoogleIdTokenProvider is the production
implementation, backed by google-auth:

1. Explicit service account key file (GOOGLE_APPLICATION_CREDENTIALS)
2. Application Default Credentials (gcloud, metadata server, impersonation)

User credentials from ``gcloud auth application-default login`` cannot mint
ID tokens for an arbitrary audience; that case is reported as
NoCredentialsError with a distinct message.

google-auth is synchronous (it uses requests). Callers run
fetch_id_token() in a worker thread.
"""

from __future__ import annotations

__all__ = [
    "GoogleIdTokenProvider",
    "IdTokenProvider",
]

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import google.auth
from google.auth import exceptions as google_exceptions
from google.auth.transport.requests import Request
from google.oauth2 import id_token, service_account

from mcp_gcloud_proxy.constants import APP_NAME
from mcp_gcloud_proxy.exceptions import NoCredentialsError, TokenFetchError

_logger = logging.getLogger(f"{APP_NAME}.auth.credentials")

_NO_CREDENTIALS_MESSAGE = (
    'No credentials found. Please run "gcloud auth application-default login" '
    "or set GOOGLE_APPLICATION_CREDENTIALS environment variable."
)
_NO_ID_TOKEN_SUPPORT_MESSAGE = "The authenticated client does not support ID token generation."


class IdTokenProvider(Protocol):
    """Anything that can mint an identity token for an audience."""

    def fetch_id_token(self, audience: str) -> str:
        """Mint a token for audience.

        Raises:
            AuthError: If no token can be produced.
        """
        ...


class GoogleIdTokenProvider:
    """Mints ID tokens with google-auth.

    Attributes:
        credentials_path: Service account key file, if configured.
    """

    def __init__(self, credentials_path: str | None = None) -> None:
        self.credentials_path = credentials_path

    def fetch_id_token(self, audience: str) -> str:
        """Mint an ID token for audience.

        Args:
            audience: Target URL the token is scoped to.

        Returns:
            Raw ID token (JWT).

        Raises:
            NoCredentialsError: No credentials, or credentials that cannot
                mint ID tokens.
            TokenFetchError: Token endpoint or metadata server call failed.
        """
        request = Request()
        credentials = self._service_account_credentials(audience)
        if credentials is None:
            credentials = self._default_credentials(audience, request)

        try:
            credentials.refresh(request)
        except (google_exceptions.RefreshError, google_exceptions.TransportError) as e:
            raise TokenFetchError(f"Failed to fetch ID token: {e}") from e

        return credentials.token

    def _service_account_credentials(self, audience: str) -> Any | None:
        """Build credentials from an explicit service account key file.

        Returns None when no key file is configured or it holds another
        credential type, which ADC then handles.
        """
        if not self.credentials_path:
            return None

        path = Path(self.credentials_path).expanduser()
        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise NoCredentialsError(f"Cannot read credentials file {path}: {e}") from e

        if not isinstance(info, dict) or info.get("type") != "service_account":
            return None

        try:
            credentials = service_account.IDTokenCredentials.from_service_account_info(
                info, target_audience=audience
            )
        except ValueError as e:
            raise NoCredentialsError(f"Invalid service account key file {path}: {e}") from e

        _logger.debug(
            {
                "event": "credentials_loaded",
                "message": "Using service account key file for ID tokens",
                "source": "service_account_file",
            }
        )
        return credentials

    def _default_credentials(self, audience: str, request: Request) -> Any:
        """Resolve ID token credentials through Application Default Credentials."""
        try:
            credentials = id_token.fetch_id_token_credentials(audience, request=request)
        except google_exceptions.DefaultCredentialsError as e:
            raise NoCredentialsError(_missing_credentials_message()) from e

        _logger.debug(
            {
                "event": "credentials_loaded",
                "message": "Using Application Default Credentials for ID tokens",
                "source": "adc",
            }
        )
        return credentials


def _missing_credentials_message() -> str:
    """Tell "no credentials at all" apart from credentials that cannot mint ID tokens.

    Only runs after fetch_id_token_credentials() has already failed.
    """
    try:
        google.auth.default()
    except google_exceptions.DefaultCredentialsError:
        return _NO_CREDENTIALS_MESSAGE
    return _NO_ID_TOKEN_SUPPORT_MESSAGE

