"""Application configuration for mcp-gcloud-proxy.

Defines configuration models for the upstream target, authentication and
logging. Configuration is assembled from CLI options plus a handful of
environment variables; there is no config file.

Environment variables:
    GOOGLE_APPLICATION_CREDENTIALS: Service account key file for ID tokens.
    MCP_PROXY_LOG_LEVEL: debug | info | warn | error | silent
    LOG_TYPE: pretty | json | file
    LOG_FILE_PATH: Log file used when LOG_TYPE is "file".

Example usage:
    config = AppConfig.from_environment(url="https://svc.a.run.app/mcp", timeout_ms=120000)
"""

from __future__ import annotations

__all__ = [
    "AppConfig",
    "AuthConfig",
    "LogLevel",
    "LogType",
    "LoggingConfig",
    "ProxyConfig",
    "ServerInfo",
]

import os
from collections.abc import Mapping
from typing import Literal, get_args

from pydantic import BaseModel, Field, ValidationError

from mcp_gcloud_proxy import __version__
from mcp_gcloud_proxy.constants import APP_NAME, DEFAULT_TIMEOUT_MS, MAX_TIMEOUT_MS, MIN_TIMEOUT_MS
from mcp_gcloud_proxy.exceptions import ConfigurationError

LogLevel = Literal["debug", "info", "warn", "error", "silent"]
LogType = Literal["pretty", "json", "file"]


class ServerInfo(BaseModel):
    """Identity advertised by this proxy (User-Agent, logs).

    Attributes:
        name: Application name.
        version: Package version.
    """

    name: str = Field(default=APP_NAME, min_length=1)
    version: str = Field(default=__version__, min_length=1)


class ProxyConfig(BaseModel):
    """Upstream target configuration.

    Attributes:
        target_url: Upstream MCP endpoint. Also the identity token audience.
        timeout_ms: Per-request deadline in milliseconds (1-600000).
    """

    target_url: str = Field(min_length=1, pattern=r"^https?://\S+$")
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=MIN_TIMEOUT_MS, le=MAX_TIMEOUT_MS)

    @property
    def timeout_seconds(self) -> float:
        """Timeout expressed in seconds (httpx and asyncio units)."""
        return self.timeout_ms / 1000


class AuthConfig(BaseModel):
    """Google credential configuration.

    When credentials_path is unset, Application Default Credentials
    discovery decides where the credentials come from.

    Attributes:
        credentials_path: Path to a service account key file.
    """

    credentials_path: str | None = Field(default=None, min_length=1)


class LoggingConfig(BaseModel):
    """Logging configuration settings.

    Stdout carries the MCP protocol, so logs only ever go to stderr or a file.

    Attributes:
        level: Minimum level. "silent" disables logging.
        log_type: "pretty" (human-readable stderr), "json" (JSONL stderr)
            or "file" (JSONL file).
        log_file: Log file for log_type "file". Platform default if unset.
    """

    level: LogLevel = "info"
    log_type: LogType = "file"
    log_file: str | None = Field(default=None, min_length=1)


class AppConfig(BaseModel):
    """Complete runtime configuration.

    Attributes:
        server: Proxy identity.
        proxy: Upstream target and timeout.
        auth: Credential settings.
        logging: Log destination and level.
    """

    server: ServerInfo = Field(default_factory=ServerInfo)
    proxy: ProxyConfig
    auth: AuthConfig = Field(default_factory=AuthConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_environment(
        cls,
        url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        verbose: bool = False,
        environ: Mapping[str, str] | None = None,
    ) -> "AppConfig":
        """Build configuration from CLI values and environment variables.

        Unrecognized log level or log type values fall back to the defaults
        rather than failing startup.

        Args:
            url: Upstream target URL.
            timeout_ms: Per-request timeout in milliseconds.
            verbose: Force debug logging.
            environ: Environment mapping (defaults to os.environ).

        Returns:
            Validated AppConfig.

        Raises:
            ConfigurationError: If the URL or timeout fail validation.
        """
        env = os.environ if environ is None else environ

        level = _parse_choice(env.get("MCP_PROXY_LOG_LEVEL"), get_args(LogLevel)) or "info"
        if verbose:
            level = "debug"

        # Validate as one document so error locations read "proxy.target_url"
        try:
            return cls.model_validate(
                {
                    "proxy": {"target_url": url, "timeout_ms": timeout_ms},
                    "auth": {"credentials_path": env.get("GOOGLE_APPLICATION_CREDENTIALS") or None},
                    "logging": {
                        "level": level,
                        "log_type": _parse_choice(env.get("LOG_TYPE"), get_args(LogType)) or "file",
                        "log_file": env.get("LOG_FILE_PATH") or None,
                    },
                }
            )
        except ValidationError as e:
            raise ConfigurationError(_format_validation_error(e)) from e


def _parse_choice(value: str | None, choices: tuple[str, ...]) -> str | None:
    """Return the lowercased value if it is one of choices, else None."""
    if not value:
        return None
    lowered = value.strip().lower()
    return lowered if lowered in choices else None


def _format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic ValidationError into one readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        parts.append(f"{location}: {item['msg']}")
    return "Invalid configuration: " + "; ".join(parts)
