"""Main CLI entry point for mcp-gcloud-proxy.

Usage:
    mcp-gcloud-proxy --url https://my-service-abc123-uc.a.run.app/mcp

Register in an MCP client configuration:
    {
      "mcpServers": {
        "remote": {
          "command": "mcp-gcloud-proxy",
          "args": ["--url", "https://my-service-abc123-uc.a.run.app/mcp"]
        }
      }
    }

Environment:
    MCP_PROXY_TIMEOUT               Default for --timeout (milliseconds)
    GOOGLE_APPLICATION_CREDENTIALS  Service account key file
    MCP_PROXY_LOG_LEVEL             debug | info | warn | error | silent
    LOG_TYPE                        pretty | json | file
    LOG_FILE_PATH                   Log file for LOG_TYPE=file
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click
import httpx

from mcp_gcloud_proxy import __version__
from mcp_gcloud_proxy.config import AppConfig
from mcp_gcloud_proxy.constants import APP_NAME, DEFAULT_TIMEOUT_MS, MAX_TIMEOUT_MS, MIN_TIMEOUT_MS
from mcp_gcloud_proxy.exceptions import ConfigurationError
from mcp_gcloud_proxy.server import run_server
from mcp_gcloud_proxy.utils.logging.logger_setup import configure_logging

from .styling import style_error


def _validate_url(ctx: click.Context, param: click.Parameter, value: str) -> str:
    """Accept only absolute HTTPS URLs."""
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise click.BadParameter(f"not a valid URL: {e}") from e
    if url.scheme != "https":
        raise click.BadParameter("must use HTTPS (e.g. https://my-service.a.run.app/mcp)")
    if not url.host:
        raise click.BadParameter("must include a host")
    return value


@click.command(
    name=APP_NAME,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--url",
    "-u",
    required=True,
    callback=_validate_url,
    help="Upstream MCP endpoint (HTTPS). Also the ID token audience.",
)
@click.option(
    "--timeout",
    "-t",
    "timeout_ms",
    type=click.IntRange(MIN_TIMEOUT_MS, MAX_TIMEOUT_MS),
    default=DEFAULT_TIMEOUT_MS,
    show_default=True,
    envvar="MCP_PROXY_TIMEOUT",
    help="Per-request timeout in milliseconds.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, "--version", prog_name=APP_NAME)
def cli(url: str, timeout_ms: int, verbose: bool) -> None:
    """Stdio MCP proxy for Google Cloud IAM-protected HTTPS servers.

    Reads JSON-RPC from stdin, forwards each message to URL with a Google
    ID token, and writes replies to stdout. Runs until stdin closes or the
    process receives SIGINT/SIGTERM.
    """
    try:
        config = AppConfig.from_environment(url=url, timeout_ms=timeout_ms, verbose=verbose)
    except ConfigurationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    try:
        configure_logging(config.logging)
    except OSError as e:
        click.echo(style_error(f"Cannot open log file: {e}"), err=True)
        sys.exit(1)

    run_server(config)


def main() -> None:
    """CLI entry point."""
    cli()
