"""Unit tests for the CLI command.

Tests CLI behavior using Click's CliRunner for isolated, fast testing.
The server itself is patched out.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import importlib
from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from mcp_gcloud_proxy import __version__
from mcp_gcloud_proxy.cli import cli
from mcp_gcloud_proxy.config import AppConfig
from mcp_gcloud_proxy.exceptions import ConfigurationError

# The package re-exports main(), which shadows the submodule attribute
cli_main = importlib.import_module("mcp_gcloud_proxy.cli.main")

URL = "https://mcp-server-abc123-uc.a.run.app/mcp"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner for testing."""
    return CliRunner()


@pytest.fixture
def mock_run() -> Iterator[MagicMock]:
    with patch.object(cli_main, "run_server") as mock:
        yield mock


@pytest.fixture
def mock_logging() -> Iterator[MagicMock]:
    with patch.object(cli_main, "configure_logging") as mock:
        yield mock


class TestVersion:
    """Tests for --version flag."""

    def test_version_flag_shows_version(self, runner: CliRunner) -> None:
        # Act
        result = runner.invoke(cli, ["--version"])

        # Assert
        assert result.exit_code == 0
        assert __version__ in result.output


class TestStart:
    """Valid invocations start the server."""

    def test_starts_server_with_config(
        self, runner: CliRunner, mock_run: MagicMock, mock_logging: MagicMock
    ) -> None:
        # Act
        result = runner.invoke(cli, ["--url", URL, "--timeout", "5000"], env={"MCP_PROXY_TIMEOUT": None})

        # Assert
        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert isinstance(config, AppConfig)
        assert config.proxy.target_url == URL
        assert config.proxy.timeout_ms == 5000
        mock_logging.assert_called_once_with(config.logging)

    def test_short_options(self, runner: CliRunner, mock_run: MagicMock, mock_logging: MagicMock) -> None:
        # Act
        result = runner.invoke(cli, ["-u", URL, "-t", "100", "-v"], env={"MCP_PROXY_TIMEOUT": None})

        # Assert
        assert result.exit_code == 0, result.output
        config = mock_run.call_args.args[0]
        assert config.proxy.timeout_ms == 100
        assert config.logging.level == "debug"

    def test_default_timeout(self, runner: CliRunner, mock_run: MagicMock, mock_logging: MagicMock) -> None:
        # Act
        result = runner.invoke(cli, ["--url", URL], env={"MCP_PROXY_TIMEOUT": None})

        # Assert
        assert result.exit_code == 0, result.output
        assert mock_run.call_args.args[0].proxy.timeout_ms == 120_000

    def test_timeout_from_environment(
        self, runner: CliRunner, mock_run: MagicMock, mock_logging: MagicMock
    ) -> None:
        # Act
        result = runner.invoke(cli, ["--url", URL], env={"MCP_PROXY_TIMEOUT": "30000"})

        # Assert
        assert result.exit_code == 0, result.output
        assert mock_run.call_args.args[0].proxy.timeout_ms == 30000

    def test_option_overrides_environment(
        self, runner: CliRunner, mock_run: MagicMock, mock_logging: MagicMock
    ) -> None:
        # Act
        result = runner.invoke(cli, ["--url", URL, "-t", "777"], env={"MCP_PROXY_TIMEOUT": "30000"})

        # Assert
        assert result.exit_code == 0, result.output
        assert mock_run.call_args.args[0].proxy.timeout_ms == 777


class TestValidation:
    """Invalid options are rejected before anything starts."""

    def test_url_required(self, runner: CliRunner, mock_run: MagicMock) -> None:
        # Act
        result = runner.invoke(cli, [])

        # Assert
        assert result.exit_code == 2
        assert "--url" in result.output
        mock_run.assert_not_called()

    @pytest.mark.parametrize(
        "url",
        ["http://mcp-server.a.run.app/mcp", "mcp-server.a.run.app", "https://"],
    )
    def test_non_https_url_rejected(self, runner: CliRunner, mock_run: MagicMock, url: str) -> None:
        # Act
        result = runner.invoke(cli, ["--url", url])

        # Assert
        assert result.exit_code == 2
        mock_run.assert_not_called()

    @pytest.mark.parametrize("timeout", ["0", "600001", "abc"])
    def test_timeout_out_of_range_rejected(self, runner: CliRunner, mock_run: MagicMock, timeout: str) -> None:
        # Act
        result = runner.invoke(cli, ["--url", URL, "--timeout", timeout])

        # Assert
        assert result.exit_code == 2
        mock_run.assert_not_called()


class TestStartupErrors:
    """Startup failures print a red error and exit 1."""

    def test_configuration_error(self, runner: CliRunner, mock_run: MagicMock) -> None:
        # Act
        with patch.object(cli_main, "AppConfig") as mock_config:
            mock_config.from_environment.side_effect = ConfigurationError(
                "Invalid configuration: proxy.target_url: bad"
            )
            result = runner.invoke(cli, ["--url", URL])

        # Assert
        assert result.exit_code == 1
        assert "✗ Invalid configuration" in result.output
        mock_run.assert_not_called()

    def test_unwritable_log_file(self, runner: CliRunner, mock_run: MagicMock) -> None:
        # Act
        with patch.object(
            cli_main,
            "configure_logging",
            side_effect=PermissionError("Permission denied: '/root/log.jsonl'"),
        ):
            result = runner.invoke(cli, ["--url", URL])

        # Assert
        assert result.exit_code == 1
        assert "Cannot open log file" in result.output
        mock_run.assert_not_called()
