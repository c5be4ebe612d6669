"""Logger setup for mcp-gcloud-proxy.

All loggers live under the "mcp-gcloud-proxy" namespace and log structured
dict messages with at least "event" and "message" keys:

    _logger.warning({"event": "notification_forward_failed", "message": "..."})

configure_logging() installs exactly one handler on the namespace root:
- pretty: human-readable lines on stderr (ConsoleFormatter)
- json:   JSONL on stderr (ISO8601Formatter)
- file:   JSONL appended to a file (ISO8601Formatter)

Stdout is reserved for the MCP protocol and is never used as a log sink.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_logging",
    "default_log_file",
]

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from platformdirs import user_log_dir

from mcp_gcloud_proxy.constants import APP_NAME, DEFAULT_LOG_FILENAME
from mcp_gcloud_proxy.utils.logging.iso_formatter import ISO8601Formatter

if TYPE_CHECKING:
    from mcp_gcloud_proxy.config import LoggingConfig

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human-readable console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
        else:
            msg = record.getMessage()
        return f"{record.levelname}: {msg}"


def default_log_file() -> Path:
    """Platform log location used when LOG_FILE_PATH is unset."""
    return Path(user_log_dir(APP_NAME)) / DEFAULT_LOG_FILENAME


def _ensure_log_directory(log_file: Path) -> None:
    """Create log directory with owner-only permissions.

    Raises:
        OSError: If the directory cannot be created.
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    if sys.platform != "win32":
        try:
            log_file.parent.chmod(0o700)
        except OSError:
            pass  # Permission changes might fail on some systems


def configure_logging(config: "LoggingConfig") -> logging.Logger:
    """Configure the application logger from LoggingConfig.

    Safe to call more than once: existing handlers are closed and replaced.

    Args:
        config: Logging configuration.

    Returns:
        logging.Logger: The configured namespace root logger.

    Raises:
        OSError: If log_type is "file" and the log file cannot be opened.
    """
    logger = logging.getLogger(APP_NAME)
    logger.propagate = False  # Don't propagate to root logger

    # Close and remove any existing handlers to avoid duplicates and resource leaks
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    if config.level == "silent":
        logger.setLevel(logging.CRITICAL + 1)
        logger.addHandler(logging.NullHandler())
        return logger

    level = _LEVELS[config.level]
    logger.setLevel(level)

    handler: logging.Handler
    if config.log_type == "pretty":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ConsoleFormatter())
    elif config.log_type == "json":
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ISO8601Formatter())
    else:
        log_file = Path(config.log_file).expanduser() if config.log_file else default_log_file()
        _ensure_log_directory(log_file)
        handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        handler.setFormatter(ISO8601Formatter())

    handler.setLevel(level)
    logger.addHandler(handler)
    return logger
