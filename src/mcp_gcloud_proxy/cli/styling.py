"""CLI output styling utilities.

Everything the CLI prints goes to stderr; stdout belongs to the MCP protocol.
"""

from __future__ import annotations

__all__ = [
    "style_error",
]

import click


def style_error(message: str) -> str:
    """Style an error message with cross mark.

    Args:
        message: The error message text (without cross).

    Returns:
        Styled string with red color and cross prefix.

    Example:
        >>> click.echo(style_error("Invalid URL"), err=True)
        ✗ Invalid URL
    """
    return click.style(f"✗ {message}", fg="red")
