"""CLI output styling utilities.

The hooks run non-interactively, so output is kept to one line per outcome:
- Green for success messages (with checkmark)
- Red for error messages (with cross)
- Yellow for warnings
"""

from __future__ import annotations

__all__ = [
    "style_error",
    "style_success",
    "style_warning",
]

import click


def style_success(message: str) -> str:
    """Style a success message with checkmark.

    Example:
        >>> click.echo(style_success("No suspicious patterns found"))
        ✓ No suspicious patterns found
    """
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Style an error message with cross mark.

    Example:
        >>> click.echo(style_error("docker login failed"), err=True)
        ✗ docker login failed
    """
    return click.style(f"✗ {message}", fg="red")


def style_warning(message: str) -> str:
    return click.style(f"Warning: {message}", fg="yellow", bold=True)
