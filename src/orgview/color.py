"""Color support for CLI output using Rich markup."""

import sys

from rich.markup import escape


def should_use_color(color_flag: bool | None) -> bool:
    """Determine if color should be used based on flag and TTY detection.

    Args:
        color_flag: Explicit color preference (True/False) or None for auto-detect

    Returns:
        True if colors should be used, False otherwise
    """
    if color_flag is None:
        return sys.stdout.isatty()
    return color_flag


def colorize(text: str, style: str, enabled: bool) -> str:
    """Wrap text in a Rich style tag when coloring is enabled.

    Args:
        text: Text to colorize
        style: Rich style string (e.g., "green", "bold white")
        enabled: Whether coloring is enabled

    Returns:
        Escaped, styled text if enabled, original text otherwise
    """
    if not enabled:
        return text
    return f"[{style}]{escape(text)}[/]"


def header_style(enabled: bool) -> str | None:
    """Style for table column headers, or None without color."""
    return "bold white" if enabled else None


def identifier(text: str, enabled: bool) -> str:
    """Highlight a row identifier such as a document link or group key."""
    return colorize(text, "magenta", enabled)


def null_value(text: str, enabled: bool) -> str:
    """Dim the placeholder rendered for null values."""
    return colorize(text, "dim white", enabled)
