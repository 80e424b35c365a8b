"""Utility functions for CDN Cache.

Provides clipboard operations, output formatting, console helpers
and logging setup.
"""

import logging
from pathlib import Path

import pyperclip
from rich.console import Console
from rich.logging import RichHandler

from .models import ImageRecord


console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Route package log records through Rich.

    Args:
        verbose: Show DEBUG records instead of warnings only
    """
    logger = logging.getLogger("cdn_cache")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        logger.addHandler(RichHandler(console=err_console, show_path=False))


def copy_to_clipboard(text: str) -> bool:
    """Copy text to system clipboard.

    Args:
        text: Text to copy

    Returns:
        True if successful, False otherwise
    """
    try:
        pyperclip.copy(text)
        return True
    except pyperclip.PyperclipException:
        return False


def display_name(record: ImageRecord) -> str:
    """Short human name for a record's source."""
    if record.source in ("", "clipboard"):
        return record.source or record.hash
    return Path(record.source).name


def format_plain(records: list[ImageRecord]) -> str:
    """Format records as plain text URLs.

    Args:
        records: Uploaded image records

    Returns:
        Newline-separated URLs
    """
    return '\n'.join(r.url for r in records)


def format_markdown(records: list[ImageRecord]) -> str:
    """Format records as Markdown image syntax.

    Args:
        records: Uploaded image records

    Returns:
        Markdown image tags using the source file name as alt text
    """
    return '\n'.join(f"![{display_name(r)}]({r.url})" for r in records)


def format_html(records: list[ImageRecord]) -> str:
    """Format records as HTML img tags.

    Args:
        records: Uploaded image records

    Returns:
        HTML img tags with alt attributes (and sizes when known)
    """
    lines = []
    for r in records:
        size_attrs = ''
        if r.width and r.height:
            size_attrs = f' width="{r.width}" height="{r.height}"'
        lines.append(f'<img src="{r.url}" alt="{display_name(r)}"{size_attrs}>')
    return '\n'.join(lines)


def format_output(records: list[ImageRecord], format_type: str) -> str:
    """Format records based on output format setting.

    Args:
        records: Uploaded image records
        format_type: Output format (plain, markdown, html)

    Returns:
        Formatted output string
    """
    formatters = {
        'plain': format_plain,
        'markdown': format_markdown,
        'html': format_html,
    }

    formatter = formatters.get(format_type, format_plain)
    return formatter(records)


def format_file_size(size_bytes: int | float) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted string (e.g., "1.50 MB")
    """
    for unit in ['B', 'KB', 'MB', 'GB']:
        if size_bytes < 1024:
            return f"{size_bytes:.2f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.2f} TB"


def format_dimensions(record: ImageRecord) -> str:
    """Format ``WIDTHxHEIGHT``, or an empty string when unknown."""
    if record.width and record.height:
        return f"{record.width}x{record.height}"
    return ""


def print_success(message: str) -> None:
    """Print a success message with checkmark.

    Args:
        message: Message to print
    """
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message with X mark.

    Args:
        message: Message to print
    """
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message with exclamation mark.

    Args:
        message: Message to print
    """
    console.print(f"[yellow]![/yellow] {message}")
