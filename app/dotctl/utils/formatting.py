"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

import sys
from datetime import UTC, datetime

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from dotctl.core.theme import get_theme


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def create_table(title: str) -> Table:
    """Create a pre-configured table with the shared header and border styles.

    Args:
        title: Table title.

    Returns:
        Rich Table ready for columns to be added.
    """
    return Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )


def format_relative_time(iso_timestamp: str | None, now: datetime | None = None) -> str:
    """Format an ISO timestamp relative to now.

    Recent timestamps are shown as "just now", "5 mins ago", "2 hours ago"
    or "3 days ago"; anything older than a week as YYYY-MM-DD.

    Args:
        iso_timestamp: ISO 8601 timestamp string, or None.
        now: Reference time (defaults to the current UTC time).

    Returns:
        Human-readable relative time, or "-" when no timestamp is given.
    """
    if not iso_timestamp:
        return "-"

    try:
        moment = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    except ValueError:
        return iso_timestamp
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)

    seconds = ((now or datetime.now(UTC)) - moment).total_seconds()

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        mins = int(seconds // 60)
        return "1 min ago" if mins == 1 else f"{mins} mins ago"
    if seconds < 86400:
        hours = int(seconds // 3600)
        return "1 hour ago" if hours == 1 else f"{hours} hours ago"
    if seconds < 7 * 86400:
        days = int(seconds // 86400)
        return "1 day ago" if days == 1 else f"{days} days ago"
    return moment.strftime("%Y-%m-%d")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{escape(message)}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {escape(message)}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{escape(message)}[/]")


def print_debug(message: str) -> None:
    """Print a muted diagnostic message."""
    console.print(f"[muted]{escape(message)}[/]")
