"""Formatting utilities for backup reports and CLI output."""

from datetime import datetime, timedelta, timezone
from typing import Optional


def format_file_size(size_bytes: Optional[int]) -> str:
    """Format a byte count in human readable form.

    Args:
        size_bytes: Size in bytes, or None when unknown.

    Returns:
        Human readable size string, '-' for unknown sizes.
    """
    if size_bytes is None:
        return "-"

    units = ['B', 'KB', 'MB', 'GB', 'TB', 'PB']
    value = float(size_bytes)
    index = 0
    while abs(value) >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1

    if abs(value) < 10:
        number = f"{value:.2f}".rstrip('0').rstrip('.')
    elif abs(value) < 100:
        number = f"{value:.1f}".rstrip('0').rstrip('.')
    else:
        number = f"{value:.0f}"
    return f"{number} {units[index]}"


def format_date(dt: datetime, short: bool = False) -> str:
    """Format datetime for display.

    Args:
        dt: Datetime to format.
        short: If True, use short format.

    Returns:
        Formatted date string.
    """
    if short:
        return dt.strftime('%Y-%m-%d %H:%M')
    else:
        return dt.strftime('%Y-%m-%d %H:%M:%S')


def format_duration(duration: timedelta) -> str:
    """Format a duration as H:MM:SS."""
    total = int(duration.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{sign}{hours}:{minutes:02d}:{seconds:02d}"


def format_count(value: Optional[int]) -> str:
    """Format an optional counter with thousands separators."""
    if value is None:
        return "-"
    return f"{value:,}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp(dt: datetime) -> str:
    """Sortable, second-resolution UTC timestamp used for run directories."""
    return dt.astimezone(timezone.utc).strftime('%Y-%m-%d_%H-%M-%S')


def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """Truncate string to maximum length.

    Args:
        text: Text to truncate.
        max_length: Maximum length.
        suffix: Suffix to add when truncating.

    Returns:
        Truncated string.
    """
    if len(text) <= max_length:
        return text

    return text[:max_length - len(suffix)] + suffix
