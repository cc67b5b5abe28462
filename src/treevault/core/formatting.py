"""Display helpers shared by reports and result messages."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def format_size(size: int | float) -> str:
    """Format a byte count as a human-readable string (``1.5 KB``)."""
    value = float(abs(size))
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024:
            break
        value /= 1024
    else:
        unit = "TB"
    sign = "-" if size < 0 else ""
    if unit == "B":
        return f"{sign}{int(value)} B"
    return f"{sign}{value:.1f} {unit}"


def format_signed_size(delta: int) -> str:
    """Format a size delta with an explicit sign (``+1.0 KB`` / ``-12 B``)."""
    return ("+" if delta >= 0 else "") + format_size(delta)


def format_timestamp(timestamp: Any) -> str:
    """Format timestamp for display.

    Handles datetime objects and Unix timestamps (int/float). Uses
    timezone-aware UTC conversion.

    Returns:
        Formatted date string (YYYY-MM-DD HH:MM:SS)
    """
    match timestamp:
        case datetime() as dt:
            return dt.strftime("%Y-%m-%d %H:%M:%S")
        case int() | float() as ts:
            dt = datetime.fromtimestamp(ts, tz=timezone.utc)
            return dt.strftime("%Y-%m-%d %H:%M:%S")
        case None:
            return "-"
        case _:
            return str(timestamp)


def pluralize(count: int, noun: str, plural: str | None = None) -> str:
    """Return ``"1 error"`` / ``"2 errors"``."""
    if count == 1:
        return f"{count} {noun}"
    return f"{count} {plural or noun + 's'}"
