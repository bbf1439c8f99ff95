"""Utility functions for time handling.

All timestamps are handled as timezone-aware UTC datetimes internally and
converted to local time only when formatted for chart labels.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Any

DEFAULT_LABEL_FORMAT = "%H:%M"


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def iso_now(*, timespec: str | None = None) -> str:
    """Return current UTC time as an ISO8601 string (timezone-aware)."""
    now = utc_now()
    if timespec:
        return now.isoformat(timespec=timespec)
    return now.isoformat()


def convert_utc_to_local(utc_dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Convert a UTC datetime (aware or naive) to ``tz`` or the local timezone."""
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    return utc_dt.astimezone(tz)


def format_time_label(value: datetime, fmt: str = DEFAULT_LABEL_FORMAT, tz: tzinfo | None = None) -> str:
    """Format a bucket timestamp as a chart label (local ``HH:MM`` by default)."""
    return convert_utc_to_local(value, tz).strftime(fmt)


def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Args:
        value: String, epoch milliseconds or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch milliseconds, as emitted by JVM backends
        try:
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    else:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed
