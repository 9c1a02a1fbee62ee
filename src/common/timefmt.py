"""Human-facing time labels (en-US style, local timezone)."""

from __future__ import annotations

from datetime import datetime, timezone


def clock_label(dt: datetime) -> str:
    """``3:05 PM`` -- hour without leading zero."""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def short_date_label(dt: datetime) -> str:
    """``Oct 5``"""
    return f"{dt.strftime('%b')} {dt.day}"


def long_date_label(dt: datetime) -> str:
    """``Sun, Oct 18, 3:05 PM``"""
    return f"{dt.strftime('%a')}, {short_date_label(dt)}, {clock_label(dt)}"


def to_iso_z(dt: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix (naive = local time)."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
