"""Compact duration strings ("15m", "24h", "500ms") to milliseconds."""

import re
from typing import Union

_UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "y": 365.25 * 24 * 60 * 60 * 1000,
}

_ALIASES = {
    "msec": "ms", "msecs": "ms", "millisecond": "ms", "milliseconds": "ms",
    "sec": "s", "secs": "s", "second": "s", "seconds": "s",
    "min": "m", "mins": "m", "minute": "m", "minutes": "m",
    "hr": "h", "hrs": "h", "hour": "h", "hours": "h",
    "day": "d", "days": "d",
    "week": "w", "weeks": "w",
    "yr": "y", "yrs": "y", "year": "y", "years": "y",
}

_DURATION_RE = re.compile(r"^\s*(-?\d*\.?\d+)\s*([a-z]*)\s*$", re.IGNORECASE)


def parse_duration(value: Union[str, int, float]) -> int:
    """Parse a compact duration into milliseconds.

    A bare number is read as milliseconds. Units are case insensitive and
    accept the usual long forms ("15 minutes", "2 hrs").

    Raises:
        ValueError: if the string is not a recognised duration
    """
    if isinstance(value, (int, float)):
        return int(value)

    match = _DURATION_RE.match(value or "")
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")

    amount = float(match.group(1))
    unit = match.group(2).lower() or "ms"
    unit = _ALIASES.get(unit, unit)
    if unit not in _UNIT_MS:
        raise ValueError(f"Unknown duration unit in {value!r}")

    return int(amount * _UNIT_MS[unit])


def humanize_age(age_ms: float) -> str:
    """Render an elapsed time as "5 minutes ago" style text."""
    seconds = int(age_ms // 1000)
    if seconds < 45:
        return "a few seconds ago"
    minutes = round(seconds / 60)
    if minutes < 45:
        return "a minute ago" if minutes <= 1 else f"{minutes} minutes ago"
    hours = round(minutes / 60)
    if hours < 22:
        return "an hour ago" if hours <= 1 else f"{hours} hours ago"
    days = round(hours / 24)
    return "a day ago" if days <= 1 else f"{days} days ago"
