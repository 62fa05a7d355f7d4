"""Date parsing helpers for Apple Health and GPX timestamps."""

from datetime import datetime, timezone
from typing import Optional, Union

APPLE_HEALTH_FORMAT = "%Y-%m-%d %H:%M:%S %z"


def parse_apple_health_date(date_str: Optional[str]) -> str:
    """
    Convert an Apple Health timestamp to ISO 8601.

    ``2024-12-15 10:30:45 -0600`` becomes ``2024-12-15T10:30:45-06:00``, a
    form SQLite's date functions understand. An empty value falls back to
    the current UTC time, matching how the export tooling treats it.
    """
    if not date_str:
        return datetime.now(timezone.utc).isoformat(timespec="seconds")

    text = date_str.strip()
    try:
        return datetime.strptime(text, APPLE_HEALTH_FORMAT).isoformat()
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).isoformat()
    except ValueError:
        return text


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp (``Z`` suffix allowed). Returns None if unparseable."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def to_utc(value: Union[str, datetime]) -> Optional[datetime]:
    """Convert to an aware UTC datetime. Naive values are assumed to be UTC."""
    dt = parse_iso_datetime(value) if isinstance(value, str) else value
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_date(value: Union[str, datetime]) -> str:
    """Return the YYYY-MM-DD part of a timestamp."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.split("T")[0].split(" ")[0]


def parse_duration(duration: Optional[str], unit: Optional[str]) -> Optional[float]:
    """Convert an Apple Health duration to minutes."""
    if not duration or not unit:
        return None
    try:
        value = float(duration)
    except ValueError:
        return None

    unit = unit.lower()
    if unit == "min":
        return value
    if unit in ("hr", "h"):
        return value * 60
    if unit in ("s", "sec"):
        return value / 60
    return None
