"""Datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value) -> datetime:
    """Parse datetime from ISO string or return as-is if already datetime.

    None maps to the current UTC time. Results are always aware UTC.
    """
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def format_utc(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with a Z suffix."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")
