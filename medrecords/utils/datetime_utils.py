"""
Common date/time helpers.

Storage: timestamps are written in UTC. Rows read back from sqlite or from
the local cache may come back naive or as ISO strings; normalize them here
before comparing.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def as_utc(dt: datetime) -> datetime:
    """
    Convert dt to tz-aware UTC.
    If dt is naive, we treat it as UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return utc_now().date()


def parse_iso_string(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 string to UTC datetime.
    Handles both with and without 'Z' suffix.
    """
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"

    dt = datetime.fromisoformat(iso_string)
    return as_utc(dt)


def to_utc(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Normalize a stored timestamp (datetime or ISO string) to aware UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        return parse_iso_string(value)
    return as_utc(value)
