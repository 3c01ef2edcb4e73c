from datetime import datetime, timezone
from typing import Any, Optional

from dateutil import parser


def utcnow() -> datetime:
    """Returns the current time in UTC as an aware datetime object."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """DB drivers hand back naive datetimes for UTC columns; tag them as UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accepts datetimes, ISO strings and epoch seconds/millis. Returns aware UTC or None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    try:
        return ensure_aware(parser.isoparse(str(value)))
    except (ValueError, OverflowError):
        return None
