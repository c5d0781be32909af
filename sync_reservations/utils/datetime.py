"""Timezone helpers for reservation timestamps."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from sync_reservations.config import TIMEZONE


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    Use this instead of datetime.now() or datetime.utcnow() so every audit
    timestamp written to the store is timezone-aware.
    """
    return datetime.now(timezone.utc)


def localize(value: datetime, tz_name: str = TIMEZONE) -> datetime:
    """
    Attach the hotel timezone to a naive datetime.

    Scraped check-in/check-out values carry no offset and are wall-clock times
    at the property. Aware datetimes are returned unchanged.

    Example:
        >>> localize(datetime(2024, 5, 11, 11, 0)).isoformat()
        '2024-05-11T11:00:00+09:00'
    """
    if value.tzinfo is not None:
        return value
    return value.replace(tzinfo=ZoneInfo(tz_name))
