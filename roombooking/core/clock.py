from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def venue_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().timezone)


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc(value: datetime, tz: ZoneInfo | None = None) -> datetime:
    """Normalise caller input: naive values are venue-local wall-clock times."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz or venue_tz())
    return value.astimezone(timezone.utc)
