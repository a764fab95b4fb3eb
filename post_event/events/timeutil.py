"""Normalize externally supplied timestamps to UTC."""
from datetime import UTC, date, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are taken to be UTC already.

    Databases such as SQLite drop the timezone on the way back, so anything
    read from storage comes back naive.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_time(value: str | datetime | date | None) -> datetime | None:
    """
    Convert a parsed timestamp into an aware UTC datetime.

    Accepted inputs:
        2024-05-01T18:00:00Z, 2024-05-01T18:00:00+02:00, 2024-05-01 18:00,
        2024-05-01 (midnight UTC), or a date/datetime object.

    Blank strings and None give None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)

    text = value.strip()
    if not text:
        return None
    if "T" in text or " " in text:
        return as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=UTC)
