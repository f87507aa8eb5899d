"""
Time helpers shared by models and services.

All persisted timestamps are naive UTC datetimes.
"""
from datetime import date, datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (matches DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    return utc_now().date()


def to_utc_isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a naive UTC datetime with an explicit Z suffix."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


def year_bounds(year: int) -> tuple[date, date]:
    """First and last day of a calendar year."""
    return date(year, 1, 1), date(year, 12, 31)
