from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone

# The institution runs on India time only; a fixed offset keeps instants unambiguous.
IST = timezone(timedelta(hours=5, minutes=30), name="IST")


def utcnow_naive() -> datetime:
    """Return current UTC time as naive datetime for DATETIME columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC and strip tzinfo. Naive values are assumed UTC already."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def from_utc_naive(value: datetime) -> datetime:
    """Attach UTC to a naive DATETIME column value."""
    if value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def ist_date(value: datetime | date) -> date:
    """Calendar date of a stored instant as seen in India time."""
    if isinstance(value, datetime):
        return from_utc_naive(value).astimezone(IST).date()
    return value


def combine_ist(day: date, at: time) -> datetime:
    return datetime.combine(day, at, tzinfo=IST)


def format_long_date(value: date | None) -> str:
    if value is None:
        return ""
    # e.g. "Tuesday, 10 June 2025"
    return f"{value.strftime('%A')}, {value.day} {value.strftime('%B %Y')}"
