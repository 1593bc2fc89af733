"""Helpers for working with timezone-aware datetimes."""

from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    """Return a timezone-aware UTC ``datetime``."""

    return datetime.now(timezone.utc)


def coerce_utc(value: datetime | None) -> datetime | None:
    """Return a UTC-normalized datetime, assuming naive values are already UTC."""

    if value is None:
        return None

    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)

    return value.astimezone(timezone.utc)


def parse_scheduled_time(day: str | None, scheduled: str | None) -> datetime | None:
    """Combine a ``YYYY-MM-DD`` day and an ``HH:MM`` feed time into UTC.

    Feed times sometimes carry extra text (``"14:30 T3"``); only the first
    ``HH:MM`` group is used. Returns ``None`` when either part is missing or
    malformed.
    """

    if not day or not scheduled:
        return None

    try:
        parsed_day = date.fromisoformat(day.strip())
    except ValueError:
        return None

    for token in scheduled.replace("h", ":").split():
        hour, sep, minute = token.partition(":")
        if not sep or not (hour.isdigit() and minute[:2].isdigit()):
            continue
        hh, mm = int(hour), int(minute[:2])
        if 0 <= hh < 24 and 0 <= mm < 60:
            return datetime.combine(parsed_day, time(hh, mm), tzinfo=timezone.utc)
    return None
