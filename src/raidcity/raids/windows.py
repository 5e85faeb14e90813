"""Day and ISO-week boundaries for raid counting. All times are UTC."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_week_iso(dt: datetime) -> str:
    """Get ISO week string e.g. '2026-W09'. Uses %G-W%V (ISO year + ISO week)."""
    return dt.astimezone(timezone.utc).strftime("%G-W%V")


def get_raid_day(dt: datetime) -> date:
    """The UTC calendar day a raid at ``dt`` counts against."""
    return dt.astimezone(timezone.utc).date()


def get_day_start(dt: datetime) -> datetime:
    """UTC midnight at the start of the day containing dt."""
    return datetime.combine(get_raid_day(dt), time.min, tzinfo=timezone.utc)


def get_week_start(dt: datetime) -> datetime:
    """Monday 00:00 UTC of the ISO week containing dt."""
    d = get_raid_day(dt)
    monday = d - timedelta(days=d.weekday())
    return datetime.combine(monday, time.min, tzinfo=timezone.utc)
