"""Unit tests for UTC day and ISO-week boundaries."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from raidcity.raids.windows import get_day_start, get_raid_day, get_week_iso, get_week_start


class TestRaidDay:
    def test_utc_date(self):
        assert get_raid_day(datetime(2026, 3, 2, 23, 59, tzinfo=timezone.utc)) == date(2026, 3, 2)

    def test_offset_converted_to_utc(self):
        # 01:00 at UTC+2 is still the previous UTC day
        plus_two = timezone(timedelta(hours=2))
        assert get_raid_day(datetime(2026, 3, 3, 1, 0, tzinfo=plus_two)) == date(2026, 3, 2)

    def test_day_start_is_midnight(self):
        start = get_day_start(datetime(2026, 3, 2, 17, 45, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)

    def test_midnight_rollover(self):
        before = datetime(2026, 3, 2, 23, 59, 59, tzinfo=timezone.utc)
        after = before + timedelta(seconds=1)
        assert get_raid_day(before) != get_raid_day(after)


class TestWeekIso:
    def test_format(self):
        assert get_week_iso(datetime(2026, 3, 2, tzinfo=timezone.utc)) == "2026-W10"

    def test_monday_starts_new_week(self):
        sunday = datetime(2026, 3, 1, 23, 59, tzinfo=timezone.utc)
        monday = datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)
        assert get_week_iso(sunday) == "2026-W09"
        assert get_week_iso(monday) == "2026-W10"

    def test_iso_year_differs_from_calendar_year(self):
        # 2027-01-01 is a Friday in ISO week 2026-W53
        assert get_week_iso(datetime(2027, 1, 1, tzinfo=timezone.utc)) == "2026-W53"

    def test_week_start_is_monday(self):
        start = get_week_start(datetime(2026, 3, 5, 9, 30, tzinfo=timezone.utc))
        assert start == datetime(2026, 3, 2, 0, 0, tzinfo=timezone.utc)
        assert start.weekday() == 0
