"""Tests for trigger validation and due-instant math."""

import unittest
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from scenably.errors import InvalidTrigger
from scenably.models import Frequency, ScheduleTrigger
from scenably.supervisor.scheduling import (
    due_instant,
    latest_due_at_or_before,
    next_due_after,
    parse_days_of_week,
    validate_trigger,
)


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def _trigger(frequency=Frequency.DAILY, time="09:00", **kwargs) -> ScheduleTrigger:
    return ScheduleTrigger(scenario_id="scn-1", frequency=frequency, time=time, **kwargs)


class TriggerValidationTests(unittest.TestCase):
    """Validate field consistency rules and normalization."""

    def test_normalizes_time_and_days(self) -> None:
        daily = validate_trigger(_trigger(time="9:05"))
        self.assertEqual(daily.time, "09:05")

        weekly = validate_trigger(_trigger(Frequency.WEEKLY, day_of_week="wed, mon,MON"))
        self.assertEqual(weekly.day_of_week, "MON,WED")

        monthly = validate_trigger(_trigger("MONTHLY", day_of_month=31))
        self.assertEqual(monthly.frequency, Frequency.MONTHLY)

    def test_rejects_inconsistent_triggers(self) -> None:
        cases = [
            _trigger(time="25:00"),
            _trigger(time="9am"),
            _trigger("HOURLY"),
            _trigger(Frequency.WEEKLY),
            _trigger(Frequency.WEEKLY, day_of_week="FUNDAY"),
            _trigger(Frequency.DAILY, day_of_week="MON"),
            _trigger(Frequency.DAILY, day_of_month=3),
            _trigger(Frequency.MONTHLY),
            _trigger(Frequency.MONTHLY, day_of_month=0),
            _trigger(Frequency.MONTHLY, day_of_month=32),
        ]
        for trigger in cases:
            with self.subTest(trigger=trigger):
                with self.assertRaises(InvalidTrigger):
                    validate_trigger(trigger)

    def test_parse_days_of_week_returns_sorted_indexes(self) -> None:
        self.assertEqual(parse_days_of_week("SUN,mon"), [0, 6])


class DueInstantTests(unittest.TestCase):
    """Validate next/latest due computation across frequencies and timezones."""

    def test_daily_trigger_is_due_once_per_day(self) -> None:
        trigger = _trigger()
        created = _utc(2024, 1, 1, 8, 0)

        self.assertIsNone(due_instant(trigger, created, _utc(2024, 1, 1, 8, 59)))
        self.assertEqual(due_instant(trigger, created, _utc(2024, 1, 1, 9, 1)), _utc(2024, 1, 1, 9, 0))
        self.assertIsNone(due_instant(trigger, _utc(2024, 1, 1, 9, 0), _utc(2024, 1, 1, 9, 2)))

    def test_due_exactly_at_boundary(self) -> None:
        trigger = _trigger()
        self.assertEqual(
            due_instant(trigger, _utc(2024, 1, 1, 8, 0), _utc(2024, 1, 1, 9, 0)),
            _utc(2024, 1, 1, 9, 0),
        )

    def test_long_gap_yields_only_latest_missed_instant(self) -> None:
        trigger = _trigger()
        self.assertEqual(
            due_instant(trigger, _utc(2024, 1, 1, 9, 0), _utc(2024, 1, 5, 10, 0)),
            _utc(2024, 1, 5, 9, 0),
        )

    def test_weekly_trigger_fires_on_listed_days(self) -> None:
        trigger = _trigger(Frequency.WEEKLY, day_of_week="MON,WED")
        # 2024-01-01 is a Monday.
        self.assertEqual(next_due_after(trigger, _utc(2024, 1, 1, 9, 0)), _utc(2024, 1, 3, 9, 0))
        self.assertEqual(next_due_after(trigger, _utc(2024, 1, 3, 9, 0)), _utc(2024, 1, 8, 9, 0))

    def test_monthly_trigger_clamps_to_month_end(self) -> None:
        trigger = _trigger(Frequency.MONTHLY, day_of_month=31)
        self.assertEqual(next_due_after(trigger, _utc(2024, 2, 1)), _utc(2024, 2, 29, 9, 0))
        self.assertEqual(next_due_after(trigger, _utc(2024, 2, 29, 9, 0)), _utc(2024, 3, 31, 9, 0))
        self.assertEqual(next_due_after(trigger, _utc(2024, 4, 1)), _utc(2024, 4, 30, 9, 0))

    def test_reference_timezone_governs_wall_clock_time(self) -> None:
        trigger = _trigger()
        tz = ZoneInfo("America/New_York")

        self.assertEqual(latest_due_at_or_before(trigger, datetime(2024, 1, 2, 9, 30), tz), _utc(2024, 1, 2, 14, 0))
        self.assertEqual(latest_due_at_or_before(trigger, _utc(2024, 7, 1, 13, 30), tz), _utc(2024, 7, 1, 13, 0))
        self.assertEqual(latest_due_at_or_before(trigger, _utc(2024, 7, 1, 12, 30), tz), _utc(2024, 6, 30, 13, 0))


if __name__ == "__main__":
    unittest.main()
