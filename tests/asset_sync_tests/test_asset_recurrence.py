import datetime as dt
import unittest

from asset_sync.models import AssetRecord, ScheduleRule
from asset_sync.recurrence import (
    GRID_DAYS,
    calendar_window,
    due_alerts,
    materialize_calendar,
    next_occurrence,
    nth_weekday_of_month,
    occurrences_between,
)
from tests.asset_sync_tests.fixtures import make_asset

SATURDAY = 6
SUNDAY = 0
MONDAY = 1


class NthWeekdayTests(unittest.TestCase):
    def test_fifth_thursday_in_leap_february(self):
        self.assertEqual(nth_weekday_of_month(2024, 2, 5, 4), dt.date(2024, 2, 29))

    def test_missing_fifth_weekday(self):
        self.assertIsNone(nth_weekday_of_month(2024, 4, 5, SUNDAY))


class NextOccurrenceTests(unittest.TestCase):
    def test_first_saturday_from_month_start(self):
        rule = ScheduleRule.monthly_weekday(1, SATURDAY)
        self.assertEqual(next_occurrence(rule, dt.date(2024, 3, 1)), dt.date(2024, 3, 2))

    def test_skips_months_without_fifth_sunday(self):
        rule = ScheduleRule.monthly_weekday(5, SUNDAY)
        self.assertEqual(next_occurrence(rule, dt.date(2024, 4, 1)), dt.date(2024, 6, 30))

    def test_reference_day_itself_counts(self):
        rule = ScheduleRule.monthly_weekday(1, MONDAY)
        self.assertEqual(next_occurrence(rule, dt.date(2024, 3, 4)), dt.date(2024, 3, 4))

    def test_rolls_to_next_month_after_this_months_date(self):
        rule = ScheduleRule.monthly_weekday(1, MONDAY)
        self.assertEqual(next_occurrence(rule, dt.date(2024, 3, 5)), dt.date(2024, 4, 1))

    def test_literal_date_returned_even_if_past(self):
        rule = ScheduleRule(next_date="2024-01-15")
        self.assertEqual(next_occurrence(rule, dt.date(2024, 3, 1)), dt.date(2024, 1, 15))

    def test_invalid_rule_and_horizon_give_none(self):
        self.assertIsNone(next_occurrence(ScheduleRule.monthly_weekday(6, 1), dt.date(2024, 3, 1)))
        rule = ScheduleRule.monthly_weekday(5, SUNDAY)
        self.assertIsNone(next_occurrence(rule, dt.date(2024, 4, 1), horizon_months=1))
        self.assertIsNone(next_occurrence(ScheduleRule(next_date="soon"), dt.date(2024, 3, 1)))

    def test_end_of_calendar_gives_none(self):
        rule = ScheduleRule.monthly_weekday(5, SUNDAY)
        self.assertIsNone(next_occurrence(rule, dt.date(9999, 11, 1)))
        self.assertEqual(occurrences_between(rule, dt.date(9999, 12, 1), dt.date(9999, 12, 31)), [])
        self.assertIsNone(nth_weekday_of_month(10000, 1, 1, SUNDAY))


class CalendarTests(unittest.TestCase):
    def test_window_is_six_sunday_first_weeks(self):
        start, end = calendar_window(2024, 3)
        self.assertEqual(start, dt.date(2024, 2, 25))
        self.assertEqual(end, dt.date(2024, 4, 6))
        self.assertEqual((end - start).days + 1, GRID_DAYS)

    def test_occurrences_between(self):
        rule = ScheduleRule.monthly_weekday(1, SATURDAY)
        got = occurrences_between(rule, dt.date(2024, 2, 25), dt.date(2024, 4, 6))
        self.assertEqual(got, [dt.date(2024, 3, 2), dt.date(2024, 4, 6)])
        self.assertEqual(occurrences_between(rule, dt.date(2024, 4, 6), dt.date(2024, 4, 1)), [])

    def test_materialize_recurring_literal_and_verification(self):
        records = [
            AssetRecord.from_wire(make_asset(
                id=1, assetId="A-1", repeatMode="MONTHLY_WEEKDAY", repeatWeekOfMonth=1, repeatWeekday=SATURDAY,
            )),
            AssetRecord.from_wire(make_asset(id=2, assetId="A-2", nextMaintenanceDate="2024-03-20")),
            AssetRecord.from_wire(make_asset(id=3, assetId="A-3", nextVerificationDate="2024-03-15")),
            AssetRecord.from_wire(make_asset(id=4, assetId="A-4", nextMaintenanceDate="2024-05-01")),
        ]
        entries = materialize_calendar(records, 2024, 3)
        got = [(e.date.isoformat(), e.asset_id, e.kind, e.recurring) for e in entries]
        self.assertEqual(got, [
            ("2024-03-02", "A-1", "maintenance", True),
            ("2024-03-15", "A-3", "verification", False),
            ("2024-03-20", "A-2", "maintenance", False),
            ("2024-04-06", "A-1", "maintenance", True),
        ])


class DueAlertTests(unittest.TestCase):
    def test_overdue_due_and_excluded(self):
        records = [
            AssetRecord.from_wire(make_asset(id=1, assetId="A-1", nextMaintenanceDate="2024-02-20")),
            AssetRecord.from_wire(make_asset(
                id=2, assetId="A-2", repeatMode="MONTHLY_WEEKDAY", repeatWeekOfMonth=1, repeatWeekday=SATURDAY,
            )),
            AssetRecord.from_wire(make_asset(id=3, assetId="A-3", nextVerificationDate="2024-03-30")),
            AssetRecord.from_wire(make_asset(id=4, assetId="A-4", status="Retired", nextMaintenanceDate="2024-01-01")),
        ]
        alerts = due_alerts(records, dt.date(2024, 3, 1), window_days=7)
        self.assertEqual([(a.asset_id, a.days_until, a.overdue) for a in alerts], [
            ("A-1", -10, True),
            ("A-2", 1, False),
        ])

    def test_wider_window_includes_verification(self):
        rec = AssetRecord.from_wire(make_asset(nextVerificationDate="2024-03-30"))
        alerts = due_alerts([rec], dt.date(2024, 3, 1), window_days=30)
        self.assertEqual([a.kind for a in alerts], ["verification"])


if __name__ == "__main__":
    unittest.main()
