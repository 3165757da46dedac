import unittest

from asset_sync.models import (
    AssetRecord,
    HistoryField,
    HistoryState,
    RepeatMode,
    ScheduleRule,
    normalize_entry,
    to_int,
)
from tests.asset_sync_tests.fixtures import make_asset


class HistoryFieldTests(unittest.TestCase):
    def test_three_states(self):
        self.assertEqual(HistoryField.from_wire("statusHistory", None).state, HistoryState.OMITTED)
        self.assertEqual(HistoryField.from_wire("statusHistory", []).state, HistoryState.EMPTY)
        present = HistoryField.from_wire("statusHistory", [{"id": 1, "toStatus": "Active"}])
        self.assertEqual(present.state, HistoryState.PRESENT)
        self.assertEqual(len(present), 1)

    def test_non_list_is_omitted(self):
        self.assertFalse(HistoryField.from_wire("maintenanceHistory", "bad").present)

    def test_omitted_serializes_to_none(self):
        self.assertIsNone(HistoryField.omitted().to_wire())
        self.assertEqual(HistoryField.of([]).to_wire(), [])


class NormalizeEntryTests(unittest.TestCase):
    def test_fills_known_fields_and_keeps_extra(self):
        entry = normalize_entry("maintenanceHistory", {"id": "7", "date": "2024-01-01", "custom": 1})
        self.assertEqual(entry["id"], 7)
        self.assertEqual(entry["note"], "")
        self.assertEqual(entry["photo"], "")
        self.assertEqual(entry["custom"], 1)

    def test_missing_id_is_zero(self):
        self.assertEqual(normalize_entry("statusHistory", {})["id"], 0)


class ToIntTests(unittest.TestCase):
    def test_lenient(self):
        self.assertEqual(to_int("12"), 12)
        self.assertEqual(to_int(3.0), 3)
        self.assertIsNone(to_int("x"))
        self.assertIsNone(to_int(True))
        self.assertIsNone(to_int(None))
        self.assertIsNone(to_int(float("inf")))
        self.assertIsNone(to_int("nan"))


class ScheduleRuleTests(unittest.TestCase):
    def test_from_wire_monthly(self):
        rule = ScheduleRule.from_wire({"repeatMode": "monthly_weekday", "repeatWeekOfMonth": "2", "repeatWeekday": 6})
        self.assertEqual(rule.mode, RepeatMode.MONTHLY_WEEKDAY)
        self.assertEqual((rule.week_of_month, rule.weekday), (2, 6))
        self.assertIsNone(rule.validation_error())

    def test_weekday_names_accepted(self):
        self.assertEqual(ScheduleRule.from_wire({"repeatWeekday": "Saturday"}).weekday, 6)
        self.assertEqual(ScheduleRule.from_wire({"repeatWeekday": 7}).weekday, 7)

    def test_unknown_mode_is_none(self):
        self.assertEqual(ScheduleRule.from_wire({"repeatMode": "WEEKLY"}).mode, RepeatMode.NONE)

    def test_bounds(self):
        self.assertIn("repeatWeekOfMonth", ScheduleRule.monthly_weekday(6, 1).validation_error())
        self.assertIn("repeatWeekday", ScheduleRule.monthly_weekday(1, 7).validation_error())
        self.assertIsNone(ScheduleRule(next_date="2024-01-01").validation_error())


class AssetRecordTests(unittest.TestCase):
    def test_wire_round_trip_keeps_unknown_keys(self):
        data = make_asset(customField={"a": 1}, statusHistory=[{"id": 1, "toStatus": "Active"}])
        rec = AssetRecord.from_wire(data)
        wire = rec.to_wire()
        self.assertEqual(wire["customField"], {"a": 1})
        self.assertEqual(wire["assetId"], "C1-IT-PC-0001")
        self.assertEqual(len(wire["statusHistory"]), 1)
        self.assertNotIn("maintenanceHistory", wire)

    def test_key_and_identity(self):
        rec = AssetRecord.from_wire(make_asset())
        self.assertEqual(rec.key, ("C1-IT-PC-0001", "101"))
        self.assertTrue(rec.has_identity)
        self.assertFalse(AssetRecord.from_wire({"name": "x"}).has_identity)

    def test_photos_normalized_on_parse(self):
        rec = AssetRecord.from_wire(make_asset(photo="https://h/uploads/p.jpg", photos=["/uploads/q.jpg"]))
        self.assertEqual(list(rec.photos), ["/uploads/p.jpg", "/uploads/q.jpg"])

    def test_text_access_by_wire_name(self):
        rec = AssetRecord.from_wire(make_asset())
        self.assertEqual(rec.text("serialNumber"), "SN-001")
        self.assertEqual(rec.with_text(serialNumber="SN-2").serial_number, "SN-2")
        with self.assertRaises(KeyError):
            rec.text("nope")

    def test_explicit_fields_not_compared(self):
        a = AssetRecord.from_wire(make_asset())
        b = AssetRecord.from_wire(make_asset())
        b.explicit_fields = frozenset(["statusHistory"])
        self.assertEqual(a, b)


if __name__ == "__main__":
    unittest.main()
