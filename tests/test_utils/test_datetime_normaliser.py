import unittest
from datetime import date, datetime, timezone, timedelta
from common.utils.datetime_normaliser import from_iso_string, to_calendar_date, utc_now

class TestDatetimeNormaliser(unittest.TestCase):
    def test_from_iso_string_with_timezone(self):
        iso = "2026-01-29T12:00:00+05:30"
        dt = from_iso_string(iso)
        self.assertIsInstance(dt, datetime)
        self.assertEqual(dt.tzinfo, timezone.utc)
        self.assertEqual(dt.hour, 6)

    def test_from_iso_string_utc(self):
        iso = "2026-01-29T06:00:00+00:00"
        dt = from_iso_string(iso)
        self.assertIsInstance(dt, datetime)
        self.assertEqual(dt.tzinfo, timezone.utc)
        self.assertEqual(dt.hour, 6)

    def test_from_iso_string_naive_raises(self):
        iso = "2026-01-29T12:00:00"
        with self.assertRaises(ValueError):
            from_iso_string(iso)

    def test_to_calendar_date_from_date_string(self):
        self.assertEqual(to_calendar_date("2026-01-29"), date(2026, 1, 29))

    def test_to_calendar_date_drops_time_of_day(self):
        self.assertEqual(to_calendar_date("2026-01-29T23:59:00+00:00"), date(2026, 1, 29))

    def test_to_calendar_date_converts_offsets_to_utc(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        self.assertEqual(to_calendar_date(datetime(2026, 1, 30, 2, 0, tzinfo=ist)), date(2026, 1, 29))

    def test_to_calendar_date_naive_is_utc(self):
        self.assertEqual(to_calendar_date(datetime(2026, 1, 29, 23, 0)), date(2026, 1, 29))

    def test_to_calendar_date_passes_dates_through(self):
        self.assertEqual(to_calendar_date(date(2026, 1, 29)), date(2026, 1, 29))

    def test_to_calendar_date_invalid(self):
        with self.assertRaises(ValueError):
            to_calendar_date("29/01/2026")

    def test_utc_now_is_aware(self):
        self.assertEqual(utc_now().tzinfo, timezone.utc)

if __name__ == "__main__":
    unittest.main()
