import re
import unittest
from datetime import datetime
from unittest import mock

from dateutil.tz import tzoffset, tzutc

from elbisaur.timestamp import format_timestamp, local_to_utc, parse_timestamp


class ParseTimestampTestCase(unittest.TestCase):

    def test_date_only_is_utc(self):
        self.assertEqual(parse_timestamp("2023-01-01"), 1672531200)
        self.assertEqual(parse_timestamp("2023-02"), 1675209600)
        self.assertEqual(parse_timestamp("2023"), 1672531200)

    def test_explicit_timezone(self):
        self.assertEqual(parse_timestamp("2023-01-01T12:00:00Z"), 1672574400)
        self.assertEqual(parse_timestamp("2023-01-01T12:00:00+02:00"), 1672567200)

    def test_naive_date_time_is_local(self):
        expected = int(datetime(2023, 1, 1, 12, 0).timestamp())
        self.assertEqual(parse_timestamp("2023-01-01 12:00"), expected)

    def test_time_of_day_is_today(self):
        expected = int(datetime.now().replace(hour=12, minute=30, second=0, microsecond=0).timestamp())
        self.assertEqual(parse_timestamp("12:30"), expected)
        self.assertIsNone(parse_timestamp("25:30"))

    @mock.patch("elbisaur.timestamp.time.time", return_value=1672574400.75)
    def test_empty_value_is_now(self, mock_time):
        self.assertEqual(parse_timestamp(), 1672574400)
        self.assertEqual(parse_timestamp(""), 1672574400)

    def test_invalid_value(self):
        self.assertIsNone(parse_timestamp("not a date"))
        self.assertIsNone(parse_timestamp("2023-13-45"))


class LocalToUtcTestCase(unittest.TestCase):

    def test_positive_offset(self):
        self.assertEqual(local_to_utc(1700000000, tzoffset(None, 7200)), 1700000000 - 7200)

    def test_negative_offset(self):
        self.assertEqual(local_to_utc(1700000000, tzoffset(None, -5 * 3600)), 1700000000 + 5 * 3600)

    def test_utc(self):
        self.assertEqual(local_to_utc(1700000000, tzutc()), 1700000000)


class FormatTimestampTestCase(unittest.TestCase):

    def test_format(self):
        self.assertRegex(format_timestamp(1672574400), re.compile(r"^\d{2}/\d{2}/\d{4}, \d{2}:\d{2}:\d{2}$"))
