import unittest
from datetime import datetime, timezone

from gator.errors import TimeParseError
from gator.timeparse import parse_published, parse_rss_time


def _utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class ParseRssTimeTests(unittest.TestCase):
    def test_rfc1123_numeric_zone(self):
        self.assertEqual(parse_rss_time("Mon, 02 Jan 2006 15:04:05 -0700"), _utc(2006, 1, 2, 22, 4, 5))

    def test_rfc1123_zone_abbreviation(self):
        self.assertEqual(parse_rss_time("Mon, 02 Jan 2006 15:04:05 GMT"), _utc(2006, 1, 2, 15, 4, 5))
        self.assertEqual(parse_rss_time("Mon, 02 Jan 2006 15:04:05 MST"), _utc(2006, 1, 2, 22, 4, 5))

    def test_rfc1123_two_letter_ut(self):
        self.assertEqual(parse_rss_time("Mon, 02 Jan 2006 15:04:05 UT"), _utc(2006, 1, 2, 15, 4, 5))

    def test_unknown_abbreviation_reads_as_utc(self):
        self.assertEqual(parse_rss_time("Mon, 02 Jan 2006 15:04:05 XYZ"), _utc(2006, 1, 2, 15, 4, 5))

    def test_rfc822_numeric_zone(self):
        self.assertEqual(parse_rss_time("02 Jan 06 15:04 +0100"), _utc(2006, 1, 2, 14, 4))

    def test_rfc822_zone_abbreviation(self):
        self.assertEqual(parse_rss_time("02 Jan 06 15:04 PST"), _utc(2006, 1, 2, 23, 4))

    def test_iso8601(self):
        self.assertEqual(parse_rss_time("2006-01-02T15:04:05Z"), _utc(2006, 1, 2, 15, 4, 5))
        self.assertEqual(parse_rss_time("2006-01-02T15:04:05+07:00"), _utc(2006, 1, 2, 8, 4, 5))
        self.assertEqual(parse_rss_time("2006-01-02T15:04:05.250Z"), _utc(2006, 1, 2, 15, 4, 5, 250000))
        self.assertEqual(
            parse_rss_time("2006-01-02T15:04:05.123456789Z"), _utc(2006, 1, 2, 15, 4, 5, 123456)
        )

    def test_bare_datetime_is_utc(self):
        parsed = parse_rss_time("2006-01-02 15:04:05")
        self.assertEqual(parsed, _utc(2006, 1, 2, 15, 4, 5))
        self.assertEqual(parsed.utcoffset().total_seconds(), 0)

    def test_surrounding_whitespace_is_ignored(self):
        self.assertEqual(parse_rss_time("\n  Mon, 02 Jan 2006 15:04:05 +0000 "), _utc(2006, 1, 2, 15, 4, 5))

    def test_unparseable_raises(self):
        with self.assertRaises(TimeParseError):
            parse_rss_time("not-a-date")
        with self.assertRaises(ValueError):
            parse_rss_time("")


class ParsePublishedTests(unittest.TestCase):
    def test_invalid_or_missing_is_absent(self):
        self.assertIsNone(parse_published("not-a-date"))
        self.assertIsNone(parse_published(""))
        self.assertIsNone(parse_published(None))

    def test_valid_value_is_parsed(self):
        self.assertEqual(parse_published("Tue, 10 Jun 2003 04:00:00 GMT"), _utc(2003, 6, 10, 4))


if __name__ == "__main__":
    unittest.main()
