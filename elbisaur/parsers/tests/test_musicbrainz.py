import os
import unittest

import orjson

from elbisaur.errors import ValidationError
from elbisaur.parsers.musicbrainz import TrackRange, join_artist_credit, parse_musicbrainz_release, \
    parse_track_range

TEST_DATA_PATH = os.path.join(os.path.dirname(__file__), "data")


class ParseTrackRangeTestCase(unittest.TestCase):

    def test_empty(self):
        self.assertEqual(parse_track_range(None), TrackRange())
        self.assertEqual(parse_track_range(""), TrackRange())

    def test_ranges(self):
        self.assertEqual(parse_track_range("1-2"), TrackRange(None, 1, 2))
        self.assertEqual(parse_track_range("3"), TrackRange(None, 3, 3))
        self.assertEqual(parse_track_range("2:"), TrackRange(2))
        self.assertEqual(parse_track_range("2:4-"), TrackRange(2, 4, None))
        self.assertEqual(parse_track_range("-3"), TrackRange(None, None, 3))

    def test_prefix(self):
        self.assertEqual(parse_track_range("B"), TrackRange(prefix="B"))

    def test_invalid(self):
        for value in ["3-1", "1-2-3", "a:1"]:
            with self.subTest(value=value), self.assertRaises(ValidationError):
                parse_track_range(value)


class ParseMusicBrainzReleaseTestCase(unittest.TestCase):

    def setUp(self):
        with open(os.path.join(TEST_DATA_PATH, "release.json"), "rb") as f:
            self.release = orjson.loads(f.read())

    def test_start_time(self):
        listens = parse_musicbrainz_release(self.release, start_time=1000, tracks=TrackRange(medium=1))
        self.assertEqual([listen["listened_at"] for listen in listens], [1000, 1200])
        self.assertEqual(listens[0]["track_metadata"], {
            "track_name": "Track One",
            "artist_name": "Artist A feat. Artist B",
            "release_name": "Album A",
            "additional_info": {
                "discnumber": 1,
                "tracknumber": "A1",
                "recording_mbid": "a1b1c1d1-0000-4000-8000-000000000001",
                "artist_mbids": ["aaaaaaaa-0000-4000-8000-000000000001", "bbbbbbbb-0000-4000-8000-000000000002"],
                "release_mbid": "9f4bd9b2-1f8a-4e16-a1a0-7a7c3f6d1c23",
                "duration_ms": 200000,
            },
        })

    def test_end_time(self):
        listens = parse_musicbrainz_release(self.release, end_time=2000, tracks=TrackRange(medium=1))
        self.assertEqual([listen["listened_at"] for listen in listens], [1700, 1900])

    def test_last_track_without_length(self):
        listens = parse_musicbrainz_release(self.release, start_time=1000)
        self.assertEqual([listen["listened_at"] for listen in listens], [1000, 1200, 1301])
        self.assertNotIn("duration_ms", listens[2]["track_metadata"]["additional_info"])

    def test_unknown_length_with_end_time(self):
        with self.assertRaises(ValidationError):
            parse_musicbrainz_release(self.release, end_time=2000)

    def test_track_prefix(self):
        listens = parse_musicbrainz_release(self.release, start_time=1000, tracks=parse_track_range("B"))
        self.assertEqual(len(listens), 1)
        self.assertEqual(listens[0]["track_metadata"]["track_name"], "Track Two")

    def test_time_is_required(self):
        with self.assertRaises(ValidationError):
            parse_musicbrainz_release(self.release)
        with self.assertRaises(ValidationError):
            parse_musicbrainz_release(self.release, start_time=1000, end_time=2000)

    def test_join_artist_credit(self):
        credit = self.release["media"][0]["tracks"][0]["recording"]["artist-credit"]
        self.assertEqual(join_artist_credit(credit), "Artist A feat. Artist B")
