import io
import os
import unittest

from dateutil.tz import tzoffset, tzutc

from elbisaur.errors import FormatError
from elbisaur.parsers.audioscrobbler import ScrobblerLogParser, parse_scrobbler_log

TEST_DATA_PATH = os.path.join(os.path.dirname(__file__), "data")

HEADER = "#AUDIOSCROBBLER/1.1\n#TZ/UNKNOWN\n#CLIENT/Rockbox sansaclipplus $Revision$\n"


class ScrobblerLogParserTestCase(unittest.TestCase):

    def setUp(self):
        self.parser = ScrobblerLogParser(tz=tzutc())

    def parse_file(self, name):
        with open(os.path.join(TEST_DATA_PATH, name), newline="", encoding="utf-8") as f:
            return list(self.parser.parse(f))

    def test_parse_file(self):
        listens = self.parse_file("rockbox.scrobbler.log")
        self.assertEqual(len(listens), 2)

        self.assertEqual(listens[0], {
            "listened_at": 1700000000,
            "track_metadata": {
                "artist_name": "Artist A",
                "track_name": "Track One",
                "release_name": "Album A",
                "additional_info": {
                    "duration": 200,
                    "tracknumber": 1,
                    "media_player": "Rockbox sansaclipplus",
                },
            },
        })

        track = listens[1]["track_metadata"]
        self.assertNotIn("release_name", track)
        self.assertEqual(track["additional_info"]["recording_mbid"], "b1a9c0e9-d987-4042-ae91-78d6a3267d69")
        self.assertNotIn("tracknumber", track["additional_info"])

    def test_skipped_scrobble(self):
        listens = self.parse_file("rockbox.scrobbler.log")
        self.assertNotIn("skipped", listens[0]["track_metadata"]["additional_info"])
        self.assertTrue(listens[1]["track_metadata"]["additional_info"]["skipped"])

    def test_local_time_is_converted(self):
        parser = ScrobblerLogParser(tz=tzoffset(None, 7200))
        log = HEADER + "Artist\tAlbum\tTitle\t1\t200\tL\t1700000000\t\n"
        listen = next(parser.parse(io.StringIO(log)))
        self.assertEqual(listen["listened_at"], 1700000000 - 7200)

    def test_unsupported_version(self):
        with self.assertRaises(FormatError):
            self.parse_file("unsupported_version.scrobbler.log")

    def test_unsupported_timezone(self):
        log = "#AUDIOSCROBBLER/1.1\n#TZ/UTC\n#CLIENT/Rockbox\n"
        with self.assertRaises(FormatError):
            list(self.parser.parse(io.StringIO(log)))

    def test_wrong_column_count(self):
        log = HEADER + "Artist\tAlbum\tTitle\t1\t200\tL\n"
        with self.assertRaisesRegex(FormatError, "8 columns"):
            list(self.parser.parse(io.StringIO(log)))

    def test_invalid_number(self):
        log = HEADER + "Artist\tAlbum\tTitle\tone\t200\tL\t1700000000\t\n"
        with self.assertRaises(FormatError):
            list(self.parser.parse(io.StringIO(log)))

    def test_missing_track_name(self):
        log = HEADER + "Artist\tAlbum\t\t1\t200\tL\t1700000000\t\n"
        with self.assertRaises(FormatError):
            list(self.parser.parse(io.StringIO(log)))

    def test_fails_fast(self):
        log = HEADER + "A\tB\tC\t1\t200\tL\t1700000000\t\nbroken line\n" + "D\tE\tF\t2\t200\tL\t1700000200\t\n"
        listens = self.parser.parse(io.StringIO(log))
        self.assertEqual(next(listens)["track_metadata"]["track_name"], "C")
        with self.assertRaises(FormatError):
            next(listens)

    def test_player_without_revision_placeholder(self):
        log = "#AUDIOSCROBBLER/1.1\n#TZ/UNKNOWN\n#CLIENT/Rockbox ipod6g 3.15\n" \
              "Artist\tAlbum\tTitle\t1\t200\tL\t1700000000\t\n"
        listen = next(parse_scrobbler_log(io.StringIO(log), tz=tzutc()))
        self.assertEqual(listen["track_metadata"]["additional_info"]["media_player"], "Rockbox ipod6g 3.15")
