import os
import unittest

from elbisaur.errors import FormatError
from elbisaur.parsers.listenbrainz import JsonLinesParser, parse_json, parse_json_lines

TEST_DATA_PATH = os.path.join(os.path.dirname(__file__), "data")

LISTEN = '{"listened_at": 1672574400, "track_metadata": {"artist_name": "Artist", "track_name": "Title"}}'


class JsonLinesParserTestCase(unittest.TestCase):

    def test_parse_file(self):
        with open(os.path.join(TEST_DATA_PATH, "listens.jsonl"), "rb") as f:
            listens = list(JsonLinesParser().parse(f))

        # blank lines are skipped
        self.assertEqual(len(listens), 2)
        self.assertEqual(listens[0]["recording_msid"], "0a5e8d8a-0b3b-4c2c-a3f7-6a7e3a3b8c21")
        self.assertEqual(listens[1]["listened_at"], 1672610000)

    def test_parser_is_callable(self):
        parser = JsonLinesParser()
        self.assertEqual(len(list(parser([LISTEN, LISTEN]))), 2)
        # every call starts a new parse
        self.assertEqual(len(list(parser([LISTEN]))), 1)

    def test_invalid_json(self):
        with self.assertRaisesRegex(FormatError, "Line 2 contains invalid JSON"):
            list(parse_json_lines([LISTEN, "{"]))

    def test_no_listen(self):
        with self.assertRaisesRegex(FormatError, "Line 1 contains no listen"):
            list(parse_json_lines(['{"listened_at": "yesterday"}']))


class ParseJsonTestCase(unittest.TestCase):

    def test_single_listen(self):
        listens = list(parse_json(LISTEN))
        self.assertEqual(len(listens), 1)
        self.assertEqual(listens[0]["track_metadata"]["track_name"], "Title")

    def test_listen_array(self):
        listens = list(parse_json(f"[{LISTEN}, {LISTEN}]"))
        self.assertEqual(len(listens), 2)

    def test_invalid_array_item(self):
        with self.assertRaisesRegex(FormatError, "Item at index 1 is no listen"):
            list(parse_json(f'[{LISTEN}, {{"track_metadata": {{}}}}]'))

    def test_no_listens(self):
        with self.assertRaisesRegex(FormatError, "JSON contains no listens"):
            list(parse_json('{"payload": []}'))

    def test_timestamp_has_to_be_integer(self):
        with self.assertRaises(FormatError):
            list(parse_json(LISTEN.replace("1672574400", "true")))
