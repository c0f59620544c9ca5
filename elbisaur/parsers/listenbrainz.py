from typing import Iterable, Iterator, Union

import orjson

from elbisaur.errors import FormatError
from elbisaur.listen import InsertedListen, Listen, is_listen
from elbisaur.parsers.base import BaseListenParser


class JsonLinesParser(BaseListenParser):
    """Parser for JSONL files, such as the listen files of a ListenBrainz export.

    Each line has to contain a serialized listen object, blank lines are ignored.
    """

    name = "elbisaur (JSONL parser)"

    def parse(self, input: Iterable[Union[str, bytes]]) -> Iterator[Union[Listen, InsertedListen]]:
        for line_number, line in enumerate(input, start=1):
            if not line.strip():
                continue
            try:
                item = orjson.loads(line)
            except orjson.JSONDecodeError as e:
                raise FormatError(f"Line {line_number} contains invalid JSON: {e}")

            if not is_listen(item):
                raise FormatError(f"Line {line_number} contains no listen")
            yield item


def parse_json_lines(input: Iterable[Union[str, bytes]]) -> Iterator[Union[Listen, InsertedListen]]:
    """ Parses a text stream (or any iterable of lines) from a JSONL file into listens. """
    return JsonLinesParser().parse(input)


def parse_json(input: Union[str, bytes]) -> Iterator[Union[Listen, InsertedListen]]:
    """ Parses a JSON document into one or multiple listens.

    Accepts a serialized listen object or an array of listen objects as input.
    """
    try:
        data = orjson.loads(input)
    except orjson.JSONDecodeError as e:
        raise FormatError(f"Invalid JSON: {e}")

    if is_listen(data):
        yield data
    elif isinstance(data, list):
        for index, item in enumerate(data):
            if not is_listen(item):
                raise FormatError(f"Item at index {index} is no listen")
            yield item
    else:
        raise FormatError("JSON contains no listens")
