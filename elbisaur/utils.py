import os
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import orjson

from elbisaur.errors import ValidationError
from elbisaur.filters import get_track_value
from elbisaur.listen import InsertedListen, Listen
from elbisaur.parsers.listenbrainz import parse_json, parse_json_lines


def read_listens_file(path: str) -> Iterator[Union[Listen, InsertedListen]]:
    """ Reads listens from a JSONL or JSON file, depending on the file extension. """
    extension = os.path.splitext(path)[1].lower()
    if extension == ".jsonl":
        with open(path, mode="rb") as f:
            yield from parse_json_lines(f)
    elif extension == ".json":
        with open(path, mode="rb") as f:
            content = f.read()
        yield from parse_json(content)
    else:
        raise ValidationError(f'Unsupported file format "{extension}", expected ".json" or ".jsonl"')


class ListenWriter:
    """Appends listens to a JSONL file, one compact JSON document per line.

    Nothing is written if no path is given, which makes it easy to support a
    preview mode.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.file = None
        self.count = 0

    def open(self) -> "ListenWriter":
        if self.path and self.file is None:
            self.file = open(self.path, mode="ab")
        return self

    def write(self, listen: Dict[str, Any]) -> None:
        if self.file is None:
            return
        self.file.write(orjson.dumps(listen) + b"\n")
        self.count += 1

    def close(self) -> None:
        if self.file is not None:
            self.file.close()
            self.file = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def make_valid_index_types(value: Any) -> List[Union[str, int, float]]:
    """ Returns the values under which the given value should be counted. """
    if value is None:
        return ["null"]
    if isinstance(value, bool):
        return ["true" if value else "false"]
    if isinstance(value, (str, int, float)):
        return [value]
    if isinstance(value, list):
        return [v for item in value for v in make_valid_index_types(item)]
    return []


def count_values(listens: Iterable[Listen], keys: Iterable[str]) -> Dict[str, Counter]:
    """ Counts how often each value of the given track metadata keys occurs.

    Missing values are counted as empty string, list values count each element.
    """
    keys = list(keys)
    value_counts = {key: Counter() for key in keys}
    for listen in listens:
        track = listen["track_metadata"]
        for key in keys:
            if key in track or key in (track.get("additional_info") or {}):
                value = get_track_value(listen, key)
            else:
                value = ""
            value_counts[key].update(make_valid_index_types(value))
    return value_counts
