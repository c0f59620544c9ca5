import csv
import logging
import re
from itertools import islice
from typing import Dict, Iterable, Iterator, Optional

from elbisaur.errors import FormatError
from elbisaur.listen import Listen, Track
from elbisaur.parsers.base import BaseListenParser
from elbisaur.timestamp import local_to_utc

logger = logging.getLogger(__name__)

#: Header line of a `.scrobbler.log` file, `#<KEY>/<value>`.
HEADER_PATTERN = re.compile(r"^#(?P<key>[A-Z]+)/(?P<value>.*)$")

#: Number of comment lines at the beginning of a `.scrobbler.log` file.
HEADER_LINE_COUNT = 3

#: Placeholder which Rockbox writes instead of its revision.
REVISION_PLACEHOLDER = "$Revision$"

#: Rating of a scrobble which was skipped, listened scrobbles have rating "L".
RATING_SKIPPED = "S"


class ScrobblerLogParser(BaseListenParser):
    """Parser for the `.scrobbler.log` files which are written by portable players like Rockbox.

    The file is a TSV document with three header lines (comments), followed by
    one scrobble per line. Only version 1.1 of the format with unknown timezone
    is supported, its timestamps are naive local times.

    Skipped scrobbles are not dropped, their additional info has `skipped` set.

    Args:
        tz: timezone of the player's clock, defaults to the local timezone
    """

    name = "elbisaur (.scrobbler.log parser)"

    FIELDNAMES = [
        "artist_name",
        "release_name",
        "track_name",
        "tracknumber",
        "duration",
        "rating",
        "timestamp",
        "recording_mbid",
    ]

    def __init__(self, tz=None):
        self.tz = tz

    def parse(self, input: Iterable[str]) -> Iterator[Listen]:
        lines = iter(input)
        header = self.parse_header(islice(lines, HEADER_LINE_COUNT))
        player = self.get_player_name(header)

        reader = csv.DictReader(
            (line for line in lines if line.strip() and not line.startswith("#")),
            fieldnames=self.FIELDNAMES,
            delimiter="\t",
            quoting=csv.QUOTE_NONE,
        )
        for row in reader:
            yield self.parse_scrobble(row, reader.line_num, player)

    @staticmethod
    def parse_header(lines: Iterable[str]) -> Dict[str, str]:
        """ Parses and validates the header lines of a `.scrobbler.log` file. """
        header = {}
        for line in lines:
            match = HEADER_PATTERN.match(line.strip())
            if match:
                header[match["key"]] = match["value"].strip()

        version = header.get("AUDIOSCROBBLER")
        if version != "1.1":
            raise FormatError(f'Unsupported .scrobbler.log version "{version}", only "1.1" is supported')

        tz = header.get("TZ")
        if tz != "UNKNOWN":
            raise FormatError(f'Unsupported .scrobbler.log timezone "{tz}", only "UNKNOWN" is supported')

        return header

    @staticmethod
    def get_player_name(header: Dict[str, str]) -> Optional[str]:
        client = header.get("CLIENT")
        if not client:
            return None
        return client.replace(REVISION_PLACEHOLDER, "").strip() or None

    def parse_scrobble(self, row: Dict[str, str], number: int, player: Optional[str] = None) -> Listen:
        if None in row or None in row.values():
            raise FormatError(f"Scrobble #{number} does not have {len(self.FIELDNAMES)} columns")

        if not row["artist_name"] or not row["track_name"]:
            raise FormatError(f"Scrobble #{number} has no artist and/or track name")

        track: Track = {
            "artist_name": row["artist_name"],
            "track_name": row["track_name"],
        }
        additional_info = {}

        if row["release_name"]:
            track["release_name"] = row["release_name"]
        if row["recording_mbid"]:
            additional_info["recording_mbid"] = row["recording_mbid"]

        try:
            if row["duration"]:
                additional_info["duration"] = int(row["duration"])
            if row["tracknumber"]:
                additional_info["tracknumber"] = int(row["tracknumber"])
            listened_at = local_to_utc(int(row["timestamp"]), self.tz)
        except ValueError as e:
            raise FormatError(f"Scrobble #{number} has an invalid number: {e}")

        if player:
            additional_info["media_player"] = player

        if row["rating"] == RATING_SKIPPED:
            additional_info["skipped"] = True

        track["additional_info"] = additional_info
        logger.debug("Parsed scrobble #%d: %s - %s", number, track["artist_name"], track["track_name"])
        return {
            "listened_at": listened_at,
            "track_metadata": track,
        }


def parse_scrobbler_log(input: Iterable[str], tz=None) -> Iterator[Listen]:
    """ Parses a text stream from a `.scrobbler.log` file into listens. """
    return ScrobblerLogParser(tz).parse(input)
