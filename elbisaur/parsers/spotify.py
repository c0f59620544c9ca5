import io
import logging
import math
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, IO, Iterator, Optional, Union

import ijson

from elbisaur.errors import FormatError
from elbisaur.listen import Listen
from elbisaur.parsers.base import BaseListenParser
from elbisaur.timestamp import parse_timestamp

logger = logging.getLogger(__name__)

#: Spotify URI, in the form of `spotify:<type>:<base-62-id>`.
SPOTIFY_URI_PATTERN = re.compile(r"^spotify:(?P<type>[a-z]+):(?P<id>[A-Za-z0-9]+)$")

SPOTIFY_URL = "https://open.spotify.com"

#: Timestamp of Spotify's launch, listens should be no older than that.
SPOTIFY_LAUNCH_TIME = int(datetime(2008, 10, 1, tzinfo=timezone.utc).timestamp())

#: Offline timestamps above this value are given in milliseconds.
MILLISECONDS_THRESHOLD = 10 ** 11

#: Maximum tolerated difference (in seconds) between calculated start time and offline timestamp.
MAX_OFFLINE_DELAY = 10

InvalidItemHook = Callable[[Dict[str, Any], int, str], None]


def spotify_uri_to_url(uri: str, base: str = SPOTIFY_URL) -> str:
    """ Constructs a Spotify URL from the given Spotify URI.

    >>> spotify_uri_to_url("spotify:track:1rrgWMXGCGHru5bIRxGFV0")
    'https://open.spotify.com/track/1rrgWMXGCGHru5bIRxGFV0'
    """
    match = SPOTIFY_URI_PATTERN.match(uri or "")
    if not match:
        raise FormatError(f'Invalid Spotify URI "{uri}"')
    return f"{base}/{match['type']}/{match['id']}"


def is_spotify_stream(item: Any) -> bool:
    """ Checks whether the given JSON is a stream item from a Spotify history file. """
    return isinstance(item, dict) and isinstance(item.get("ts"), str) and "spotify_track_uri" in item


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def _log_invalid_item(item: Dict[str, Any], index: int, reason: str) -> None:
    logger.debug("Skipping Spotify stream at index %d: %s", index, reason)


class SpotifyHistoryParser(BaseListenParser):
    """Parser for Spotify Extended Streaming History JSON files.

    Also yields skipped listens, which should usually not be submitted. These can
    be detected by the `skipped` and `reason_end` additional info and a too
    short `duration_ms`.

    Args:
        include_debug_info: add additional info properties which help with debugging
        on_invalid_item: called with item, index and reason for streams which
            are not listens (podcast episodes, tracks without artist or title)
        min_offline_timestamp: offline timestamps before this time are placeholders
    """

    name = "elbisaur (Spotify Extended Streaming History parser)"

    def __init__(self, include_debug_info: bool = False, on_invalid_item: Optional[InvalidItemHook] = None,
                 min_offline_timestamp: int = SPOTIFY_LAUNCH_TIME):
        self.include_debug_info = include_debug_info
        self.on_invalid_item = on_invalid_item or _log_invalid_item
        self.min_offline_timestamp = min_offline_timestamp

    def parse(self, input: Union[IO, bytes, str]) -> Iterator[Listen]:
        """ Parses a serialized array of Spotify streams, item by item. """
        if isinstance(input, str):
            input = input.encode("utf-8")
        if isinstance(input, bytes):
            input = io.BytesIO(input)

        try:
            events = ijson.parse(input, use_float=True)
            _, event, _ = next(events, (None, None, None))
            if event != "start_array":
                raise FormatError("Spotify JSON is supposed to be an array")

            for index, item in enumerate(ijson.items(events, "item")):
                listen = self.parse_stream(item, index)
                if listen is not None:
                    yield listen
        except ijson.JSONError as e:
            raise FormatError(f"Invalid Spotify JSON: {e}")

    def parse_stream(self, stream: Dict[str, Any], index: int) -> Optional[Listen]:
        """ Converts a single stream item into a listen, or None if it is no listen. """
        if not is_spotify_stream(stream):
            raise FormatError(f"Item at index {index} is no Spotify stream")

        if stream.get("spotify_episode_uri"):
            # podcast episodes are not supported by ListenBrainz
            self.on_invalid_item(stream, index, "Item is a podcast episode")
            return None

        track_name = stream.get("master_metadata_track_name")
        artist_name = stream.get("master_metadata_album_artist_name")
        if not (track_name and artist_name):
            self.on_invalid_item(stream, index, "Track has no artist and/or title")
            return None

        spotify_url = spotify_uri_to_url(stream["spotify_track_uri"])
        end_time = parse_timestamp(stream["ts"])
        if end_time is None:
            raise FormatError(f'Item at index {index} has an invalid timestamp "{stream["ts"]}"')

        ms_played = stream.get("ms_played") or 0
        calculated_start_time = end_time - _round(ms_played / 1000)

        # The logged end time is not always accurate. After the app or the web
        # player has been closed unexpectedly, it is the time when Spotify was
        # opened again. The "offline" timestamp (which is not exclusively used
        # for offline playback) is usually a few seconds off, but it is pretty
        # accurate in those cases where the logged end time is bogus.
        start_time = calculated_start_time
        offline_time = stream.get("offline_timestamp") or 0

        if offline_time > MILLISECONDS_THRESHOLD:
            offline_time = _round(offline_time / 1000)
        else:
            offline_time = _round(offline_time)
        if offline_time < self.min_offline_timestamp:
            # older exports may contain a meaningless placeholder value like 1
            offline_time = 0

        offline_time_delay = offline_time - calculated_start_time if offline_time else 0
        if offline_time and abs(offline_time_delay) > MAX_OFFLINE_DELAY:
            start_time = offline_time

        track_metadata = {
            "artist_name": artist_name,
            "track_name": track_name,
        }
        release_name = stream.get("master_metadata_album_album_name")
        if release_name:
            track_metadata["release_name"] = release_name

        additional_info = {
            "duration_ms": ms_played,
            "music_service": "spotify.com",
            "spotify_id": spotify_url,
            "origin_url": spotify_url,
            # raw fields to filter skipped streams
            "reason_start": stream.get("reason_start"),
            "reason_end": stream.get("reason_end"),
            "skipped": stream.get("skipped"),
            "incognito_mode": stream.get("incognito_mode"),
        }

        if self.include_debug_info:
            additional_info.update({
                "playing_stopped_date": stream["ts"],
                "playing_stopped_ts": end_time,
                "offline": stream.get("offline"),
                "offline_ts": stream.get("offline_timestamp"),
                "offline_ts_delay": offline_time_delay,
            })

        track_metadata["additional_info"] = additional_info
        return {
            "listened_at": start_time,
            "track_metadata": track_metadata,
        }


def parse_spotify_extended_history(input: Union[IO, bytes, str], include_debug_info: bool = False,
                                   on_invalid_item: Optional[InvalidItemHook] = None) -> Iterator[Listen]:
    """ Parses the content of a Spotify Extended Streaming History JSON file into listens. """
    return SpotifyHistoryParser(include_debug_info, on_invalid_item).parse(input)
