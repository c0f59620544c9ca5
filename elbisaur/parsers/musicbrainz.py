import math
import re
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from elbisaur.errors import ValidationError
from elbisaur.listen import Listen


class TrackRange(NamedTuple):
    """Selection of tracks from a release, all tracks are selected by default.

    Tracks are selected by their position on the medium (`first` and `last`,
    both inclusive) or by the prefix of their track number (e.g. `A` for side A
    of a vinyl record).
    """
    medium: Optional[int] = None
    first: Optional[int] = None
    last: Optional[int] = None
    prefix: Optional[str] = None

    def includes_medium(self, medium: Dict[str, Any]) -> bool:
        return self.medium is None or medium.get("position") == self.medium

    def includes_track(self, track: Dict[str, Any]) -> bool:
        if self.prefix is not None:
            return str(track.get("number", "")).startswith(self.prefix)
        position = track.get("position")
        if self.first is not None and position < self.first:
            return False
        if self.last is not None and position > self.last:
            return False
        return True


TRACK_RANGE_PATTERN = re.compile(r"^(?:(?P<medium>\d+):)?(?:(?P<first>\d*)(?P<dash>-)(?P<last>\d*)|(?P<single>\w*))$")


def parse_track_range(value: Optional[str]) -> TrackRange:
    """ Parses a track range, `<first>-<last>`, `<number>`, `<prefix>` or `<medium>:<first>-<last>`.

    Raises:
        ValidationError: if the track range is malformed
    """
    if not value:
        return TrackRange()

    match = TRACK_RANGE_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(f'Invalid track range "{value}"')

    medium = int(match["medium"]) if match["medium"] else None
    if match["dash"]:
        first = int(match["first"]) if match["first"] else None
        last = int(match["last"]) if match["last"] else None
        if first is not None and last is not None and first > last:
            raise ValidationError(f'Invalid track range "{value}", first track is after the last one')
        return TrackRange(medium, first, last)

    single = match["single"]
    if not single:
        return TrackRange(medium)
    if single.isdigit():
        return TrackRange(medium, int(single), int(single))
    return TrackRange(medium, prefix=single)


def join_artist_credit(artist_credit: List[Dict[str, Any]]) -> str:
    """ Joins the credited artist names and join phrases into a single name. """
    return "".join(credit["name"] + credit.get("joinphrase", "") for credit in artist_credit)


def _track_length(track: Dict[str, Any]) -> Optional[int]:
    return track.get("length") or track["recording"].get("length")


def _round(value: float) -> int:
    return math.floor(value + 0.5)


def parse_musicbrainz_release(release: Dict[str, Any], start_time: Optional[int] = None,
                              end_time: Optional[int] = None,
                              tracks: Optional[TrackRange] = None) -> List[Listen]:
    """ Creates listens for consecutively played tracks of a MusicBrainz release.

    Args:
        release: release JSON from the MusicBrainz API, including recordings
            and artist credits
        start_time: Unix time when the first track started playing
        end_time: Unix time when the last track finished playing, only one of
            start and end time may be given
        tracks: range of tracks which were played, defaults to all tracks

    Raises:
        ValidationError: if no (or both) times are given or if the start time of
            a listen can not be calculated because of an unknown track length
    """
    if (start_time is None) == (end_time is None):
        raise ValidationError("Either start or end time is required and both are mutually exclusive")
    track_range = tracks or TrackRange()

    selected_tracks = [
        (medium, track)
        for medium in release.get("media", [])
        if track_range.includes_medium(medium)
        for track in medium.get("tracks") or []
        if track_range.includes_track(track)
    ]

    if start_time is None:
        lengths = [_track_length(track) for _, track in selected_tracks]
        if any(length is None for length in lengths):
            raise ValidationError("Unknown track length, can not calculate start time of the first listen")
        start_time = end_time - sum(lengths) / 1000

    return list(_generate_listens(release, selected_tracks, start_time))


def _generate_listens(release, selected_tracks, start_time) -> Iterator[Listen]:
    track_start_time = start_time
    last_duration_ms = 0
    for medium, track in selected_tracks:
        if last_duration_ms is None:
            raise ValidationError("Unknown track length, can not calculate start time of the next listen")
        track_start_time += last_duration_ms / 1000

        recording = track["recording"]
        artist_credit = recording.get("artist-credit") or track.get("artist-credit") or []
        duration_ms = _track_length(track)

        additional_info = {
            "discnumber": medium.get("position"),
            "tracknumber": track.get("number"),
            "recording_mbid": recording["id"],
            "artist_mbids": [credit["artist"]["id"] for credit in artist_credit],
            "release_mbid": release["id"],
        }
        if duration_ms:
            additional_info["duration_ms"] = duration_ms

        yield {
            "listened_at": _round(track_start_time),
            "track_metadata": {
                "track_name": recording["title"],
                "artist_name": join_artist_credit(artist_credit),
                "release_name": release["title"],
                "additional_info": additional_info,
            },
        }
        last_duration_ms = duration_ms
