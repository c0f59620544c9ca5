from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple, TypedDict, Union

from elbisaur.timestamp import format_timestamp


class AdditionalInfo(TypedDict, total=False):
    """Additional metadata of a track.

    Only the officially documented keys are listed. Other keys may be present
    and are preserved unmodified.
    """
    artist_mbids: List[str]
    release_group_mbid: str
    release_mbid: str
    recording_mbid: str
    track_mbid: str
    work_mbids: List[str]
    tracknumber: Union[int, str]
    discnumber: int
    isrc: str
    tags: List[str]
    media_player: str
    media_player_version: str
    submission_client: str
    submission_client_version: str
    music_service: str
    music_service_name: str
    origin_url: str
    duration_ms: int
    duration: int
    spotify_id: str


class Track(TypedDict, total=False):
    artist_name: str
    track_name: str
    release_name: str
    additional_info: AdditionalInfo


class Listen(TypedDict):
    listened_at: int
    track_metadata: Track


class InsertedListen(Listen, total=False):
    """Listen as it is returned by the server after it has been stored."""
    inserted_at: int
    recording_msid: str
    user_name: str


#: Track metadata keys which are not part of additional_info.
TRACK_KEYS = ("track_name", "artist_name", "release_name")

#: Keys which are assigned by the server and must not be submitted again.
SERVER_KEYS = ("inserted_at", "user_name", "recording_msid", "playing_now")
SERVER_TRACK_KEYS = ("mbid_mapping", "recording_msid", "brainzplayer_metadata")
SERVER_ADDITIONAL_INFO_KEYS = ("recording_msid", "release_msid", "artist_msid")


def is_listen(data: Any) -> bool:
    """ Checks whether the given JSON document is a listen. """
    if not isinstance(data, dict):
        return False
    listened_at = data.get("listened_at")
    metadata = data.get("track_metadata")
    return isinstance(listened_at, int) and not isinstance(listened_at, bool) and \
        isinstance(metadata, dict) and \
        isinstance(metadata.get("track_name"), str) and \
        isinstance(metadata.get("artist_name"), str)


class _TemplateFields(dict):
    def __missing__(self, key):
        return ""


def format_listen(listen: Listen, template: Optional[str] = None) -> str:
    """ Returns a single line representation of the given listen (for logging).

    Args:
        listen: the listen to format
        template: optional `str.format` template which may refer to the track
            metadata, all additional info keys, `listened_at` and `date`
    """
    track = listen["track_metadata"]
    additional_info = track.get("additional_info") or {}
    date = format_timestamp(listen["listened_at"])

    if template:
        fields = _TemplateFields(additional_info)
        fields.update({key: value for key, value in track.items() if key != "additional_info"})
        fields["listened_at"] = listen["listened_at"]
        fields["date"] = date
        return template.format_map(fields)

    return " | ".join([
        date,
        track["artist_name"],
        track["track_name"],
        track.get("release_name") or "[standalone track]",
        f"#{additional_info.get('tracknumber') or 0}",
    ])


def clean_listen(listen: Union[Listen, InsertedListen]) -> Listen:
    """ Returns a copy of the listen without the fields that were assigned by the server. """
    listen = deepcopy(listen)
    for key in SERVER_KEYS:
        listen.pop(key, None)

    track_metadata = listen["track_metadata"]
    for key in SERVER_TRACK_KEYS:
        track_metadata.pop(key, None)

    additional_info = track_metadata.get("additional_info")
    if additional_info:
        for key in SERVER_ADDITIONAL_INFO_KEYS:
            additional_info.pop(key, None)
    return listen


def set_submission_client(track: Track, name: str, version: Optional[str] = None, overwrite: bool = False) -> None:
    """ Sets the submission client of the track unless it already has one.

    Args:
        track: track metadata, modified in place
        name: name of the submission client (without version)
        version: version of the submission client
        overwrite: replace an already present submission client
    """
    additional_info = track.setdefault("additional_info", {})
    if additional_info.get("submission_client") and not overwrite:
        return

    additional_info["submission_client"] = name
    if version:
        additional_info["submission_client_version"] = version
    else:
        additional_info.pop("submission_client_version", None)


def unique_listen_key(listen: Dict[str, Any]) -> Tuple[int, Optional[str]]:
    """ Returns the key which identifies a stored listen of a user. """
    return listen["listened_at"], listen.get("recording_msid")
