from typing import Any, Dict, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt

from elbisaur.listen import Listen, Track


class ImportSubmission(BaseModel):
    """ Submit previously saved listens, multiple listens per request are permitted. """
    listen_type: Literal["import"] = "import"
    payload: List[Dict[str, Any]]


class SingleSubmission(BaseModel):
    """ Submit a single listen, the user just finished listening to the track. """
    listen_type: Literal["single"] = "single"
    payload: List[Dict[str, Any]] = Field(min_length=1, max_length=1)


class PlayingNowSubmission(BaseModel):
    """ Submit a playing now notification, the user just began listening to the track. """
    listen_type: Literal["playing_now"] = "playing_now"
    payload: List[Dict[str, Any]] = Field(min_length=1, max_length=1)


ListenSubmission = Union[ImportSubmission, SingleSubmission, PlayingNowSubmission]


def import_submission(listens: List[Listen]) -> ImportSubmission:
    return ImportSubmission(payload=list(listens))


def single_submission(listen: Listen) -> SingleSubmission:
    return SingleSubmission(payload=[listen])


def playing_now_submission(track: Track) -> PlayingNowSubmission:
    return PlayingNowSubmission(payload=[{"track_metadata": track}])


class UserListens(BaseModel):
    """ Payload which is returned by `1/user/<user_name>/listens`. """
    model_config = ConfigDict(extra="allow")

    count: NonNegativeInt
    user_id: str
    listens: List[Dict[str, Any]]
    latest_listen_ts: int = 0
    oldest_listen_ts: int = 0


class UserPlayingNow(BaseModel):
    """ Payload which is returned by `1/user/<user_name>/playing-now`. """
    model_config = ConfigDict(extra="allow")

    count: Literal[0, 1]
    user_id: str
    listens: List[Dict[str, Any]] = Field(max_length=1)
    playing_now: bool = True
