import logging
import time
import uuid
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote, urljoin

import orjson
import requests

from elbisaur import config
from elbisaur.errors import ApiError, ValidationError, is_error
from elbisaur.listen import InsertedListen, Listen, Track
from elbisaur.models import ListenSubmission, UserListens, UserPlayingNow, \
    import_submission, playing_now_submission, single_submission
from elbisaur.timestamp import parse_timestamp

logger = logging.getLogger(__name__)


class RateLimitGate:
    """Blocks outgoing requests of one client until the current rate limit window has expired.

    The gate is rearmed after every response whose `X-RateLimit-Remaining` header
    reads zero, using the number of seconds from `X-RateLimit-Reset-In`.
    """

    def __init__(self):
        self.resume_at = 0.0

    @property
    def is_limited(self) -> bool:
        return time.monotonic() < self.resume_at

    def wait(self) -> None:
        delay = self.resume_at - time.monotonic()
        if delay > 0:
            logger.info("Rate limit reached, waiting %.1f seconds", delay)
            time.sleep(delay)

    def update(self, response: requests.Response) -> None:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset_in = response.headers.get("X-RateLimit-Reset-In")
        try:
            if remaining is None or int(remaining) != 0 or reset_in is None:
                return
            self.resume_at = time.monotonic() + int(reset_in)
        except ValueError:
            logger.debug("Ignoring invalid rate limit headers: %s, %s", remaining, reset_in)


class ListenBrainzClient:
    """ListenBrainz API client to submit listens and request data.

    Args:
        user_token: the user token from https://listenbrainz.org/settings/
        api_url: root URL of the API, only useful with a custom server
        max_retries: maximum number of times a request is repeated after a
            "429 Too Many Requests" response
    """

    def __init__(self, user_token: str, api_url: Optional[str] = None, max_retries: Optional[int] = None):
        if not is_valid_token(user_token):
            raise ValidationError("No valid user token has been passed")

        self.api_url = api_url or config.API_URL
        self.max_retries = config.MAX_RETRIES if max_retries is None else max_retries
        self.rate_limit = RateLimitGate()
        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Token {user_token}",
            "Content-Type": "application/json",
        })

    def submit_listens(self, submission: ListenSubmission) -> None:
        self.post("1/submit-listens", submission.model_dump())

    def import_listens(self, listens: List[Listen]) -> None:
        """ Imports the given listens with a single request. """
        if len(listens) > config.MAX_LISTENS_PER_REQUEST:
            raise ValidationError(f"Too many listens, at most {config.MAX_LISTENS_PER_REQUEST} "
                                  f"can be imported per request")
        self.submit_listens(import_submission(listens))

    def listen(self, track: Track, listened_at: Optional[int] = None) -> None:
        """ Submits a listen for the given track.

        Args:
            track: metadata of the track
            listened_at: playback start time of the track, defaults to now
        """
        if listened_at is None:
            listened_at = parse_timestamp()
        self.submit_listens(single_submission({
            "listened_at": listened_at,
            "track_metadata": track,
        }))

    def playing_now(self, track: Track) -> None:
        """ Submits a playing now notification for the given track. """
        self.submit_listens(playing_now_submission(track))

    def delete_listen(self, listen: Union[InsertedListen, Dict[str, Any]]) -> None:
        """ Deletes a particular listen from the user's listen history.

        The listen is not deleted immediately, but is scheduled for deletion,
        which usually happens shortly after the hour.
        """
        self.post("1/delete-listen", {
            "listened_at": listen["listened_at"],
            "recording_msid": listen["recording_msid"],
        })

    def get_listen_count(self, user_name: str) -> int:
        data = self.get(f"1/user/{quote(user_name, safe='')}/listen-count")
        return data["payload"]["count"]

    def get_listens(self, user_name: str, min_ts: Optional[int] = None, max_ts: Optional[int] = None,
                    count: Optional[int] = None) -> UserListens:
        """ Gets listens of the given user.

        Without options the most recent listens are returned. Listens are always
        returned in descending timestamp order.

        Args:
            user_name: MusicBrainz name of the user
            min_ts: lower bound (exclusive) of the listen timestamps
            max_ts: upper bound (exclusive) of the listen timestamps
            count: desired number of listens, the server has a default and a maximum
        """
        data = self.get(f"1/user/{quote(user_name, safe='')}/listens", {
            "min_ts": min_ts,
            "max_ts": max_ts,
            "count": count,
        })
        return UserListens(**data["payload"])

    def get_playing_now(self, user_name: str) -> UserPlayingNow:
        data = self.get(f"1/user/{quote(user_name, safe='')}/playing-now")
        return UserPlayingNow(**data["payload"])

    def validate_token(self) -> Optional[str]:
        """ Checks whether the client's user token is valid.

        Returns:
            the name of the token's user or None if the token is invalid
        """
        data = self.get("1/validate-token")
        if data.get("valid"):
            return data.get("user_name")
        return None

    def search_users(self, search_term: str) -> List[str]:
        """ Searches ListenBrainz users and returns a list of names. """
        data = self.get("1/search/users", {"search_term": search_term})
        # newer API versions wrap the results into a payload
        users = data["payload"]["users"] if "payload" in data else data["users"]
        return [user["user_name"] for user in users]

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """ Fetches JSON data from the given GET endpoint.

        This should only be called directly for endpoints without a dedicated method.
        """
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        response = self._request("GET", endpoint, params=params)
        return self._decode_response(response)

    def post(self, endpoint: str, data: Any) -> Any:
        """ Sends the given JSON data to the given POST endpoint.

        This should only be called directly for endpoints without a dedicated method.
        """
        response = self._request("POST", endpoint, data=orjson.dumps(data))
        return self._decode_response(response)

    def _request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        url = urljoin(self.api_url, endpoint)
        retries = self.max_retries
        while True:
            self.rate_limit.wait()
            response = self.session.request(method, url, **kwargs)
            self.rate_limit.update(response)

            if response.status_code == 429 and retries > 0:
                retries -= 1
                logger.info("Too many requests for %s, retrying", endpoint)
                continue
            return response

    @staticmethod
    def _decode_response(response: requests.Response) -> Any:
        try:
            data = response.json()
        except ValueError:
            if not response.ok:
                raise ApiError(response.text.strip() or response.reason, response.status_code)
            raise

        if is_error(data):
            raise ApiError(data["error"], data["code"])
        return data


def is_valid_token(token: Optional[str]) -> bool:
    if not token:
        return False
    try:
        uuid.UUID(token)
        return True
    except (AttributeError, ValueError, TypeError):
        return False
