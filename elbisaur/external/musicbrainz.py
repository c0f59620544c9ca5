import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3 import Retry

from elbisaur import __version__, config
from elbisaur.errors import ApiError

logger = logging.getLogger(__name__)

#: URL of a MusicBrainz release page.
RELEASE_URL_PATTERN = re.compile(r"^https?://(?:[a-z]+\.)?musicbrainz\.org/release/(?P<mbid>[0-9a-f-]{36})(?:[/?#].*)?$")


def parse_release_url(url: str) -> Optional[str]:
    """ Extracts the release MBID from a MusicBrainz release URL, if it is one. """
    match = RELEASE_URL_PATTERN.match(url)
    return match["mbid"] if match else None


class MusicBrainzClient:
    """Minimal client for the MusicBrainz web service."""

    def __init__(self, api_url: Optional[str] = None):
        self.api_url = api_url or config.MUSICBRAINZ_API_URL
        self.user_agent = f"elbisaur/{__version__} ( {config.CONTACT_URL} )"

    def _get_requests_session(self):
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        http = requests.Session()
        http.headers.update({"User-Agent": self.user_agent, "Accept": "application/json"})
        http.mount("https://", adapter)
        http.mount("http://", adapter)
        return http

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = urljoin(self.api_url, endpoint)
        with self._get_requests_session() as http:
            response = http.get(url, params={**(params or {}), "fmt": "json"})
            if response.status_code != 200:
                try:
                    message = response.json().get("error", response.reason)
                except ValueError:
                    message = response.reason
                raise ApiError(f"MusicBrainz: {message}", response.status_code)
            return response.json()

    def lookup_release(self, mbid: str) -> Dict[str, Any]:
        """ Looks up a release including its recordings and their artist credits. """
        logger.debug("Looking up MusicBrainz release %s", mbid)
        return self.get(f"release/{mbid}", {"inc": "recordings artist-credits"})
