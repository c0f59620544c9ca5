from elbisaur.parsers.audioscrobbler import ScrobblerLogParser, parse_scrobbler_log
from elbisaur.parsers.listenbrainz import parse_json, parse_json_lines
from elbisaur.parsers.musicbrainz import parse_musicbrainz_release
from elbisaur.parsers.spotify import SpotifyHistoryParser, parse_spotify_extended_history
