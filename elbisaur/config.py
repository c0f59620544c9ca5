import os

# ListenBrainz API
API_URL = os.getenv("LB_API_URL", "https://api.listenbrainz.org/")

#: Number of times a request is repeated after "429 Too Many Requests".
MAX_RETRIES = 1

#: Number of listens which are submitted per import request.
IMPORT_BATCH_SIZE = 100

#: The maximum number of listens the server accepts in one request.
MAX_LISTENS_PER_REQUEST = 1000

# MusicBrainz API
MUSICBRAINZ_API_URL = os.getenv("MB_API_URL", "https://musicbrainz.org/ws/2/")
CONTACT_URL = "https://github.com/kellnerd/listenbrainz-ts"

# Environment variables which are read by the command line interface
TOKEN_ENV = "LB_TOKEN"
USER_ENV = "LB_USER"
LISTEN_TEMPLATE_ENV = "ELBISAUR_LISTEN_TEMPLATE"
