import logging
import sys

import pytest

# Configure root logger to output all levels to stdout
logging.basicConfig(
    level=logging.DEBUG,
    format='%(asctime)s %(levelname)s %(name)s %(message)s',
    stream=sys.stdout
)

logger = logging.getLogger(__name__)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """ Keeps the user's ListenBrainz settings out of the tests. """
    for name in ("LB_TOKEN", "LB_USER", "ELBISAUR_LISTEN_TEMPLATE"):
        monkeypatch.delenv(name, raising=False)


@pytest.hookimpl(tryfirst=True)
def pytest_sessionstart(session):
    logger.info("Test session started")
