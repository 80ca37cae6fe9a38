import pytest

from library_mirror.clients.panda import PandaClient
from library_mirror.config import get_settings
from library_mirror.sync.mapping_store import SQLiteMappingStore

from tests.helpers import IMPORT_URL, PLAYER_HOST, FakePandaHttp


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate tests from credentials in the environment."""
    for name in ("VIMEO_ACCESS_TOKEN", "PANDA_API_TOKEN", "STORE_BACKEND", "UPLOAD_MISSING_VIDEOS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def sleeps():
    """A recording sleep function: sleeps.calls holds every requested wait."""

    class Recorder:
        def __init__(self):
            self.calls = []

        def __call__(self, seconds):
            self.calls.append(seconds)

    return Recorder()


@pytest.fixture()
def store(tmp_path):
    return SQLiteMappingStore(tmp_path / "mappings.sqlite", table="vimeo_panda_videos")


@pytest.fixture()
def panda_http():
    return FakePandaHttp()


@pytest.fixture()
def panda(panda_http):
    return PandaClient(http=panda_http, import_url=IMPORT_URL, player_host=PLAYER_HOST)
