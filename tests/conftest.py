import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Module-level imports of streamrelay in test files read config at collection
# time; keep them away from the working directory.
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="streamrelay-tests-"))
os.environ.setdefault("DATA_DIR", str(_SESSION_DIR / "data"))
os.environ.setdefault("STREAMRELAY_LOG_PATH", str(_SESSION_DIR / "streamrelay-test.log"))
os.environ.setdefault("CACHE_BACKEND", "memory")
os.environ.setdefault("PREWARM_ENABLED", "0")
os.environ.setdefault("CACHE_PURGE_INTERVAL_MIN", "0")

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

AUTH_SECRET = "test-secret"


def purge_streamrelay_modules() -> None:
    for name in list(sys.modules):
        if name == "streamrelay" or name.startswith("streamrelay."):
            del sys.modules[name]


class FakeCatalog:
    """
    In-memory catalog: `results` is what every search returns, `details`
    maps (source, id) to the full candidate.
    """

    def __init__(self, results=None, details=None):
        self.results = list(results or [])
        self.details = dict(details or {})
        self.searches = []
        self.detail_calls = []

    async def search(self, query):
        self.searches.append(query)
        return list(self.results)

    async def detail(self, source, id):
        self.detail_calls.append((source, id))
        return self.details.get((source, id))


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    data_dir = tmp_path / "data"
    monkeypatch.setenv("DATA_DIR", str(data_dir))
    monkeypatch.setenv("STREAMRELAY_LOG_PATH", str(tmp_path / "streamrelay.log"))
    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("PREWARM_ENABLED", "0")
    monkeypatch.setenv("CACHE_PURGE_INTERVAL_MIN", "0")
    monkeypatch.setenv("AUTH_SECRET", AUTH_SECRET)
    monkeypatch.setenv("OWNER_USERNAME", "owner")
    monkeypatch.setenv("ADMIN_USERS", "alice:admin,bob:user")
    monkeypatch.setenv("CATALOG_SITES", "s1:Site One,s2:Site Two")
    monkeypatch.delenv("PUBLIC_BASE_URL", raising=False)
    saved = {
        name: mod
        for name, mod in sys.modules.items()
        if name == "streamrelay" or name.startswith("streamrelay.")
    }
    purge_streamrelay_modules()
    yield tmp_path
    purge_streamrelay_modules()
    sys.modules.update(saved)


@pytest.fixture
def client(app_env):
    from streamrelay.main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_cookie():
    """
    Build a signed `auth` cookie value for a username/role.
    """

    def _make(username="owner", role="owner"):
        from streamrelay.core.auth import encode_auth_cookie

        return encode_auth_cookie(username, role, AUTH_SECRET)

    return _make


@pytest.fixture
def admin_client(client, auth_cookie):
    client.cookies.set("auth", auth_cookie("owner", "owner"))
    return client
