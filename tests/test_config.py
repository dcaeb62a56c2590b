import importlib
import sys

import pytest


@pytest.fixture(autouse=True)
def _restore_config():
    yield
    import streamrelay

    sys.modules.pop("streamrelay.config", None)
    if hasattr(streamrelay, "config"):
        delattr(streamrelay, "config")


def _reload_config():
    import streamrelay

    if "streamrelay.config" in sys.modules:
        del sys.modules["streamrelay.config"]
    if hasattr(streamrelay, "config"):
        delattr(streamrelay, "config")
    return importlib.import_module("streamrelay.config")


def test_catalog_sites_parsing(monkeypatch):
    monkeypatch.setenv("CATALOG_SITES", "  s1:Site One , , s2 ,, :nokey ")
    cfg = _reload_config()

    assert cfg.CATALOG_SITES == [
        {"key": "s1", "name": "Site One"},
        {"key": "s2", "name": "s2"},
    ]


def test_admin_users_default_role(monkeypatch):
    monkeypatch.setenv("ADMIN_USERS", "alice:Owner, carol ,bob:user")
    cfg = _reload_config()

    assert cfg.ADMIN_USERS == {"alice": "owner", "carol": "admin", "bob": "user"}


def test_invalid_values_fall_back(monkeypatch):
    monkeypatch.setenv("CACHE_BACKEND", "redis")
    monkeypatch.setenv("PROBE_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("PREWARM_MAX_MATCHES", "0")
    cfg = _reload_config()

    assert cfg.CACHE_BACKEND == "sqlite"
    assert cfg.PROBE_TIMEOUT_SECONDS == 8.0
    assert cfg.PREWARM_MAX_MATCHES == 1


def test_data_dir_from_env(monkeypatch, tmp_path):
    target = tmp_path / "relay-data"
    monkeypatch.setenv("DATA_DIR", str(target))
    cfg = _reload_config()

    assert cfg.DATA_DIR == target.resolve()
    assert target.is_dir()
    assert cfg.PREWARM_WATCHLIST_FILE == target.resolve() / "watchlist.json"
