import pytest

from streamrelay.core.cache import (
    MemoryCacheStore,
    SqlCacheStore,
    cache_exists_safely,
    cache_get_safely,
    cache_set_safely,
)
from streamrelay.core.errors import CacheUnavailableError


class _Clock:
    def __init__(self, now=1_000.0):
        self.now = now

    def __call__(self):
        return self.now


class _BrokenStore(MemoryCacheStore):
    def get(self, namespace, key):
        raise CacheUnavailableError("down")

    def set(self, namespace, key, value, ttl_seconds):
        raise CacheUnavailableError("down")

    def exists_many(self, namespace, keys):
        raise CacheUnavailableError("down")


@pytest.fixture
def sql_store(tmp_path):
    from sqlmodel import create_engine
    from sqlalchemy.pool import NullPool

    from streamrelay.db import ModelBase

    engine = create_engine(
        f"sqlite:///{(tmp_path / 'cache.db').as_posix()}",
        connect_args={"check_same_thread": False},
        poolclass=NullPool,
    )
    ModelBase.metadata.create_all(engine)
    clock = _Clock()
    yield SqlCacheStore(engine=engine, clock=clock), clock
    engine.dispose()


@pytest.fixture
def memory_store():
    clock = _Clock()
    return MemoryCacheStore(clock=clock), clock


@pytest.fixture(params=["memory", "sql"])
def store(request, memory_store, sql_store):
    return memory_store if request.param == "memory" else sql_store


def test_set_then_get_returns_value(store):
    s, _ = store
    s.set("GLOBAL", "k", {"source": "s1", "id": "1"}, 60)
    assert s.get("GLOBAL", "k") == {"source": "s1", "id": "1"}
    assert s.get("other", "k") is None


def test_entry_unreadable_after_ttl(store):
    s, clock = store
    s.set("GLOBAL", "k", "v", 10)
    clock.now += 9.9
    assert s.get("GLOBAL", "k") == "v"
    clock.now += 0.1
    assert s.get("GLOBAL", "k") is None


def test_last_writer_wins(store):
    s, _ = store
    s.set("GLOBAL", "k", "first", 60)
    s.set("GLOBAL", "k", "second", 60)
    assert s.get("GLOBAL", "k") == "second"


def test_non_positive_ttl_rejected(store):
    s, _ = store
    with pytest.raises(ValueError):
        s.set("GLOBAL", "k", "v", 0)


def test_exists_many_reports_each_key(store):
    s, clock = store
    s.set("GLOBAL", "a", 1, 60)
    s.set("GLOBAL", "stale", 1, 5)
    clock.now += 10
    assert s.exists_many("GLOBAL", ["a", "b", "stale"]) == {
        "a": True,
        "b": False,
        "stale": False,
    }


def test_delete_and_purge(store):
    s, clock = store
    s.set("GLOBAL", "a", 1, 60)
    s.set("GLOBAL", "b", 1, 5)
    assert s.delete("GLOBAL", "a") is True
    assert s.delete("GLOBAL", "a") is False
    clock.now += 10
    assert s.purge_expired() == 1
    assert s.purge_expired() == 0


def test_safe_wrappers_degrade_when_store_is_down():
    broken = _BrokenStore()
    assert cache_get_safely(broken, "GLOBAL", "k") is None
    assert cache_set_safely(broken, "GLOBAL", "k", "v", 60) is False
    assert cache_exists_safely(broken, "GLOBAL", ["a", "b"]) == {"a": False, "b": False}


def test_sql_store_wraps_backend_errors(sql_store):
    s, _ = sql_store

    def _no_session():
        raise RuntimeError("database is locked")

    s._session = _no_session
    with pytest.raises(CacheUnavailableError):
        s.get("GLOBAL", "k")
    with pytest.raises(CacheUnavailableError):
        s.set("GLOBAL", "k", "v", 60)
    assert cache_exists_safely(s, "GLOBAL", ["k"]) == {"k": False}
