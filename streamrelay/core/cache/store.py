from __future__ import annotations

import threading
import time
from typing import Any, Callable, Iterable, Optional

from loguru import logger

from streamrelay.core.errors import CacheUnavailableError
from streamrelay.domain.models import CacheEntry

Clock = Callable[[], float]


class CacheStore:
    """
    Namespaced key/value store with per-entry TTL.

    Implementations raise CacheUnavailableError when the backend cannot be
    reached. Reads never return an entry whose expiry has passed, even if the
    backend still holds it.
    """

    def __init__(self, clock: Clock = time.time):
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def get(self, namespace: str, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, namespace: str, key: str, value: Any, ttl_seconds: int) -> None:
        raise NotImplementedError

    def delete(self, namespace: str, key: str) -> bool:
        raise NotImplementedError

    def exists_many(self, namespace: str, keys: Iterable[str]) -> dict[str, bool]:
        raise NotImplementedError

    def purge_expired(self) -> int:
        raise NotImplementedError

    def _expiry_for(self, ttl_seconds: int) -> float:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        return self.now() + ttl_seconds


class MemoryCacheStore(CacheStore):
    """
    Thread-safe in-process cache. Expired entries are dropped lazily on read.
    """

    def __init__(self, clock: Clock = time.time):
        super().__init__(clock)
        self._data: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, namespace: str, key: str) -> Optional[Any]:
        logger.trace("Memory cache lookup for {}:{}", namespace, key)
        with self._lock:
            entry = self._data.get((namespace, key))
            if entry is None:
                return None
            if entry.is_expired(self.now()):
                logger.debug("Memory cache expired for {}:{}", namespace, key)
                self._data.pop((namespace, key), None)
                return None
            return entry.payload

    def set(self, namespace: str, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = self._expiry_for(ttl_seconds)
        logger.trace("Memory cache set for {}:{} (ttl={}s)", namespace, key, ttl_seconds)
        with self._lock:
            self._data[(namespace, key)] = CacheEntry(
                namespace=namespace, key=key, payload=value, expires_at=expires_at
            )

    def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            return self._data.pop((namespace, key), None) is not None

    def exists_many(self, namespace: str, keys: Iterable[str]) -> dict[str, bool]:
        now = self.now()
        with self._lock:
            out: dict[str, bool] = {}
            for key in keys:
                entry = self._data.get((namespace, key))
                out[key] = entry is not None and not entry.is_expired(now)
            return out

    def purge_expired(self) -> int:
        now = self.now()
        with self._lock:
            stale = [k for k, e in self._data.items() if e.is_expired(now)]
            for k in stale:
                del self._data[k]
        return len(stale)


class SqlCacheStore(CacheStore):
    """
    Cache persisted in the `cache_entry` table through SQLModel.
    """

    def __init__(self, engine=None, clock: Clock = time.time):
        super().__init__(clock)
        if engine is None:
            from streamrelay.db import engine as default_engine

            engine = default_engine
        self._engine = engine

    def _session(self):
        from sqlmodel import Session

        return Session(self._engine)

    def get(self, namespace: str, key: str) -> Optional[Any]:
        from streamrelay.db import get_cache_record

        try:
            with self._session() as s:
                rec = get_cache_record(s, namespace=namespace, key=key)
                if rec is None:
                    return None
                if self.now() >= rec.expires_at:
                    logger.debug("SQL cache expired for {}:{}", namespace, key)
                    return None
                return rec.payload
        except Exception as exc:
            raise CacheUnavailableError(f"cache read failed: {exc}") from exc

    def set(self, namespace: str, key: str, value: Any, ttl_seconds: int) -> None:
        from streamrelay.db import upsert_cache_record

        expires_at = self._expiry_for(ttl_seconds)
        try:
            with self._session() as s:
                upsert_cache_record(
                    s, namespace=namespace, key=key, payload=value, expires_at=expires_at
                )
        except Exception as exc:
            raise CacheUnavailableError(f"cache write failed: {exc}") from exc

    def delete(self, namespace: str, key: str) -> bool:
        from streamrelay.db import delete_cache_record

        try:
            with self._session() as s:
                return delete_cache_record(s, namespace=namespace, key=key)
        except Exception as exc:
            raise CacheUnavailableError(f"cache delete failed: {exc}") from exc

    def exists_many(self, namespace: str, keys: Iterable[str]) -> dict[str, bool]:
        from streamrelay.db import live_cache_keys

        wanted = list(keys)
        try:
            with self._session() as s:
                live = live_cache_keys(s, namespace=namespace, keys=wanted, now=self.now())
        except Exception as exc:
            raise CacheUnavailableError(f"cache batch read failed: {exc}") from exc
        return {key: key in live for key in wanted}

    def purge_expired(self) -> int:
        from streamrelay.db import purge_expired_records

        try:
            with self._session() as s:
                return purge_expired_records(s, now=self.now())
        except Exception as exc:
            raise CacheUnavailableError(f"cache purge failed: {exc}") from exc


def build_cache_store(backend: Optional[str] = None) -> CacheStore:
    """
    Create the configured cache store.

    Parameters:
        backend (Optional[str]): "sqlite" or "memory"; defaults to CACHE_BACKEND.
    """
    if backend is None:
        from streamrelay.config import CACHE_BACKEND

        backend = CACHE_BACKEND
    if backend == "memory":
        logger.info("Cache store: in-memory")
        return MemoryCacheStore()
    from streamrelay.db import DATABASE_URL, create_db_and_tables

    create_db_and_tables()
    logger.info(f"Cache store: SQL ({DATABASE_URL})")
    return SqlCacheStore()


# --- Degrading wrappers used by every caller outside the store itself.


def cache_get_safely(store: CacheStore, namespace: str, key: str) -> Optional[Any]:
    """
    Read a value, treating an unavailable store as a miss.
    """
    try:
        return store.get(namespace, key)
    except CacheUnavailableError as exc:
        logger.warning("Cache unavailable on read {}:{}: {}", namespace, key, exc)
        return None


def cache_set_safely(
    store: CacheStore, namespace: str, key: str, value: Any, ttl_seconds: int
) -> bool:
    """
    Write a value, silently dropping it when the store is unavailable.

    Returns:
        bool: True if the write went through.
    """
    try:
        store.set(namespace, key, value, ttl_seconds)
        return True
    except CacheUnavailableError as exc:
        logger.warning("Cache unavailable on write {}:{}: {}", namespace, key, exc)
        return False


def cache_exists_safely(
    store: CacheStore, namespace: str, keys: Iterable[str]
) -> dict[str, bool]:
    """
    Batched existence check, reporting every key as missing when the store is down.
    """
    wanted = list(keys)
    try:
        return store.exists_many(namespace, wanted)
    except CacheUnavailableError as exc:
        logger.warning("Cache unavailable on batch read ({} keys): {}", len(wanted), exc)
        return {key: False for key in wanted}
