from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import Optional

from loguru import logger
from fastapi import FastAPI

from streamrelay.config import (
    CACHE_PURGE_INTERVAL_MIN,
    PREWARM_ENABLED,
    PREWARM_WATCHLIST_FILE,
)
from streamrelay.core.cache import CacheStore, build_cache_store
from streamrelay.core.catalog import HttpCatalog
from streamrelay.core.errors import CacheUnavailableError, MalformedInputError
from streamrelay.core.playlist import PlaylistProxy
from streamrelay.core.prewarm import PrewarmScheduler, load_watchlist
from streamrelay.core.probe import SourceProbe
from streamrelay.core.resolver import SourceResolver
from streamrelay.core.selector import SourceSelector
from streamrelay.db import dispose_engine
from streamrelay.utils.http_client import close_session


def _start_cache_purge_thread(
    store: CacheStore, stop_event: threading.Event
) -> Optional[threading.Thread]:
    """Start a background thread that deletes physically expired cache entries."""

    def _purge_loop():
        interval = max(1, int(CACHE_PURGE_INTERVAL_MIN)) * 60
        logger.info(f"Starting cache purge thread: interval={CACHE_PURGE_INTERVAL_MIN}min")
        while not stop_event.wait(interval):
            try:
                removed = store.purge_expired()
                if removed:
                    logger.success(f"Cache purge: removed {removed} expired entries")
            except CacheUnavailableError as e:
                logger.warning(f"Cache purge failed: {e}")

    if CACHE_PURGE_INTERVAL_MIN <= 0:
        logger.info("Cache purge disabled (CACHE_PURGE_INTERVAL_MIN<=0)")
        return None
    t = threading.Thread(target=_purge_loop, name="cache-purge", daemon=True)
    t.start()
    return t


def _log_probe_results(results) -> None:
    for key, res in results.items():
        logger.debug(f"Probe {key}: {res.describe()}")


def _log_cache_hit(item) -> None:
    logger.debug(f"Prewarm cache hit: {item.cache_key}")


def _log_warmed(item, winner) -> None:
    logger.info(f"Prewarm stored {item.cache_key} -> {winner.key}")


def _initial_watchlist():
    try:
        return load_watchlist(PREWARM_WATCHLIST_FILE)
    except MalformedInputError as e:
        logger.error(f"Ignoring watch-list: {e}")
        return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup: building cache store and services.")
    state = app.state
    # Services already placed on app.state (tests, embedding apps) win.
    store = getattr(state, "cache_store", None) or build_cache_store()
    catalog = getattr(state, "catalog", None) or HttpCatalog()
    selector = getattr(state, "selector", None) or SourceSelector(
        SourceProbe(), on_probed=_log_probe_results
    )
    state.cache_store = store
    state.catalog = catalog
    state.selector = selector
    state.playlist_proxy = getattr(state, "playlist_proxy", None) or PlaylistProxy(store)
    state.resolver = SourceResolver(store, catalog, selector)
    scheduler = PrewarmScheduler(
        store,
        catalog,
        selector,
        on_cache_hit=_log_cache_hit,
        on_warmed=_log_warmed,
        items=_initial_watchlist(),
    )
    state.prewarm = scheduler

    purge_stop = threading.Event()
    try:
        _start_cache_purge_thread(store, purge_stop)
    except Exception as e:
        logger.debug(f"cache purge thread start failed: {e}")

    if PREWARM_ENABLED:
        scheduler.start()
    else:
        logger.info("Prewarm scheduler disabled (PREWARM_ENABLED=0)")

    try:
        yield
    finally:
        await scheduler.stop()
        purge_stop.set()
        close_session()
        dispose_engine()
        logger.info("Application shutdown complete.")
