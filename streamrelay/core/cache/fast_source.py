from __future__ import annotations

from typing import Iterable, Optional

from loguru import logger

from streamrelay.domain.models import (
    CandidateSource,
    FastSourceRecord,
    PrewarmItem,
    fast_source_key,
)
from .store import CacheStore, cache_exists_safely, cache_get_safely, cache_set_safely


def _namespace() -> str:
    from streamrelay.config import CACHE_NAMESPACE

    return CACHE_NAMESPACE


def lookup_fast_source(
    store: CacheStore, title: str, year: Optional[str] = None
) -> Optional[FastSourceRecord]:
    """
    Return the cached winning source for a title, or None on miss.
    """
    payload = cache_get_safely(store, _namespace(), fast_source_key(title, year))
    if not isinstance(payload, dict):
        return None
    record = FastSourceRecord.from_payload(payload)
    if not record.source or not record.id:
        logger.warning("Ignoring malformed fast-source entry for {}_{}", title, year or "")
        return None
    return record


def lookup_fast_sources(
    store: CacheStore, items: Iterable[PrewarmItem]
) -> dict[str, bool]:
    """
    Batched existence check for many titles.

    Returns:
        dict[str, bool]: Keyed by `PrewarmItem.cache_key` ("<title>_<year>").
    """
    items = list(items)
    keys = {item.cache_key: fast_source_key(item.title, item.year) for item in items}
    found = cache_exists_safely(store, _namespace(), keys.values())
    return {short: found.get(full, False) for short, full in keys.items()}


def store_fast_source(
    store: CacheStore,
    title: str,
    year: Optional[str],
    candidate: CandidateSource,
    ttl_seconds: Optional[int] = None,
) -> bool:
    if ttl_seconds is None:
        from streamrelay.config import FAST_SOURCE_TTL_SECONDS

        ttl_seconds = FAST_SOURCE_TTL_SECONDS
    record = FastSourceRecord.for_candidate(
        candidate, ttl_seconds=ttl_seconds, now=store.now()
    )
    ok = cache_set_safely(
        store, _namespace(), fast_source_key(title, year), record.to_payload(), ttl_seconds
    )
    if ok:
        logger.debug(
            "Stored fast source for {}_{} -> {}", title, year or "", candidate.key
        )
    return ok


def delete_fast_source(store: CacheStore, title: str, year: Optional[str] = None) -> bool:
    return store.delete(_namespace(), fast_source_key(title, year))
