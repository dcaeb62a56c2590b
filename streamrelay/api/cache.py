from __future__ import annotations

from typing import Optional, Union

import anyio
from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from streamrelay.api.deps import get_store
from streamrelay.core.auth import AuthInfo, require_elevated
from streamrelay.core.cache import (
    CacheStore,
    cache_get_safely,
    delete_fast_source,
    lookup_fast_sources,
    store_fast_source,
)
from streamrelay.core.errors import CacheUnavailableError
from streamrelay.domain.models import CandidateSource, PrewarmItem, fast_source_key

router = APIRouter()

Year = Optional[Union[str, int]]


class CacheCheckItem(BaseModel):
    title: str
    year: Year = None


class CacheWriteRequest(BaseModel):
    # batch mode
    items: Optional[list[CacheCheckItem]] = None
    # single-write mode
    title: Optional[str] = None
    year: Year = None
    source: Optional[str] = None
    id: Optional[str] = None
    source_name: Optional[str] = Field(default=None)


def _year(value: Year) -> str:
    return str(value).strip() if value is not None else ""


@router.get("/cache")
async def read_cache(
    title: Optional[str] = None,
    year: Optional[str] = None,
    store: CacheStore = Depends(get_store),
):
    """
    Look up the cached fast source for a title.
    """
    if not title:
        raise HTTPException(status_code=400, detail="missing title")
    from streamrelay.config import CACHE_NAMESPACE

    data = await anyio.to_thread.run_sync(
        cache_get_safely, store, CACHE_NAMESPACE, fast_source_key(title, _year(year))
    )
    if data:
        return {"hit": True, "data": data}
    return {"hit": False}


@router.post("/cache")
async def write_cache(
    req: CacheWriteRequest,
    store: CacheStore = Depends(get_store),
    auth: AuthInfo = Depends(require_elevated),
):
    """
    Either store one fast source (24 h TTL) or, when `items` is given, report
    which titles are cached.
    """
    if req.items is not None:
        items = [PrewarmItem(title=i.title, year=_year(i.year)) for i in req.items]
        found = await anyio.to_thread.run_sync(lookup_fast_sources, store, items)
        logger.debug(f"Batch cache check by {auth.username}: {len(items)} items")
        return {"results": found}

    if not req.title or not req.source or not req.id:
        raise HTTPException(status_code=400, detail="title, source and id are required")
    candidate = CandidateSource(
        source=req.source, id=req.id, source_name=req.source_name or ""
    )
    ok = await anyio.to_thread.run_sync(
        store_fast_source, store, req.title, _year(req.year), candidate
    )
    if not ok:
        logger.warning(f"Fast source for {req.title}_{_year(req.year)} was not stored")
        return {"ok": True, "stored": False}
    logger.info(f"Fast source for {req.title}_{_year(req.year)} set by {auth.username}")
    return {"ok": True, "stored": True}


@router.delete("/cache")
async def evict_cache(
    title: Optional[str] = None,
    year: Optional[str] = None,
    store: CacheStore = Depends(get_store),
    auth: AuthInfo = Depends(require_elevated),
):
    if not title:
        raise HTTPException(status_code=400, detail="missing title")
    try:
        removed = await anyio.to_thread.run_sync(delete_fast_source, store, title, _year(year))
    except CacheUnavailableError as exc:
        logger.warning(f"Cache eviction failed: {exc}")
        return {"ok": True, "removed": False}
    logger.info(f"Fast source for {title}_{_year(year)} evicted by {auth.username}")
    return {"ok": True, "removed": removed}
