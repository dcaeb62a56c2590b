from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from streamrelay.api.deps import get_resolver
from streamrelay.core.errors import NoCandidatesError, UpstreamFetchError
from streamrelay.core.resolver import SourceResolver

router = APIRouter()


@router.get("/resolve")
async def resolve_source(
    title: Optional[str] = None,
    year: Optional[str] = None,
    source: Optional[str] = None,
    id: Optional[str] = None,
    prefer: bool = False,
    resolver: SourceResolver = Depends(get_resolver),
):
    if not title and not (source and id):
        raise HTTPException(status_code=400, detail="missing title")
    try:
        res = await resolver.resolve(
            title or "", year=year, source=source, id=id, prefer=prefer
        )
    except NoCandidatesError as exc:
        logger.info(f"Nothing to resolve for {title!r}: {exc}")
        raise HTTPException(status_code=404, detail="no matching source") from exc
    except UpstreamFetchError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return {"from_cache": res.from_cache, "data": res.candidate.to_payload()}
