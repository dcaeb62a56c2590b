from __future__ import annotations

from typing import Optional, Union

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel

from streamrelay.api.deps import get_scheduler
from streamrelay.core.auth import AuthInfo, require_elevated
from streamrelay.core.prewarm import PrewarmScheduler
from streamrelay.domain.models import PrewarmItem

router = APIRouter(prefix="/prewarm")


class WatchItem(BaseModel):
    title: str
    year: Optional[Union[str, int]] = None


class WatchListRequest(BaseModel):
    items: list[WatchItem]


@router.get("/status")
async def prewarm_status(
    scheduler: PrewarmScheduler = Depends(get_scheduler),
    auth: AuthInfo = Depends(require_elevated),
):
    return await scheduler.snapshot()


@router.put("/items")
async def set_prewarm_items(
    req: WatchListRequest,
    scheduler: PrewarmScheduler = Depends(get_scheduler),
    auth: AuthInfo = Depends(require_elevated),
):
    items = [
        PrewarmItem(title=i.title, year="" if i.year is None else str(i.year))
        for i in req.items
    ]
    await scheduler.set_items(items)
    logger.info(f"Watch-list replaced by {auth.username} ({len(items)} items)")
    return await scheduler.snapshot()


@router.post("/reset")
async def reset_prewarm(
    scheduler: PrewarmScheduler = Depends(get_scheduler),
    auth: AuthInfo = Depends(require_elevated),
):
    await scheduler.reset()
    return {"ok": True}
