from __future__ import annotations

from fastapi import APIRouter

router = APIRouter()


@router.get("/sources")
def list_sources():
    from streamrelay.config import CATALOG_SITES

    return {
        "success": True,
        "data": [{"key": s["key"], "name": s["name"]} for s in CATALOG_SITES],
    }
