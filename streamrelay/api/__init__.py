from fastapi import APIRouter

from .cache import router as cache_router
from .prewarm import router as prewarm_router
from .proxy import router as proxy_router
from .resolve import router as resolve_router
from .sources import router as sources_router

router = APIRouter()
router.include_router(proxy_router)
router.include_router(cache_router)
router.include_router(resolve_router)
router.include_router(sources_router)
router.include_router(prewarm_router)

__all__ = ["router"]
