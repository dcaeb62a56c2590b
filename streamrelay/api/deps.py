from __future__ import annotations

from fastapi import HTTPException, Request

from streamrelay.core.cache import CacheStore
from streamrelay.core.playlist import PlaylistProxy
from streamrelay.core.prewarm import PrewarmScheduler
from streamrelay.core.resolver import SourceResolver


def _service(request: Request, name: str):
    svc = getattr(request.app.state, name, None)
    if svc is None:
        raise HTTPException(status_code=503, detail=f"{name} not ready")
    return svc


def get_store(request: Request) -> CacheStore:
    return _service(request, "cache_store")


def get_playlist_proxy(request: Request) -> PlaylistProxy:
    return _service(request, "playlist_proxy")


def get_resolver(request: Request) -> SourceResolver:
    return _service(request, "resolver")


def get_scheduler(request: Request) -> PrewarmScheduler:
    return _service(request, "prewarm")
