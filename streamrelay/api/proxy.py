from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from loguru import logger

from streamrelay.api.deps import get_playlist_proxy
from streamrelay.core.errors import MalformedInputError, UpstreamFetchError
from streamrelay.core.playlist import (
    PlaylistProxy,
    public_proxy_endpoint,
    validate_upstream_url,
)

router = APIRouter()

HLS_MEDIA_TYPE = "application/vnd.apple.mpegurl"


@router.get("/proxy")
async def proxy_playlist(
    request: Request,
    url: Optional[str] = None,
    proxy: PlaylistProxy = Depends(get_playlist_proxy),
):
    """
    Fetch a third-party HLS playlist and return it with every reference made
    absolute. Nested playlists of a master are routed back through this endpoint.
    """
    try:
        target = validate_upstream_url(url)
    except MalformedInputError as exc:
        return PlainTextResponse(str(exc), status_code=400)

    endpoint = public_proxy_endpoint(str(request.base_url), request.url.path)
    try:
        result = await proxy.fetch(
            target,
            proxy_endpoint=endpoint,
            user_agent=request.headers.get("user-agent"),
        )
    except UpstreamFetchError as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    cache_marker = "HIT" if result.cache_hit else "MISS"
    logger.info("Proxy {} ({} bytes)", cache_marker, len(result.text))
    return Response(
        content=result.text,
        media_type=HLS_MEDIA_TYPE,
        headers={"X-Cache": cache_marker},
    )
