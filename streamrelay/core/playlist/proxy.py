from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlsplit

import anyio
import httpx
from loguru import logger

from streamrelay.core.cache import CacheStore, cache_get_safely, cache_set_safely
from streamrelay.core.errors import UpstreamFetchError
from .hls import is_master_playlist, rewrite_playlist
from .urls import origin_of, playlist_cache_key


@dataclass(frozen=True)
class PlaylistResult:
    text: str
    cache_hit: bool


def _redact_upstream(url: str) -> str:
    """
    Produce a redacted identifier for logging upstream URLs (tokens live in queries).
    """
    try:
        parsed = urlsplit(url)
        return f"{parsed.netloc}:{hash(parsed.path or '/') & 0xFFFF_FFFF:x}"
    except Exception:
        return "<redacted>"


def _cached_text(entry: object, proxy_endpoint: Optional[str]) -> Optional[str]:
    if not isinstance(entry, dict) or not isinstance(entry.get("text"), str):
        return None
    endpoint = entry.get("endpoint")
    if endpoint is not None and endpoint != proxy_endpoint:
        return None
    return entry["text"]


def _build_async_client() -> httpx.AsyncClient:
    """
    Build an AsyncClient for playlist fetches without env proxies.
    """
    from streamrelay.config import UPSTREAM_TIMEOUT_SECONDS

    logger.trace("Building upstream AsyncClient")
    return httpx.AsyncClient(
        timeout=httpx.Timeout(UPSTREAM_TIMEOUT_SECONDS),
        follow_redirects=True,
        trust_env=False,
    )


class PlaylistProxy:
    """
    Fetches third-party playlists, rewrites their references and caches the result.
    """

    def __init__(
        self,
        store: CacheStore,
        *,
        namespace: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        from streamrelay.config import PLAYLIST_CACHE_NAMESPACE, PLAYLIST_CACHE_TTL_SECONDS

        self._store = store
        self._namespace = namespace or PLAYLIST_CACHE_NAMESPACE
        self._ttl = ttl_seconds or PLAYLIST_CACHE_TTL_SECONDS
        self._client_factory = client_factory

    async def fetch(
        self,
        url: str,
        *,
        proxy_endpoint: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> PlaylistResult:
        """
        Return the rewritten playlist for `url`, from cache when possible.

        Raises:
            UpstreamFetchError: The origin answered non-2xx (its status) or
                could not be reached (502).
        """
        key = playlist_cache_key(url)
        cached = await anyio.to_thread.run_sync(
            cache_get_safely, self._store, self._namespace, key
        )
        text = _cached_text(cached, proxy_endpoint)
        if text is not None:
            logger.debug("Playlist cache hit for {}", _redact_upstream(url))
            return PlaylistResult(text=text, cache_hit=True)

        body = await self._download(url, user_agent=user_agent)
        rewritten = rewrite_playlist(body, url, proxy_endpoint)
        entry = {
            "text": rewritten,
            # master playlists embed self-proxy links, so they are only
            # valid for the endpoint they were rewritten against
            "endpoint": proxy_endpoint if is_master_playlist(body) else None,
        }
        await anyio.to_thread.run_sync(
            cache_set_safely, self._store, self._namespace, key, entry, self._ttl
        )
        logger.success("Proxied playlist {}", _redact_upstream(url))
        return PlaylistResult(text=rewritten, cache_hit=False)

    async def _download(self, url: str, *, user_agent: Optional[str]) -> str:
        from streamrelay.config import DEFAULT_USER_AGENT

        headers = {
            "User-Agent": user_agent or DEFAULT_USER_AGENT,
            "Referer": origin_of(url),
        }
        logger.trace("Fetching upstream playlist {}", _redact_upstream(url))
        try:
            async with (self._client_factory or _build_async_client)() as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Upstream fetch failed for {}: {}", _redact_upstream(url), exc)
            raise UpstreamFetchError(502, "Failed to fetch m3u8: upstream unreachable", url) from exc

        if not resp.is_success:
            logger.error(
                "Upstream returned {} for {}", resp.status_code, _redact_upstream(url)
            )
            reason = resp.reason_phrase or "upstream error"
            raise UpstreamFetchError(resp.status_code, f"Failed to fetch m3u8: {reason}", url)
        return resp.text
