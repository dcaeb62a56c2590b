from __future__ import annotations

import hashlib
from typing import Optional
from urllib.parse import quote, urlsplit

from loguru import logger

PLAYLIST_EXTENSION = ".m3u8"


def playlist_cache_key(url: str) -> str:
    """
    Cache key for a rewritten playlist: SHA-256 hex digest of the full URL.
    """
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def is_playlist_url(url: str) -> bool:
    """
    True when the URL path ends with the playlist extension (a query may follow).
    """
    path = urlsplit(url).path.lower()
    return path.endswith(PLAYLIST_EXTENSION)


def build_proxy_url(proxy_endpoint: str, upstream_url: str) -> str:
    """
    Self-referencing proxy URL carrying the percent-encoded upstream URL as `url`.
    """
    sep = "&" if "?" in proxy_endpoint else "?"
    return f"{proxy_endpoint}{sep}url={quote(upstream_url, safe='')}"


def public_proxy_endpoint(request_base_url: str, path: str = "/proxy") -> str:
    """
    Absolute URL of the proxy endpoint as seen by clients.

    `PUBLIC_BASE_URL` wins over the request's own base URL so links stay valid
    behind a reverse proxy.

    Parameters:
        request_base_url (str): `str(request.base_url)` of the incoming request.
        path (str): Route path of the proxy endpoint.
    """
    from streamrelay.config import PUBLIC_BASE_URL

    base = (PUBLIC_BASE_URL or request_base_url or "").strip().rstrip("/")
    endpoint = f"{base}/{path.lstrip('/')}"
    logger.trace("Proxy endpoint resolved to {}", endpoint)
    return endpoint


def validate_upstream_url(url: Optional[str]) -> str:
    """
    Ensure an upstream URL is a non-empty absolute http(s) URL.

    Raises:
        MalformedInputError: If missing, not http(s), or without a host.
    """
    from streamrelay.core.errors import MalformedInputError

    if not url or not url.strip():
        raise MalformedInputError("Missing url parameter")
    parsed = urlsplit(url.strip())
    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        raise MalformedInputError("Unsupported upstream URL")
    return url.strip()


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"
