from __future__ import annotations

from typing import Any, Optional, Protocol

import anyio
import requests
from loguru import logger

from streamrelay.core.errors import UpstreamFetchError
from streamrelay.domain.models import CandidateSource


class Catalog(Protocol):
    """
    Title search and detail lookup across the configured provider sites.
    """

    async def search(self, query: str) -> list[CandidateSource]: ...

    async def detail(self, source: str, id: str) -> Optional[CandidateSource]: ...


class HttpCatalog:
    """
    Catalog backed by an HTTP search service.

    Endpoints:
        GET {base}/api/search?q=<query>          -> {"results": [...]}
        GET {base}/api/detail?source=<s>&id=<id> -> candidate object
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        from streamrelay.config import CATALOG_API_URL, CATALOG_TIMEOUT_SECONDS

        self.base_url = (base_url if base_url is not None else CATALOG_API_URL).rstrip("/")
        self.timeout = timeout or CATALOG_TIMEOUT_SECONDS

    def _get_json(self, path: str, params: dict[str, str]) -> Any:
        from streamrelay.utils.http_client import get as http_get

        if not self.base_url:
            raise UpstreamFetchError(503, "CATALOG_API_URL is not configured")
        url = f"{self.base_url}{path}"
        try:
            resp = http_get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error(f"Catalog request failed {path}: {exc}")
            raise UpstreamFetchError(502, "catalog unreachable", url) from exc
        if resp.status_code == 404:
            return None
        if not resp.ok:
            logger.error(f"Catalog {path} returned {resp.status_code}")
            raise UpstreamFetchError(resp.status_code, "catalog error", url)
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamFetchError(502, "catalog returned invalid JSON", url) from exc

    def search_sync(self, query: str) -> list[CandidateSource]:
        logger.debug(f"Catalog search: {query!r}")
        data = self._get_json("/api/search", {"q": query}) or {}
        results = data.get("results") if isinstance(data, dict) else None
        out = [
            CandidateSource.from_payload(r)
            for r in (results or [])
            if isinstance(r, dict)
        ]
        out = [c for c in out if c.source and c.id]
        logger.debug(f"Catalog search {query!r} -> {len(out)} candidates")
        return out

    def detail_sync(self, source: str, id: str) -> Optional[CandidateSource]:
        logger.debug(f"Catalog detail: {source}/{id}")
        data = self._get_json("/api/detail", {"source": source, "id": id})
        if not isinstance(data, dict):
            return None
        candidate = CandidateSource.from_payload({"source": source, "id": id, **data})
        return candidate

    async def search(self, query: str) -> list[CandidateSource]:
        return await anyio.to_thread.run_sync(self.search_sync, query)

    async def detail(self, source: str, id: str) -> Optional[CandidateSource]:
        return await anyio.to_thread.run_sync(self.detail_sync, source, id)
