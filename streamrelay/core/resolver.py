from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import anyio
from loguru import logger

from streamrelay.core.cache import CacheStore, lookup_fast_source, store_fast_source
from streamrelay.core.catalog import Catalog
from streamrelay.core.errors import NoCandidatesError
from streamrelay.core.selector import SourceSelector
from streamrelay.domain.models import CandidateSource


@dataclass(frozen=True)
class Resolution:
    candidate: CandidateSource
    from_cache: bool


class SourceResolver:
    """
    Resolve a title to one playable source: cached winner first, then
    catalog search plus selection, writing the winner back to the cache.
    """

    def __init__(self, store: CacheStore, catalog: Catalog, selector: SourceSelector):
        self._store = store
        self._catalog = catalog
        self._selector = selector

    async def _cached(self, title: str, year: Optional[str]) -> Optional[CandidateSource]:
        record = await anyio.to_thread.run_sync(lookup_fast_source, self._store, title, year)
        if record is None:
            return None
        try:
            detail = await self._catalog.detail(record.source, record.id)
        except Exception as exc:
            logger.warning(
                "Detail lookup for cached source {}-{} failed: {}; resolving again",
                record.source,
                record.id,
                exc,
            )
            return None
        if detail is None or not detail.episodes:
            logger.warning(
                "Cached source {}-{} for {} has no detail; resolving again",
                record.source,
                record.id,
                title,
            )
            return None
        return detail

    async def resolve(
        self,
        title: str,
        year: Optional[str] = None,
        source: Optional[str] = None,
        id: Optional[str] = None,
        prefer: bool = False,
    ) -> Resolution:
        """
        Parameters:
            title (str): Title to resolve.
            year (Optional[str]): Release year, used for the cache key.
            source (Optional[str]): Pinned provider id.
            id (Optional[str]): Pinned provider item id.
            prefer (bool): Re-run selection even when source/id are pinned.

        Raises:
            NoCandidatesError: Nothing playable was found.
        """
        year = (year or "").strip() or None
        if not (source and id) or prefer:
            hit = await self._cached(title, year)
            if hit is not None:
                logger.info("Resolved {} from cache -> {}", title, hit.key)
                return Resolution(candidate=hit, from_cache=True)

        candidates = await self._catalog.search(title)
        if source and id:
            pinned = next(
                (c for c in candidates if c.source == source and c.id == id), None
            )
            if pinned is None:
                pinned = await self._catalog.detail(source, id)
                if pinned is not None:
                    candidates.insert(0, pinned)
            if not prefer:
                if pinned is None:
                    raise NoCandidatesError(f"source {source}-{id} not found")
                if not pinned.episodes:
                    detail = await self._catalog.detail(source, id)
                    pinned = detail or pinned
                logger.info("Resolved {} to pinned source {}", title, pinned.key)
                return Resolution(candidate=pinned, from_cache=False)

        playable = await self._with_episodes(candidates)
        if not playable:
            raise NoCandidatesError(f"no playable source for {title!r}")
        winner = await self._selector.select(playable)
        await anyio.to_thread.run_sync(
            store_fast_source, self._store, title, year, winner
        )
        logger.success("Resolved {} -> {} ({} candidates)", title, winner.key, len(playable))
        return Resolution(candidate=winner, from_cache=False)

    async def _with_episodes(
        self, candidates: list[CandidateSource]
    ) -> list[CandidateSource]:
        """
        Search results may omit episode lists; fill them in from detail lookups.
        """
        out: list[CandidateSource] = []
        for c in candidates:
            if c.episodes:
                out.append(c)
                continue
            try:
                detail = await self._catalog.detail(c.source, c.id)
            except Exception as exc:
                logger.warning("Detail lookup failed for {}: {}", c.key, exc)
                continue
            if detail is not None and detail.episodes:
                out.append(detail)
        return out
