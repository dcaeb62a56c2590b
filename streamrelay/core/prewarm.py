"""Background warming of the fast-source cache for a watch-list of titles.

Two asyncio tasks share one lock:

- the monitor checks unchecked watch-list items against the cache with a
  single batched lookup and queues the misses;
- the worker drains that queue one item at a time, running search, matching,
  detail lookups and selection, then stores the winner.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable, Iterable, Optional

import anyio
from loguru import logger

from streamrelay.core.cache import CacheStore, lookup_fast_sources, store_fast_source
from streamrelay.core.catalog import Catalog
from streamrelay.core.errors import NoCandidatesError
from streamrelay.core.selector import SourceSelector
from streamrelay.domain.models import CandidateSource, PrewarmItem, PrewarmState
from streamrelay.utils.chinese import to_simplified
from streamrelay.utils.titles import titles_match

CacheHitCallback = Callable[[PrewarmItem], Any]
WarmedCallback = Callable[[PrewarmItem, CandidateSource], Any]


class PrewarmScheduler:
    def __init__(
        self,
        store: CacheStore,
        catalog: Catalog,
        selector: SourceSelector,
        on_cache_hit: Optional[CacheHitCallback] = None,
        on_warmed: Optional[WarmedCallback] = None,
        *,
        items: Iterable[PrewarmItem] = (),
        initial_delay: Optional[float] = None,
        monitor_interval: Optional[float] = None,
        idle_interval: Optional[float] = None,
        worker_poll: Optional[float] = None,
        item_delay: Optional[float] = None,
        max_matches: Optional[int] = None,
    ):
        from streamrelay import config as cfg

        self._store = store
        self._catalog = catalog
        self._selector = selector
        self._on_cache_hit = on_cache_hit
        self._on_warmed = on_warmed

        def _pick(value, default):
            return default if value is None else value

        self.initial_delay = _pick(initial_delay, cfg.PREWARM_INITIAL_DELAY_SECONDS)
        self.monitor_interval = _pick(monitor_interval, cfg.PREWARM_MONITOR_INTERVAL_SECONDS)
        self.idle_interval = _pick(idle_interval, cfg.PREWARM_IDLE_INTERVAL_SECONDS)
        self.worker_poll = _pick(worker_poll, cfg.PREWARM_WORKER_POLL_SECONDS)
        self.item_delay = _pick(item_delay, cfg.PREWARM_ITEM_DELAY_SECONDS)
        self.max_matches = _pick(max_matches, cfg.PREWARM_MAX_MATCHES)

        self._lock = asyncio.Lock()
        self._items: list[PrewarmItem] = []
        self._checked: set[PrewarmItem] = set()
        self._queue: deque[PrewarmItem] = deque()
        self._states: dict[PrewarmItem, PrewarmState] = {}
        self._warming: Optional[PrewarmItem] = None
        self._stop: Optional[asyncio.Event] = None
        self._tasks: list[asyncio.Task] = []
        self._replace_items(items)

    # --- watch-list management

    def _replace_items(self, items: Iterable[PrewarmItem]) -> None:
        seen: dict[PrewarmItem, None] = {}
        for item in items:
            if item.title:
                seen.setdefault(item, None)
        self._items = list(seen)
        for item in self._items:
            self._states.setdefault(item, PrewarmState.PENDING)

    async def set_items(self, items: Iterable[PrewarmItem]) -> None:
        async with self._lock:
            self._replace_items(items)
            logger.info(f"Prewarm watch-list set to {len(self._items)} items")

    async def reset(self) -> None:
        """
        Forget everything checked or queued this session.
        """
        async with self._lock:
            self._checked.clear()
            self._queue.clear()
            self._states = {item: PrewarmState.PENDING for item in self._items}
            logger.info("Prewarm state reset")

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            return {
                "running": self.running,
                "warming": self._warming.cache_key if self._warming else None,
                "queued": [i.cache_key for i in self._queue],
                "items": [
                    {
                        "title": i.title,
                        "year": i.year,
                        "state": str(self._states.get(i, PrewarmState.PENDING)),
                    }
                    for i in self._items
                ],
            }

    def state_of(self, item: PrewarmItem) -> PrewarmState:
        return self._states.get(item, PrewarmState.PENDING)

    # --- single steps

    async def monitor_once(self) -> int:
        """
        Check every unchecked item with one batched cache lookup.

        Returns:
            int: Number of items checked in this pass.
        """
        async with self._lock:
            pending = [i for i in self._items if i not in self._checked]
            for item in pending:
                self._states[item] = PrewarmState.CHECKING
        if not pending:
            return 0

        found = await anyio.to_thread.run_sync(lookup_fast_sources, self._store, pending)

        hits: list[PrewarmItem] = []
        async with self._lock:
            for item in pending:
                self._checked.add(item)
                if found.get(item.cache_key, False):
                    self._states[item] = PrewarmState.CACHE_HIT
                    hits.append(item)
                elif item not in self._queue and item != self._warming:
                    self._states[item] = PrewarmState.QUEUED
                    self._queue.append(item)
        logger.debug(
            f"Prewarm check: {len(pending)} checked, {len(hits)} hits, "
            f"{len(pending) - len(hits)} misses"
        )
        for item in hits:
            self._notify(self._on_cache_hit, item)
        return len(pending)

    async def worker_once(self) -> Optional[PrewarmState]:
        """
        Warm the next queued item, if any and if nothing else is warming.

        Returns:
            PrewarmState | None: Final state of the processed item, or None
            when there was nothing to do.
        """
        async with self._lock:
            if self._warming is not None or not self._queue:
                return None
            item = self._queue.popleft()
            self._warming = item
            self._states[item] = PrewarmState.WARMING

        state = PrewarmState.SKIPPED
        winner: Optional[CandidateSource] = None
        try:
            winner = await self._warm(item)
            state = PrewarmState.CACHED
        except NoCandidatesError as exc:
            logger.info(f"Prewarm skipped {item.cache_key}: {exc}")
        except Exception as exc:
            logger.warning(f"Prewarm failed for {item.cache_key}: {exc}")
        finally:
            async with self._lock:
                self._states[item] = state
                self._warming = None

        if winner is not None:
            logger.success(f"Prewarmed {item.cache_key} -> {winner.key}")
            self._notify(self._on_warmed, item, winner)
        return state

    async def _warm(self, item: PrewarmItem) -> CandidateSource:
        results = await self._catalog.search(to_simplified(item.title))
        matches = [
            c for c in results if titles_match(item.title, item.year, c.title, c.year)
        ][: self.max_matches]
        if not matches:
            raise NoCandidatesError("no matching search results")

        details: list[CandidateSource] = []
        for match in matches:
            try:
                detail = await self._catalog.detail(match.source, match.id)
            except Exception as exc:
                logger.warning(f"Prewarm detail lookup failed for {match.key}: {exc}")
                continue
            if detail is not None and detail.episodes:
                details.append(detail)
        if not details:
            raise NoCandidatesError("no playable details")

        winner = await self._selector.select(details)
        stored = await anyio.to_thread.run_sync(
            store_fast_source, self._store, item.title, item.year, winner
        )
        if not stored:
            raise RuntimeError("cache write failed")
        return winner

    def _notify(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as exc:
            logger.warning(f"Prewarm callback failed: {exc}")

    # --- loops

    @property
    def running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    async def _sleep(self, seconds: float) -> bool:
        """
        Sleep unless stopped. Returns True when the scheduler was stopped.
        """
        assert self._stop is not None
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=max(0.0, seconds))
        except asyncio.TimeoutError:
            return False
        return True

    async def _monitor_loop(self) -> None:
        if await self._sleep(self.initial_delay):
            return
        while True:
            try:
                checked = await self.monitor_once()
            except Exception as exc:
                logger.warning(f"Prewarm monitor error: {exc}")
                checked = 0
            interval = self.monitor_interval if checked else self.idle_interval
            if await self._sleep(interval):
                return

    async def _worker_loop(self) -> None:
        while True:
            state = await self.worker_once()
            delay = self.worker_poll if state is None else self.item_delay
            if await self._sleep(delay):
                return

    def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._tasks = [
            asyncio.create_task(self._monitor_loop(), name="prewarm-monitor"),
            asyncio.create_task(self._worker_loop(), name="prewarm-worker"),
        ]
        logger.info(f"Prewarm scheduler started ({len(self._items)} items)")

    async def stop(self) -> None:
        if self._stop is not None:
            self._stop.set()
        for task in self._tasks:
            try:
                await asyncio.wait_for(task, timeout=5)
            except asyncio.TimeoutError:
                task.cancel()
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Prewarm scheduler stopped")


def load_watchlist(path) -> list[PrewarmItem]:
    """
    Read watch-list items from a JSON file.

    Accepts either a list of `{"title", "year"}` objects or an object with an
    `items` list. A missing file yields an empty list.

    Raises:
        MalformedInputError: If the file exists but is not valid JSON of that shape.
    """
    import json
    from pathlib import Path

    from streamrelay.core.errors import MalformedInputError

    p = Path(path)
    if not p.exists():
        logger.debug(f"No watch-list file at {p}")
        return []
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise MalformedInputError(f"cannot read watch-list {p}: {exc}") from exc
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise MalformedInputError(f"watch-list {p} must be a list of items")
    items = [PrewarmItem.from_payload(d) for d in data if isinstance(d, dict)]
    items = [i for i in items if i.title]
    logger.info(f"Loaded {len(items)} watch-list items from {p}")
    return items
