from __future__ import annotations

import asyncio
import math
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from loguru import logger

from streamrelay.core.errors import NoCandidatesError
from streamrelay.core.scoring import BatchExtremes, score_probe
from streamrelay.domain.models import CandidateSource, ProbeResult, ScoredCandidate


class Prober(Protocol):
    def probe(self, candidate: CandidateSource) -> Awaitable[ProbeResult]: ...


ProbeCallback = Callable[[dict[str, ProbeResult]], None]


class SourceSelector:
    """
    Picks the best candidate by probing them in two sequential batches.

    Parameters:
        probe (Prober): Object whose async `probe(candidate)` never raises.
        on_probed (Optional[ProbeCallback]): Receives every probe result,
            failures included, keyed by `"<source>-<id>"`.
    """

    def __init__(self, probe: Prober, on_probed: Optional[ProbeCallback] = None):
        self._probe = probe
        self._on_probed = on_probed

    async def _probe_all(
        self, candidates: Sequence[CandidateSource]
    ) -> list[ProbeResult]:
        size = math.ceil(len(candidates) / 2)
        results: list[ProbeResult] = []
        for start in range(0, len(candidates), size):
            batch = candidates[start : start + size]
            logger.debug("Probing batch of {} candidates", len(batch))
            results.extend(await asyncio.gather(*(self._probe.probe(c) for c in batch)))
        if self._on_probed is not None:
            try:
                self._on_probed({c.key: r for c, r in zip(candidates, results)})
            except Exception as exc:
                logger.warning(f"on_probed callback failed: {exc}")
        return results

    async def rank(self, candidates: Sequence[CandidateSource]) -> list[ScoredCandidate]:
        """
        Probe and score candidates, best first. Failed probes are left out; ties
        keep the original order.
        """
        candidates = list(candidates)
        results = await self._probe_all(candidates)
        extremes = BatchExtremes.from_results(results)
        scored = [
            ScoredCandidate(candidate=c, probe=r, score=score_probe(r, extremes))
            for c, r in zip(candidates, results)
            if r.success
        ]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    async def select(self, candidates: Sequence[CandidateSource]) -> CandidateSource:
        """
        Return the best candidate.

        Raises:
            NoCandidatesError: If `candidates` is empty.
        """
        candidates = list(candidates)
        if not candidates:
            raise NoCandidatesError("no candidates to select from")
        if len(candidates) == 1:
            logger.debug("Single candidate {}; skipping probes", candidates[0].key)
            return candidates[0]

        ranked = await self.rank(candidates)
        if not ranked:
            logger.warning(
                "All {} probes failed; falling back to {}",
                len(candidates),
                candidates[0].key,
            )
            return candidates[0]
        best = ranked[0]
        logger.info(
            "Selected {} (score={}, quality={})",
            best.candidate.key,
            best.score,
            best.probe.quality,
        )
        return best.candidate
