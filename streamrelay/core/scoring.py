"""Scoring of probe results relative to the other candidates in the same batch.

Weights: quality 0.4, throughput 0.4, latency 0.2. Every component and the
total stay within [0, 100].
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from streamrelay.domain.models import ProbeResult

QUALITY_WEIGHT = 0.4
THROUGHPUT_WEIGHT = 0.4
LATENCY_WEIGHT = 0.2

UNKNOWN_THROUGHPUT_SCORE = 30.0
DEFAULT_MIN_LATENCY_MS = 50.0
DEFAULT_MAX_LATENCY_MS = 1000.0


@dataclass(frozen=True)
class BatchExtremes:
    max_throughput: Optional[float]
    min_latency: float
    max_latency: float

    @classmethod
    def from_results(cls, results: Iterable[ProbeResult]) -> "BatchExtremes":
        """
        Extremes over successful probes only.

        Unknown or non-positive values are ignored. Without any valid latency
        the bounds fall back to 50/1000 ms.
        """
        ok = [r for r in results if r.success]
        speeds = [r.throughput for r in ok if r.throughput is not None and r.throughput > 0]
        pings = [r.latency_ms for r in ok if r.latency_ms > 0]
        return cls(
            max_throughput=max(speeds) if speeds else None,
            min_latency=min(pings) if pings else DEFAULT_MIN_LATENCY_MS,
            max_latency=max(pings) if pings else DEFAULT_MAX_LATENCY_MS,
        )


def _clamp(value: float) -> float:
    return min(100.0, max(0.0, value))


def round_half_up(value: float, digits: int = 2) -> float:
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def throughput_component(result: ProbeResult, extremes: BatchExtremes) -> float:
    if result.throughput is None or not extremes.max_throughput:
        return UNKNOWN_THROUGHPUT_SCORE
    return _clamp(result.throughput / extremes.max_throughput * 100)


def latency_component(result: ProbeResult, extremes: BatchExtremes) -> float:
    if result.latency_ms <= 0:
        return 0.0
    if extremes.max_latency == extremes.min_latency:
        return 100.0
    spread = extremes.max_latency - extremes.min_latency
    return _clamp((extremes.max_latency - result.latency_ms) / spread * 100)


def score_probe(result: ProbeResult, extremes: BatchExtremes) -> float:
    """
    Weighted score of one probe, rounded half-up to two decimals.
    """
    total = (
        result.quality.score * QUALITY_WEIGHT
        + throughput_component(result, extremes) * THROUGHPUT_WEIGHT
        + latency_component(result, extremes) * LATENCY_WEIGHT
    )
    return round_half_up(_clamp(total))
