"""Domain value objects shared by the cache, probe, selector and prewarm layers.

Everything here is pure data: no I/O, no framework imports.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Mapping, Optional


class QualityTier(StrEnum):
    UHD_4K = "4K"
    QHD_2K = "2K"
    FHD_1080P = "1080p"
    HD_720P = "720p"
    SD_480P = "480p"
    SD = "SD"
    UNKNOWN = "Unknown"

    @property
    def score(self) -> int:
        return _TIER_SCORES[self]

    @classmethod
    def from_width(cls, width: Optional[int]) -> "QualityTier":
        """
        Map a frame width in pixels to a tier.

        Returns:
            QualityTier: `UNKNOWN` when width is missing or not positive.
        """
        if not width or width <= 0:
            return cls.UNKNOWN
        if width >= 3840:
            return cls.UHD_4K
        if width >= 2560:
            return cls.QHD_2K
        if width >= 1920:
            return cls.FHD_1080P
        if width >= 1280:
            return cls.HD_720P
        if width >= 854:
            return cls.SD_480P
        return cls.SD

    @classmethod
    def from_resolution(cls, resolution: Optional[str]) -> "QualityTier":
        """
        Parse an HLS `RESOLUTION=WIDTHxHEIGHT` value into a tier.
        """
        if not resolution:
            return cls.UNKNOWN
        width_raw, _, _height_raw = resolution.strip().strip('"').lower().partition("x")
        try:
            return cls.from_width(int(width_raw))
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_label(cls, label: Optional[str]) -> "QualityTier":
        """
        Map a loose quality label ("1080P", "4k", "bd") to a tier.
        """
        q = (label or "").strip().lower()
        if "4k" in q:
            return cls.UHD_4K
        if "2k" in q:
            return cls.QHD_2K
        if "1080p" in q or q == "bd":
            return cls.FHD_1080P
        if "720p" in q:
            return cls.HD_720P
        if "480p" in q:
            return cls.SD_480P
        if q == "sd":
            return cls.SD
        return cls.UNKNOWN


_TIER_SCORES: dict[QualityTier, int] = {
    QualityTier.UHD_4K: 100,
    QualityTier.QHD_2K: 85,
    QualityTier.FHD_1080P: 75,
    QualityTier.HD_720P: 60,
    QualityTier.SD_480P: 40,
    QualityTier.SD: 20,
    QualityTier.UNKNOWN: 0,
}


@dataclass(frozen=True)
class CandidateSource:
    """
    One provider's listing for a title, as returned by the catalog.
    """

    source: str
    id: str
    source_name: str = ""
    episodes: tuple[str, ...] = ()
    title: str = ""
    year: str = ""
    poster: str = ""
    description: str = ""

    @property
    def key(self) -> str:
        return f"{self.source}-{self.id}"

    @property
    def probe_url(self) -> Optional[str]:
        """
        Representative episode URL: the second episode when there is more than
        one (first episodes are often cold on provider CDNs), else the first.
        """
        if not self.episodes:
            return None
        return self.episodes[1] if len(self.episodes) > 1 else self.episodes[0]

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "CandidateSource":
        episodes = payload.get("episodes") or ()
        return cls(
            source=str(payload.get("source") or ""),
            id=str(payload.get("id") or ""),
            source_name=str(payload.get("source_name") or ""),
            episodes=tuple(str(e) for e in episodes if e),
            title=str(payload.get("title") or ""),
            year=str(payload.get("year") or ""),
            poster=str(payload.get("poster") or ""),
            description=str(payload.get("desc") or payload.get("description") or ""),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "id": self.id,
            "source_name": self.source_name,
            "episodes": list(self.episodes),
            "title": self.title,
            "year": self.year,
            "poster": self.poster,
            "description": self.description,
        }


@dataclass(frozen=True)
class ProbeResult:
    quality: QualityTier = QualityTier.UNKNOWN
    throughput: Optional[float] = None  # bytes/sec, None = unknown
    latency_ms: float = 0.0  # <= 0 means invalid/unmeasured
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "ProbeResult":
        return cls(success=False, error=error)

    def describe(self) -> dict[str, Any]:
        return {
            "quality": str(self.quality),
            "throughput": self.throughput,
            "latency_ms": self.latency_ms,
            "success": self.success,
            "error": self.error,
        }


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: CandidateSource
    probe: ProbeResult
    score: float


@dataclass(frozen=True)
class CacheEntry:
    namespace: str
    key: str
    payload: Any
    expires_at: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        return (time.time() if now is None else now) >= self.expires_at


class PrewarmState(StrEnum):
    PENDING = "pending"
    CHECKING = "checking"
    CACHE_HIT = "cache_hit"
    QUEUED = "queued"
    WARMING = "warming"
    CACHED = "cached"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class PrewarmItem:
    title: str
    year: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "title", (self.title or "").strip())
        object.__setattr__(self, "year", str(self.year or "").strip())

    @property
    def cache_key(self) -> str:
        return f"{self.title}_{self.year}"

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PrewarmItem":
        return cls(title=str(payload.get("title") or ""), year=str(payload.get("year") or ""))


@dataclass
class PlaylistRewriteContext:
    """
    Per-pass state for rewriting one playlist.

    `is_master` flips to True on the first `#EXT-X-STREAM-INF` tag and stays
    True for the rest of the pass.
    """

    origin: str
    base_dir: str
    query: str
    proxy_endpoint: Optional[str] = None
    is_master: bool = False


@dataclass(frozen=True)
class FastSourceRecord:
    """
    Cached winner for a `(title, year)` pair. Timestamps are epoch millis.
    """

    source: str
    id: str
    source_name: str = ""
    updateTime: int = field(default_factory=lambda: int(time.time() * 1000))
    expireAt: int = 0

    @classmethod
    def for_candidate(
        cls, candidate: CandidateSource, *, ttl_seconds: int, now: Optional[float] = None
    ) -> "FastSourceRecord":
        now_ms = int((time.time() if now is None else now) * 1000)
        return cls(
            source=candidate.source,
            id=candidate.id,
            source_name=candidate.source_name,
            updateTime=now_ms,
            expireAt=now_ms + ttl_seconds * 1000,
        )

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "FastSourceRecord":
        return cls(
            source=str(payload.get("source") or ""),
            id=str(payload.get("id") or ""),
            source_name=str(payload.get("source_name") or ""),
            updateTime=int(payload.get("updateTime") or 0),
            expireAt=int(payload.get("expireAt") or 0),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "id": self.id,
            "source_name": self.source_name,
            "updateTime": self.updateTime,
            "expireAt": self.expireAt,
        }


def fast_source_key(title: str, year: Optional[str] = None) -> str:
    """
    Cache key for a title's selected source.
    """
    return f"cache:fast_source:{title}_{year or ''}"
