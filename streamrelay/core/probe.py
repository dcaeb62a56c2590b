from __future__ import annotations

import time
from typing import Callable, Optional
from urllib.parse import urljoin

import anyio
import httpx
from loguru import logger

from streamrelay.core.errors import ProbeFailure
from streamrelay.core.playlist.hls import best_variant, first_segment, is_master_playlist
from streamrelay.domain.models import CandidateSource, ProbeResult, QualityTier

_CHUNK_SIZE = 64 * 1024


def _build_async_client() -> httpx.AsyncClient:
    """
    Build an AsyncClient for probing without env proxies.
    """
    from streamrelay.config import PROBE_TIMEOUT_SECONDS

    logger.trace("Building probe AsyncClient")
    return httpx.AsyncClient(
        timeout=httpx.Timeout(PROBE_TIMEOUT_SECONDS),
        follow_redirects=True,
        trust_env=False,
    )


class SourceProbe:
    """
    Measures one candidate: resolution tier, time to first response and
    transfer rate over a bounded segment sample.

    `probe` never raises; every failure becomes `ProbeResult(success=False)`.
    """

    def __init__(
        self,
        *,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
        timeout: Optional[float] = None,
        sample_bytes: Optional[int] = None,
        user_agent: Optional[str] = None,
    ):
        from streamrelay.config import (
            DEFAULT_USER_AGENT,
            PROBE_SAMPLE_BYTES,
            PROBE_TIMEOUT_SECONDS,
        )

        self._client_factory = client_factory
        self._timeout = timeout or PROBE_TIMEOUT_SECONDS
        self._sample_bytes = sample_bytes or PROBE_SAMPLE_BYTES
        self._user_agent = user_agent or DEFAULT_USER_AGENT

    async def probe(self, candidate: CandidateSource) -> ProbeResult:
        url = candidate.probe_url
        if not url:
            logger.warning("Probe skipped for {}: no episodes", candidate.key)
            return ProbeResult.failed("no episodes")
        logger.debug("Probing {} via {}", candidate.key, url)
        try:
            with anyio.fail_after(self._timeout):
                result = await self._measure(url)
        except TimeoutError:
            logger.warning("Probe timed out for {}", candidate.key)
            return ProbeResult.failed("timeout")
        except Exception as exc:
            logger.warning("Probe failed for {}: {}", candidate.key, exc)
            return ProbeResult.failed(str(exc) or exc.__class__.__name__)
        logger.debug("Probe result for {}: {}", candidate.key, result.describe())
        return result

    async def _measure(self, url: str) -> ProbeResult:
        headers = {"User-Agent": self._user_agent}
        async with (self._client_factory or _build_async_client)() as client:
            started = time.perf_counter()
            async with client.stream("GET", url, headers=headers) as resp:
                latency_ms = (time.perf_counter() - started) * 1000
                if not resp.is_success:
                    raise ProbeFailure(f"playlist HTTP {resp.status_code}")
                await resp.aread()
                text = resp.text
                playlist_url = str(resp.url)

            quality = QualityTier.UNKNOWN
            if is_master_playlist(text):
                variant = best_variant(text)
                if variant is None:
                    raise ProbeFailure("master playlist without variants")
                quality = QualityTier.from_resolution(variant.resolution)
                playlist_url = urljoin(playlist_url, variant.uri)
                resp = await client.get(playlist_url, headers=headers)
                if not resp.is_success:
                    raise ProbeFailure(f"variant HTTP {resp.status_code}")
                text = resp.text
                playlist_url = str(resp.url)

            segment = first_segment(text)
            throughput: Optional[float] = None
            if segment:
                throughput = await self._sample(
                    client, urljoin(playlist_url, segment), headers
                )
        return ProbeResult(
            quality=quality, throughput=throughput, latency_ms=latency_ms, success=True
        )

    async def _sample(
        self, client: httpx.AsyncClient, url: str, headers: dict[str, str]
    ) -> Optional[float]:
        received = 0
        started = time.perf_counter()
        async with client.stream("GET", url, headers=headers) as resp:
            if not resp.is_success:
                raise ProbeFailure(f"segment HTTP {resp.status_code}")
            async for chunk in resp.aiter_bytes(chunk_size=_CHUNK_SIZE):
                received += len(chunk)
                if received >= self._sample_bytes:
                    break
        elapsed = time.perf_counter() - started
        if received <= 0 or elapsed <= 0:
            return None
        return received / elapsed
