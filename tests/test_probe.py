import anyio
import httpx

from streamrelay.core.probe import SourceProbe
from streamrelay.domain.models import CandidateSource, QualityTier

MASTER = (
    "#EXTM3U\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360\n"
    "low/index.m3u8\n"
    "#EXT-X-STREAM-INF:BANDWIDTH=5000000,RESOLUTION=1920x1080\n"
    "high/index.m3u8\n"
)
MEDIA = "#EXTM3U\n#EXTINF:6.0,\nseg-1.ts\n#EXTINF:6.0,\nseg-2.ts\n#EXT-X-ENDLIST\n"


def _factory(routes, seen):
    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="missing")
        return httpx.Response(200, content=body if isinstance(body, bytes) else body.encode())

    return lambda: httpx.AsyncClient(transport=httpx.MockTransport(_handler))


def _cand(*episodes):
    return CandidateSource(source="s1", id="1", episodes=tuple(episodes))


def test_probe_follows_best_variant_and_measures():
    seen = []
    routes = {
        "/show/ep2.m3u8": MASTER,
        "/show/high/index.m3u8": MEDIA,
        "/show/high/seg-1.ts": b"\x47" * 4096,
    }
    probe = SourceProbe(client_factory=_factory(routes, seen), sample_bytes=2048)
    cand = _cand("https://cdn.x/show/ep1.m3u8", "https://cdn.x/show/ep2.m3u8")

    result = anyio.run(probe.probe, cand)

    assert result.success is True
    assert result.quality is QualityTier.FHD_1080P
    assert result.latency_ms > 0
    assert result.throughput is not None and result.throughput > 0
    # second episode is the representative one
    assert seen[0] == "https://cdn.x/show/ep2.m3u8"
    assert "https://cdn.x/show/low/index.m3u8" not in seen


def test_probe_media_playlist_has_unknown_quality():
    routes = {"/a/ep1.m3u8": MEDIA, "/a/seg-1.ts": b"\x00" * 100}
    probe = SourceProbe(client_factory=_factory(routes, []))
    result = anyio.run(probe.probe, _cand("https://cdn.x/a/ep1.m3u8"))
    assert result.success is True
    assert result.quality is QualityTier.UNKNOWN


def test_probe_non_2xx_is_failure():
    probe = SourceProbe(client_factory=_factory({}, []))
    result = anyio.run(probe.probe, _cand("https://cdn.x/missing.m3u8"))
    assert result.success is False
    assert "404" in result.error


def test_probe_transport_error_is_failure():
    def _handler(request):
        raise httpx.ConnectError("dns failure", request=request)

    probe = SourceProbe(
        client_factory=lambda: httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    )
    result = anyio.run(probe.probe, _cand("https://nowhere.invalid/p.m3u8"))
    assert result.success is False


def test_probe_without_episodes_is_failure():
    result = anyio.run(SourceProbe().probe, _cand())
    assert result.success is False
