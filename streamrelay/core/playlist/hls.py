from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from loguru import logger

from streamrelay.domain.models import PlaylistRewriteContext
from .urls import build_proxy_url, is_playlist_url

_URI_ATTR_RE = re.compile(r'URI="(?P<uri>[^"]*)"')
_STREAM_INF_PREFIX = "#EXT-X-STREAM-INF"
_EXTINF_PREFIX = "#EXTINF:"


class LineKind(Enum):
    BLANK = "blank"
    TAG_WITH_URI = "tag_with_uri"
    TAG = "tag"
    REFERENCE = "reference"


def classify_line(line: str) -> LineKind:
    """
    Classify one playlist line.

    Returns:
        LineKind: `TAG_WITH_URI` for `#` lines carrying a quoted `URI="..."`
        attribute, `TAG` for other `#` lines, `REFERENCE` for segment or
        nested-playlist lines and `BLANK` for whitespace-only lines.
    """
    stripped = line.strip()
    if not stripped:
        return LineKind.BLANK
    if stripped.startswith("#"):
        if _URI_ATTR_RE.search(stripped):
            return LineKind.TAG_WITH_URI
        return LineKind.TAG
    return LineKind.REFERENCE


def context_for(playlist_url: str, proxy_endpoint: Optional[str] = None) -> PlaylistRewriteContext:
    """
    Build the rewrite context (origin, base directory, query) for a playlist URL.
    """
    parts = urlsplit(playlist_url)
    path = parts.path or "/"
    base_dir = path[: path.rfind("/") + 1]
    return PlaylistRewriteContext(
        origin=f"{parts.scheme}://{parts.netloc}",
        base_dir=base_dir,
        query=parts.query,
        proxy_endpoint=proxy_endpoint,
    )


def resolve_reference(ref: str, ctx: PlaylistRewriteContext) -> str:
    """
    Resolve a playlist reference against the playlist it came from.

    Absolute (`http...`) references are returned untouched. Root-relative
    references are prefixed with the origin, other relative references with
    origin plus base directory. A relative reference without its own query
    inherits the playlist's query so access tokens reach every segment. In a
    master playlist, references to nested playlists are wrapped into a proxy
    URL. Surrounding quotes are preserved.
    """
    quoted = len(ref) >= 2 and ref[0] == ref[-1] == '"'
    raw = ref[1:-1] if quoted else ref

    if raw.lower().startswith("http"):
        resolved = raw
    else:
        if raw.startswith("/"):
            resolved = ctx.origin + raw
        else:
            resolved = ctx.origin + ctx.base_dir + raw
        if ctx.query and "?" not in resolved:
            resolved = f"{resolved}?{ctx.query}"

    if ctx.is_master and ctx.proxy_endpoint and is_playlist_url(resolved):
        logger.trace("Wrapping nested playlist {}", resolved)
        resolved = build_proxy_url(ctx.proxy_endpoint, resolved)

    return f'"{resolved}"' if quoted else resolved


def _rewrite_uri_attr(line: str, ctx: PlaylistRewriteContext) -> str:
    def _replace(match: re.Match[str]) -> str:
        return f'URI="{resolve_reference(match.group("uri"), ctx)}"'

    return _URI_ATTR_RE.sub(_replace, line)


def rewrite_playlist(
    playlist_text: str, playlist_url: str, proxy_endpoint: Optional[str] = None
) -> str:
    """
    Rewrite every reference in an HLS playlist into an absolute URL.

    Parameters:
        playlist_text (str): Raw playlist body.
        playlist_url (str): URL the playlist was fetched from.
        proxy_endpoint (Optional[str]): Absolute URL of this service's proxy
            endpoint, used to wrap nested playlists of a master playlist.

    Returns:
        str: The rewritten playlist, lines joined with `\\n`.
    """
    ctx = context_for(playlist_url, proxy_endpoint)
    out_lines: list[str] = []
    for line in playlist_text.split("\n"):
        kind = classify_line(line)
        if kind is LineKind.BLANK:
            out_lines.append(line)
            continue
        stripped = line.strip()
        if stripped.startswith(_STREAM_INF_PREFIX):
            ctx.is_master = True
        if kind is LineKind.TAG:
            out_lines.append(line)
        elif kind is LineKind.TAG_WITH_URI:
            out_lines.append(_rewrite_uri_attr(line, ctx))
        else:
            out_lines.append(resolve_reference(stripped, ctx))
    logger.debug(
        "Rewrote playlist {} ({} lines, master={})", playlist_url, len(out_lines), ctx.is_master
    )
    return "\n".join(out_lines)


# --- Parsing helpers used by the probe


@dataclass(frozen=True)
class Variant:
    uri: str
    bandwidth: int = 0
    resolution: Optional[str] = None


def split_attrs(raw: str) -> dict[str, str]:
    """
    Parse an HLS attribute list, respecting quoted values.
    """
    attrs: dict[str, str] = {}
    buf: list[str] = []
    in_quotes = False
    for ch in raw + ",":
        if ch == '"':
            in_quotes = not in_quotes
        if ch == "," and not in_quotes:
            part = "".join(buf).strip()
            buf = []
            if "=" in part:
                key, value = part.split("=", 1)
                attrs[key.strip().upper()] = value.strip().strip('"')
            continue
        buf.append(ch)
    return attrs


def parse_variants(playlist_text: str) -> list[Variant]:
    """
    Return the variant streams declared by a master playlist.
    """
    variants: list[Variant] = []
    pending: Optional[dict[str, str]] = None
    for raw_line in playlist_text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(_STREAM_INF_PREFIX):
            _, _, raw_attrs = line.partition(":")
            pending = split_attrs(raw_attrs)
            continue
        if line.startswith("#"):
            continue
        if pending is not None:
            try:
                bandwidth = int(pending.get("BANDWIDTH", "0"))
            except ValueError:
                bandwidth = 0
            variants.append(
                Variant(uri=line, bandwidth=bandwidth, resolution=pending.get("RESOLUTION"))
            )
            pending = None
    return variants


def best_variant(playlist_text: str) -> Optional[Variant]:
    """
    Pick the variant with the highest BANDWIDTH; ties keep the first listed.
    """
    best: Optional[Variant] = None
    for variant in parse_variants(playlist_text):
        if best is None or variant.bandwidth > best.bandwidth:
            best = variant
    return best


def first_segment(playlist_text: str) -> Optional[str]:
    """
    Return the first media segment reference of a media playlist.
    """
    saw_extinf = False
    for raw_line in playlist_text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(_EXTINF_PREFIX):
            saw_extinf = True
            continue
        if line.startswith("#"):
            continue
        if saw_extinf:
            return line
    return None


def is_master_playlist(playlist_text: str) -> bool:
    return any(
        line.strip().startswith(_STREAM_INF_PREFIX) for line in playlist_text.splitlines()
    )
