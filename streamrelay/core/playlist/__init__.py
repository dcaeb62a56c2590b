from .hls import (
    LineKind,
    Variant,
    best_variant,
    classify_line,
    first_segment,
    is_master_playlist,
    parse_variants,
    resolve_reference,
    rewrite_playlist,
)
from .proxy import PlaylistProxy, PlaylistResult
from .urls import (
    build_proxy_url,
    is_playlist_url,
    playlist_cache_key,
    public_proxy_endpoint,
    validate_upstream_url,
)

__all__ = [
    "LineKind",
    "Variant",
    "best_variant",
    "classify_line",
    "first_segment",
    "is_master_playlist",
    "parse_variants",
    "resolve_reference",
    "rewrite_playlist",
    "PlaylistProxy",
    "PlaylistResult",
    "build_proxy_url",
    "is_playlist_url",
    "playlist_cache_key",
    "public_proxy_endpoint",
    "validate_upstream_url",
]
