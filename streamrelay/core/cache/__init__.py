from .store import (
    CacheStore,
    MemoryCacheStore,
    SqlCacheStore,
    build_cache_store,
    cache_exists_safely,
    cache_get_safely,
    cache_set_safely,
)
from .fast_source import (
    delete_fast_source,
    lookup_fast_source,
    lookup_fast_sources,
    store_fast_source,
)

__all__ = [
    "CacheStore",
    "MemoryCacheStore",
    "SqlCacheStore",
    "build_cache_store",
    "cache_get_safely",
    "cache_set_safely",
    "cache_exists_safely",
    "lookup_fast_source",
    "lookup_fast_sources",
    "store_fast_source",
    "delete_fast_source",
]
