"""Two-tier cache keys and the artifact cache service."""

from .keys import CacheKey, CacheKeySet, build_cache_keys
from .store import ArtifactCache, CacheRestoreResult, CacheSaveResult, LocalCacheStore

__all__ = [
    "ArtifactCache",
    "CacheKey",
    "CacheKeySet",
    "CacheRestoreResult",
    "CacheSaveResult",
    "LocalCacheStore",
    "build_cache_keys",
]
