"""Read-only result cache with in-flight coalescing."""

from .result_cache import MISS, CacheEntry, ResultCache, fingerprint

__all__ = ["MISS", "CacheEntry", "ResultCache", "fingerprint"]
