"""
Caching Package - In-memory TTL cache for source payloads.

Cache keys for source payloads are "data_" + the provider name.
"""

from caching.cache_store import CacheEntry, CacheError, CacheStore


__all__ = [
    "CacheEntry",
    "CacheError",
    "CacheStore",
]
