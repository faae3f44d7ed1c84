"""
Caching - In-Memory Cache Store.

============================================================
EXPIRY MODEL
============================================================

Every entry has two expirations:
- Absolute: created_at + ttl. Never moves.
- Sliding:  last access + ttl / 2, capped at the absolute
  expiry. Renewed on every successful get().

An entry is expired once now >= its sliding expiry. Expired
entries are dropped lazily on access and by purge_expired().

============================================================
THREAD SAFETY
============================================================

All operations take one re-entrant lock. The store is shared
by every in-flight aggregation without caller-side locking.

============================================================
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional
import logging

from core.clock import ClockProtocol, SystemClock
from core.results import ErrorCode, OperationResult


logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Raised for an unusable cache key or an internal cache failure."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key is not None:
            return f"CacheError: {self.message} [key={self.key}]"
        return f"CacheError: {self.message}"


@dataclass
class CacheEntry:
    """One cached value and its expiry bookkeeping."""
    value: Any
    created_at: datetime
    absolute_expiry: datetime
    sliding_window: timedelta
    sliding_expiry: datetime
    hits: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now >= self.sliding_expiry

    def touch(self, now: datetime) -> None:
        """Renew the sliding expiry, never beyond the absolute cap."""
        self.sliding_expiry = min(now + self.sliding_window, self.absolute_expiry)
        self.hits += 1


class CacheStore:
    """
    Thread-safe key/value store with absolute and sliding expiry.

    Every operation returns an OperationResult instead of raising,
    so callers can treat any cache problem as a miss.
    """

    def __init__(self, clock: Optional[ClockProtocol] = None) -> None:
        self._clock = clock or SystemClock()
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0

    @staticmethod
    def _validate_key(key: str) -> None:
        if not isinstance(key, str) or not key:
            raise CacheError("Cache key must be a non-empty string", key=repr(key))

    def get(self, key: str) -> OperationResult[Any]:
        """
        Look up a value.

        Returns:
            ok(value) on a hit, ok(None) on a miss or expiry,
            a failed result for an invalid key
        """
        try:
            self._validate_key(key)
        except CacheError as e:
            return OperationResult.fail(ErrorCode.VALIDATION, e.message, e)

        try:
            with self._lock:
                entry = self._entries.get(key)
                if entry is None:
                    self._misses += 1
                    return OperationResult.ok(None)

                now = self._clock.now()
                if entry.is_expired(now):
                    del self._entries[key]
                    self._misses += 1
                    logger.debug(f"Cache entry '{key}' expired")
                    return OperationResult.ok(None)

                entry.touch(now)
                self._hits += 1
                return OperationResult.ok(entry.value)

        except Exception as e:
            logger.error(f"Cache get failed for '{key}': {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.INTERNAL, f"Cache get failed: {e}", e)

    def set(self, key: str, value: Any, ttl_minutes: float) -> OperationResult[None]:
        """
        Store a value.

        Args:
            key: Cache key
            value: Value to store
            ttl_minutes: Absolute lifetime; the sliding window is half of it
        """
        try:
            self._validate_key(key)
        except CacheError as e:
            return OperationResult.fail(ErrorCode.VALIDATION, e.message, e)

        if ttl_minutes <= 0:
            return OperationResult.fail(
                ErrorCode.VALIDATION,
                f"ttl_minutes must be positive, got {ttl_minutes}",
            )

        try:
            now = self._clock.now()
            ttl = timedelta(minutes=ttl_minutes)
            sliding = ttl / 2
            absolute_expiry = now + ttl

            with self._lock:
                self._entries[key] = CacheEntry(
                    value=value,
                    created_at=now,
                    absolute_expiry=absolute_expiry,
                    sliding_window=sliding,
                    sliding_expiry=min(now + sliding, absolute_expiry),
                )
            return OperationResult.ok()

        except Exception as e:
            logger.error(f"Cache set failed for '{key}': {e}", exc_info=True)
            return OperationResult.fail(ErrorCode.INTERNAL, f"Cache set failed: {e}", e)

    def remove(self, key: str) -> OperationResult[bool]:
        """Remove a key. The value is True when something was removed."""
        try:
            self._validate_key(key)
        except CacheError as e:
            return OperationResult.fail(ErrorCode.VALIDATION, e.message, e)

        with self._lock:
            return OperationResult.ok(self._entries.pop(key, None) is not None)

    def clear(self) -> OperationResult[int]:
        """Remove every key. The value is the number of entries removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache cleared ({count} entries)")
        return OperationResult.ok(count)

    def purge_expired(self) -> OperationResult[int]:
        """Drop expired entries. The value is the number dropped."""
        with self._lock:
            now = self._clock.now()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return OperationResult.ok(len(expired))

    def keys(self) -> list[str]:
        """Snapshot of the stored keys, expired ones included."""
        with self._lock:
            return list(self._entries.keys())

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups * 100, 2) if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.is_expired(self._clock.now())
