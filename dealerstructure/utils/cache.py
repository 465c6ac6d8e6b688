"""
Simple caching utilities for DealerStructure.
Memoizes computed structures so repeated callers inside the TTL window
see identical numbers, and caches slow-moving reference data (holidays).
"""

import threading
import time
from typing import Any, Callable, Optional, Dict, Tuple
from loguru import logger


class SimpleCache:
    """
    In-memory cache with TTL support and an injectable clock.

    Entries expire ``ttl`` seconds after their last write. Access is guarded
    by a lock so one instance can be shared across threads; under a single
    event loop the lock is uncontended.
    """

    def __init__(self, default_ttl: float = 60, clock: Callable[[], float] = time.monotonic):
        """
        Initialize cache.

        Args:
            default_ttl: Default time-to-live in seconds
            clock: Zero-arg callable returning seconds (monotonic by default)
        """
        self._cache: Dict[str, Tuple[Any, float]] = {}  # key -> (value, written_at)
        self._lock = threading.Lock()
        self.default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing/expired."""
        entry = self.get_with_age(key)
        return entry[0] if entry else None

    def get_with_age(self, key: str) -> Optional[Tuple[Any, float]]:
        """
        Get value and its age in seconds.

        Returns:
            (value, age_seconds) or None if not found/expired
        """
        with self._lock:
            if key not in self._cache:
                return None

            value, written_at = self._cache[key]
            age = self._clock() - written_at

            if age >= self.default_ttl:
                del self._cache[key]
                return None

            return value, age

    def set(self, key: str, value: Any) -> None:
        """Store value; the TTL window restarts from now (last write wins)."""
        with self._lock:
            self._cache[key] = (value, self._clock())

    def delete(self, key: str) -> bool:
        """Delete value from cache. Returns True if the key existed."""
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        """Clear all cached values."""
        with self._lock:
            self._cache.clear()

    def cleanup(self) -> int:
        """
        Remove expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [
                k for k, (_, written_at) in self._cache.items()
                if now - written_at >= self.default_ttl
            ]
            for key in expired:
                del self._cache[key]

        if expired:
            logger.debug(f"Cache cleanup removed {len(expired)} entries")
        return len(expired)

    def stats(self) -> Dict[str, int]:
        """Get cache statistics."""
        with self._lock:
            now = self._clock()
            return {
                "total_entries": len(self._cache),
                "expired_entries": len([
                    k for k, (_, written_at) in self._cache.items()
                    if now - written_at >= self.default_ttl
                ])
            }


def structure_cache_key(ticker: str, requested_expiration: Optional[str]) -> str:
    """Cache key for a structure request: ticker plus requested date or 'auto'."""
    return f"{ticker.upper()}:{requested_expiration or 'auto'}"
