"""
Result Cache

Short-lived in-memory cache for manual check results, so repeated clicks
on the same brand/query do not spend provider quota.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


CacheKey = Tuple[str, str, str, str, str]


def make_cache_key(brand_id: str, query: str, country: str, language: str, device: str) -> CacheKey:
    """Cache key for one check."""
    return (str(brand_id), query.strip(), country, language, device)


@dataclass
class CacheEntry:
    """Cache entry with metadata."""
    value: Any
    created_at: datetime
    expires_at: datetime
    hit_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        """Check if entry has expired."""
        return now >= self.expires_at


class ResultCache:
    """
    TTL cache keyed by (brand, query, country, language, device).

    Entries are dropped lazily on read and on every write.
    """

    def __init__(
        self,
        ttl_seconds: int = 120,
        enabled: bool = True,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        """
        Initialize cache.

        Args:
            ttl_seconds: Lifetime of an entry
            enabled: Whether caching is enabled
            clock: Source of "now" (tests pass a fake)
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self.enabled = enabled and ttl_seconds > 0
        self._clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}

        # Stats
        self._hits = 0
        self._misses = 0

    def get(self, key: CacheKey) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        if not self.enabled:
            return None

        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            self._misses += 1
            return None

        entry.hit_count += 1
        self._hits += 1
        logger.debug(f"Cache HIT: {key}")
        return entry.value

    def set(self, key: CacheKey, value: Any) -> None:
        """Store a value for the configured TTL."""
        if not self.enabled:
            return

        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = CacheEntry(value=value, created_at=now, expires_at=now + self.ttl)

    def clear(self) -> int:
        """Drop every entry. Returns the number removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def _purge_expired(self, now: datetime) -> None:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        total = self._hits + self._misses
        return {
            "enabled": self.enabled,
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 1) if total else 0.0,
        }
