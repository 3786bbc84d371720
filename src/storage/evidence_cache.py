# src/storage/evidence_cache.py

"""In-memory TTL cache of successful evidence lookups."""

import logging
import time
from dataclasses import dataclass
from typing import Any

from src.config.settings import Settings

logger = logging.getLogger("trustmart.cache")

CacheKey = tuple[str, str]  # ("search", query) or ("image", url)


@dataclass
class CacheEntry:
    """One cached provider result."""

    key: CacheKey
    value: Any
    timestamp: float


class EvidenceCache:
    """Cache raw provider results so repeated analyses skip the network.

    Only successful results are stored; a failed lookup is retried on
    the next analysis.
    """

    def __init__(self, ttl: float | None = None) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._ttl: float = (
            ttl if ttl is not None else Settings.EVIDENCE_CACHE_TTL
        )

    def get(self, kind: str, target: str) -> Any | None:
        """Return the cached value for (*kind*, *target*), or ``None``."""
        now = time.time()
        self._evict_expired(now)
        entry = self._entries.get((kind, target))
        if entry is None:
            return None
        logger.debug("Cache hit for %s '%s'", kind, target)
        return entry.value

    def store(self, kind: str, target: str, value: Any) -> None:
        self._entries[(kind, target)] = CacheEntry(
            key=(kind, target),
            value=value,
            timestamp=time.time(),
        )
        logger.debug("Cached %s result for '%s'", kind, target)

    def clear(self) -> int:
        """Purge all cached entries.

        Returns the number of entries that were removed.
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info("Cache manually purged (%d entries removed)", count)
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_expired(self, now: float) -> None:
        """Remove entries older than the TTL threshold."""
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.timestamp >= self._ttl
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(
                "Evicted %d expired cache entries", len(expired)
            )
