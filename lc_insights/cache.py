"""
Response Cache for LeetCode Insights.

Short-lived store for computed dashboard and insights payloads, keyed by
strings such as "dashboard:{username}" or "insights:{username}:{days}".
Owned by the API layer; the scoring engine never touches it.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .config import CACHE_TTL_SECONDS, CACHE_MAX_ENTRIES

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cached payload with its expiry and last access time."""
    data: Any
    expires_at: float
    last_accessed: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ResponseCache:
    """
    Thread-safe TTL cache with a max size.

    When full, the least recently read or written entry is dropped to make
    room. `time_source` returns epoch seconds and can be replaced in tests.
    """

    def __init__(
        self,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
        time_source: Callable[[], float] = time.time,
    ):
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._now = time_source

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def get(self, key: str) -> Tuple[Optional[Any], bool]:
        """
        Look up a payload.

        Returns:
            (data, True) on a hit, (None, False) when missing or expired
        """
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                if entry is not None:
                    del self._entries[key]
                logger.debug(f"Cache miss: {key}")
                return None, False

            entry.last_accessed = now
            return entry.data, True

    def set(self, key: str, data: Any, ttl: Optional[int] = None) -> None:
        """Store a payload for `ttl` seconds (the cache default when None)."""
        now = self._now()
        lifetime = self._ttl if ttl is None else ttl

        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                self._drop_least_recent()
            self._entries[key] = CacheEntry(data=data, expires_at=now + lifetime, last_accessed=now)
        logger.debug(f"Cache set: {key} (ttl={lifetime}s)")

    def evict(self, key: str) -> bool:
        """Drop one key. Returns whether it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def evict_prefix(self, prefix: str) -> int:
        """Drop every key starting with `prefix`; returns how many were dropped."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for key in doomed:
                del self._entries[key]

        if doomed:
            logger.debug(f"Cache evicted {len(doomed)} entries under '{prefix}'")
        return len(doomed)

    def clear(self) -> int:
        """Drop everything; returns the number of entries removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        logger.info(f"Cache cleared: {count} entries removed")
        return count

    def cleanup_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._now()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.info(f"Cache cleanup: {len(expired)} expired entries removed")
        return len(expired)

    def _drop_least_recent(self) -> None:
        if not self._entries:
            return
        victim = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[victim]
        logger.debug(f"Cache full, dropped {victim}")

    def stats(self) -> Dict[str, Any]:
        """Entry counts and configuration, for the health endpoint."""
        now = self._now()
        with self._lock:
            total = len(self._entries)
            expired = sum(1 for e in self._entries.values() if e.is_expired(now))

        return {
            "total_entries": total,
            "active_entries": total - expired,
            "expired_entries": expired,
            "max_entries": self._max_entries,
            "ttl_seconds": self._ttl,
        }


# Shared instance for dashboard and insights payloads
response_cache = ResponseCache()
