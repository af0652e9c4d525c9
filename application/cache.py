# application/cache.py
from __future__ import annotations
import time
from typing import Any, Callable, Dict, Hashable, Optional

from core.config import Config
from domain.models import CacheEntry


class RateCache:
    """
    In-memory TTL cache of resolved lookups.

    Reads are lock-free; concurrent writes to one key are last-writer-wins.
    Expired entries are dropped when read and pruned on every write.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else Config.RATE_CACHE_TTL_SECONDS
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._entries.pop(key, None)
            return None
        return entry.data

    def set(self, key: Hashable, data: Any, ttl: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl is None else ttl
        now = self._clock()
        self._prune(now)
        self._entries[key] = CacheEntry(key=key, data=data, expiry=now + ttl)

    def _prune(self, now: float) -> int:
        expired = [k for k, e in list(self._entries.items()) if e.is_expired(now)]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def invalidate(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def stats(self) -> Dict[str, int]:
        now = self._clock()
        entries = list(self._entries.values())
        expired = sum(1 for e in entries if e.is_expired(now))
        return {
            "valid_count": len(entries) - expired,
            "expired_count": expired,
            "total_count": len(entries),
        }

    def __len__(self) -> int:
        return len(self._entries)
