"""
Query result cache.

Process-local LRU cache with a per-entry TTL.  Keys combine the dataset id
with a fingerprint of the query: a ``"mode:question"`` string (matched
case-insensitively) or a structured QuerySpec dump.  Deleting a dataset
drops its entries through ``invalidate(dataset_id)``.
"""
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from datachat.core.config import get_settings
from datachat.core.logging import get_logger
from datachat.core.utils import fingerprint

logger = get_logger(__name__)

DEFAULT_MAX_SIZE = 256


@dataclass
class CacheEntry:
    dataset_id: str
    value: Any
    expires_at: float

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


def cache_key(dataset_id: str, query: Any) -> str:
    if isinstance(query, str):
        query = query.strip().lower()
    return fingerprint({"dataset": dataset_id, "query": query})


class QueryCache:
    """Thread-safe LRU + TTL cache.

    Parameters
    ----------
    ttl : float
        Seconds an entry stays valid.
    max_size : int
        Entry cap; the least recently used entry goes first.
    """

    def __init__(self, ttl: float = 300, max_size: int = DEFAULT_MAX_SIZE):
        self.ttl = ttl
        self.max_size = max_size
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, dataset_id: str, query: Any) -> Any | None:
        key = cache_key(dataset_id, query)
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.expired(now):
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
        logger.debug("Cache hit dataset=%s key=%s", dataset_id, key[:12])
        return entry.value

    def put(self, dataset_id: str, query: Any, value: Any) -> None:
        key = cache_key(dataset_id, query)
        with self._lock:
            self._entries[key] = CacheEntry(dataset_id, value, time.monotonic() + self.ttl)
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
            size = len(self._entries)
        logger.debug("Cache put dataset=%s size=%d", dataset_id, size)

    def invalidate(self, dataset_id: str | None = None) -> int:
        """Drop one dataset's entries (or all of them); returns how many."""
        with self._lock:
            if dataset_id is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                keys = [k for k, e in self._entries.items() if e.dataset_id == dataset_id]
                for k in keys:
                    del self._entries[k]
                removed = len(keys)
        if removed:
            logger.info("Cache invalidated %d entries (dataset=%s)", removed, dataset_id or "*")
        return removed

    def cleanup_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            keys = [k for k, e in self._entries.items() if e.expired(now)]
            for k in keys:
                del self._entries[k]
        return len(keys)

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
            }


_cache: QueryCache | None = None


def get_cache() -> QueryCache:
    """Shared cache, sized from settings on first use."""
    global _cache
    if _cache is None:
        _cache = QueryCache(ttl=get_settings().cache_ttl_seconds)
    return _cache
