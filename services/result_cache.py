#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
In-process TTL cache for final search results.
"""

import asyncio
import hashlib
import json
import time
from collections import OrderedDict
from typing import Any, Dict, Optional

from config import config
from logging_config import StructuredLogger
from models import CacheEntry, FilterCriteria, SearchResult
from utils import normalize_query

logger = StructuredLogger(__name__)


def fingerprint(query: str, criteria: FilterCriteria) -> str:
    """Stable cache key for a query and the criteria fields that shape its output.

    Quota budgets, page limits and other controls that only affect how the
    result is obtained are left out.
    """
    payload = [
        normalize_query(query),
        criteria.target_result_count,
        criteria.min_view_count,
        criteria.min_engagement_rate,
        criteria.sort_key.value,
    ]
    raw = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class ResultCache:
    """TTL cache of SearchResult values with oldest-first eviction.

    Entries are kept in creation order; reads do not refresh them. All
    access goes through an asyncio.Lock so concurrent sessions in a bulk
    search can share one instance.
    """

    def __init__(self, maxsize: int = config.RESULT_CACHE_SIZE,
                 ttl_seconds: float = config.RESULT_CACHE_TTL_SECONDS):
        """Initialize the cache.

        Args:
            maxsize: Maximum number of entries. Must be > 0.
            ttl_seconds: Lifetime of an entry, measured on the monotonic clock.
        """
        if maxsize <= 0:
            raise ValueError("ResultCache maxsize must be greater than 0")
        if ttl_seconds <= 0:
            raise ValueError("ResultCache ttl_seconds must be greater than 0")
        self.maxsize = maxsize
        self.ttl_seconds = ttl_seconds

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._stats = {
            "hits": 0,
            "misses": 0,
            "evictions": 0,
            "ttl_expirations": 0,
        }
        logger.debug(f"ResultCache initialized: maxsize={maxsize}, ttl={ttl_seconds}s")

    async def get(self, key: str) -> Optional[SearchResult]:
        """Return the cached value for ``key``, or None when absent or expired."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats["misses"] += 1
                return None

            if entry.is_expired():
                del self._entries[key]
                self._stats["ttl_expirations"] += 1
                self._stats["misses"] += 1
                logger.debug("Cache entry expired", key=key[:12])
                return None

            self._stats["hits"] += 1
            return entry.value

    async def put(self, key: str, value: SearchResult) -> None:
        """Store ``value``. Replacing an existing key resets its age."""
        async with self._lock:
            self._entries.pop(key, None)
            if len(self._entries) >= self.maxsize:
                self._purge_expired()
            while len(self._entries) >= self.maxsize:
                old_key, _ = self._entries.popitem(last=False)
                self._stats["evictions"] += 1
                logger.debug("Evicted oldest cache entry", key=old_key[:12])

            self._entries[key] = CacheEntry(
                key=key,
                value=value,
                created_at=time.monotonic(),
                ttl_seconds=self.ttl_seconds,
            )

    def _purge_expired(self) -> None:
        now = time.monotonic()
        expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
        for k in expired:
            del self._entries[k]
            self._stats["ttl_expirations"] += 1

    async def clear(self) -> int:
        """Remove all entries and return how many there were."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    async def size(self) -> int:
        async with self._lock:
            return len(self._entries)

    async def get_stats(self) -> Dict[str, Any]:
        """Get cache usage statistics."""
        async with self._lock:
            stats = self._stats.copy()
            stats["size"] = len(self._entries)
            stats["maxsize"] = self.maxsize
            stats["ttl_seconds"] = self.ttl_seconds
            total_lookups = stats["hits"] + stats["misses"]
            stats["hit_ratio"] = (stats["hits"] / total_lookups) if total_lookups > 0 else 0.0
            return stats
