#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Cumulative counters for the search service and the metrics derived from them.
"""

import asyncio

from logging_config import StructuredLogger
from models import StatsSnapshot

logger = StructuredLogger(__name__)


class StatsCollector:
    """Process-lifetime counters shared by every search run through one service."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._total_searches = 0
        self._failed_searches = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._total_videos = 0
        self._total_quota_units = 0

    async def record_cache_hit(self) -> None:
        async with self._lock:
            self._cache_hits += 1

    async def record_cache_miss(self) -> None:
        async with self._lock:
            self._cache_misses += 1

    async def record_search(self, videos_found: int, quota_units: int, success: bool = True) -> None:
        """Count one completed search (cached or not)."""
        async with self._lock:
            self._total_searches += 1
            if not success:
                self._failed_searches += 1
            self._total_videos += videos_found
            self._total_quota_units += quota_units

    async def snapshot(self) -> StatsSnapshot:
        """Consistent, immutable copy of the counters plus derived rates."""
        async with self._lock:
            lookups = self._cache_hits + self._cache_misses
            return StatsSnapshot(
                total_searches=self._total_searches,
                failed_searches=self._failed_searches,
                cache_hits=self._cache_hits,
                cache_misses=self._cache_misses,
                total_videos_found=self._total_videos,
                total_quota_units=self._total_quota_units,
                cache_hit_rate=self._cache_hits / lookups if lookups else 0.0,
                average_videos_per_search=(
                    self._total_videos / self._total_searches if self._total_searches else 0.0
                ),
                efficiency=(
                    self._total_videos / self._total_quota_units * 100 if self._total_quota_units else 0.0
                ),
            )

    async def reset(self) -> None:
        async with self._lock:
            self._total_searches = 0
            self._failed_searches = 0
            self._cache_hits = 0
            self._cache_misses = 0
            self._total_videos = 0
            self._total_quota_units = 0
        logger.info("Search statistics reset")
