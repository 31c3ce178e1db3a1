#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Public entry point of the search pipeline.

SearchService owns the result cache, the statistics collector and the
pagination controller. Each call builds its FilterCriteria once, consults
the cache, runs the (optionally adaptive) pagination loop, ranks the
accepted videos and records the outcome.
"""

import asyncio
import time
import uuid
from typing import Any, Iterable, List, Optional

from config import config
from exceptions import APIConfigurationError, AppBaseError, InvalidQueryError
from logging_config import StructuredLogger
from models import (BulkSearchResult, BulkSearchSummary, FilterCriteria,
                    SearchMetadata, SearchResult, SearchSession, SortKey,
                    StatsSnapshot, StopReason)
from services.detail_enricher import DetailEnricher
from services.pagination import PaginationController
from services.ranking import rank, summarize_quality
from services.result_cache import ResultCache, fingerprint
from services.search_client import SearchClient
from services.stats import StatsCollector
from services.youtube_api import build_youtube_resource
from utils import chunked, performance_timer

logger = StructuredLogger(__name__)

# Preset overrides for the convenience searches
QUICK_SEARCH_OVERRIDES = {"max_pages": 3, "min_view_count": 500, "adaptive": True}
HIGH_QUALITY_OVERRIDES = {
    "max_pages": 4,
    "min_view_count": 5000,
    "min_like_count": 50,
    "min_engagement_rate": 0.02,
    "sort_key": SortKey.ENGAGEMENT,
    "adaptive": True,
}


class SearchService:
    """Quota-aware short-video search with caching and cumulative statistics.

    Instances are independent: each has its own cache and counters.
    """

    def __init__(self, controller: PaginationController,
                 cache: Optional[ResultCache] = None,
                 stats: Optional[StatsCollector] = None,
                 bulk_concurrency: int = config.BULK_SEARCH_CONCURRENCY,
                 bulk_batch_delay_ms: int = config.BULK_BATCH_DELAY_MS):
        self.controller = controller
        self.cache = cache if cache is not None else ResultCache()
        self.stats = stats if stats is not None else StatsCollector()
        self.bulk_concurrency = max(1, bulk_concurrency)
        self.bulk_batch_delay_ms = bulk_batch_delay_ms

    @classmethod
    def from_api_key(cls, api_key: Optional[str] = None, **kwargs: Any) -> "SearchService":
        """Build a service whose search and detail clients share one API resource.

        Raises:
            APIConfigurationError: If no API key is available.
        """
        youtube = build_youtube_resource(api_key)
        controller = PaginationController(SearchClient(youtube), DetailEnricher(youtube))
        logger.info("Search service initialized.")
        return cls(controller, **kwargs)

    @staticmethod
    def _build_criteria(criteria: Optional[FilterCriteria], overrides: dict) -> FilterCriteria:
        if criteria is None:
            return FilterCriteria(**overrides)
        return criteria.with_overrides(**overrides)

    async def search(self, query: str, criteria: Optional[FilterCriteria] = None,
                     cancel_event: Optional[asyncio.Event] = None,
                     **overrides: Any) -> SearchResult:
        """Search for short videos matching ``criteria``.

        Args:
            query: Search terms.
            criteria: Filter and budget settings. Defaults apply when None.
            cancel_event: When set, pagination stops before the next page.
            **overrides: FilterCriteria fields applied on top of ``criteria``.

        Returns:
            SearchResult: Ranked videos and pagination metadata. Quota
            exhaustion and rejected queries are reported with
            ``success=False`` rather than raised.

        Raises:
            ValueError: If the criteria are invalid.
        """
        request_id = str(uuid.uuid4())[:8]
        log_prefix = f"[REQ-{request_id}]"
        log = logger.bind(request_id=request_id)
        start_time = time.monotonic()
        criteria = self._build_criteria(criteria, overrides)

        if not isinstance(query, str) or not query.strip():
            log.warning(f"{log_prefix} Rejected empty search query")
            result = self._failure_result(str(query or ""), InvalidQueryError("Search query must not be empty"),
                                          StopReason.INVALID_QUERY)
            await self.stats.record_search(0, 0, success=False)
            return result

        query = query.strip()
        cache_key = fingerprint(query, criteria)

        if criteria.use_cache:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                await self.stats.record_cache_hit()
                await self.stats.record_search(len(cached.videos), 0)
                log.info(f"{log_prefix} Cache hit for '{query[:50]}'", query=query[:50], videos=len(cached.videos))
                return cached.model_copy(update={"from_cache": True})
            await self.stats.record_cache_miss()

        log.info(
            f"{log_prefix} Searching '{query[:50]}' (target {criteria.target_result_count}, "
            f"adaptive={criteria.adaptive})",
            query=query[:50],
            target=criteria.target_result_count,
            max_pages=criteria.max_pages,
            max_quota_units=criteria.max_quota_units
        )

        run = self.controller.run_adaptive if criteria.adaptive else self.controller.run
        try:
            with performance_timer(f"search '{query[:30]}'", threshold_ms=config.SLOW_OPERATION_THRESHOLD_MS):
                session = await run(query, criteria, cancel_event=cancel_event, request_id=request_id)
        except InvalidQueryError as e:
            log.warning(f"{log_prefix} Query rejected: {e.message}", query=query[:50])
            await self.stats.record_search(0, 0, success=False)
            return self._failure_result(query, e, StopReason.INVALID_QUERY)

        result = self._build_result(session, criteria, start_time)

        if result.success and result.videos and result.error is None and criteria.use_cache and \
                session.stopped_reason is not StopReason.CANCELLED:
            await self.cache.put(cache_key, result)

        await self.stats.record_search(len(result.videos), session.quota_units_used, success=result.success)
        log.info(
            f"{log_prefix} Search finished: {len(result.videos)} videos, "
            f"{session.quota_units_used} quota units, {session.stopped_reason.value}",
            videos=len(result.videos),
            quota_units_used=session.quota_units_used,
            stopped_reason=session.stopped_reason.value,
            success=result.success
        )
        return result

    def _build_result(self, session: SearchSession, criteria: FilterCriteria,
                      start_time: float) -> SearchResult:
        ranked = rank(session.accumulated.values(), criteria.sort_key)
        videos = ranked[:criteria.target_result_count]
        success = session.stopped_reason is not StopReason.QUOTA_EXCEEDED
        # Transient errors end pagination early and are reported with success=True
        error = session.error if isinstance(session.error, AppBaseError) else None

        metadata = SearchMetadata(
            pages_fetched=session.pages_fetched,
            total_candidates_seen=session.total_candidates_seen,
            quota_units_used=session.quota_units_used,
            stopped_reason=session.stopped_reason,
            success_rate=round(session.success_rate, 4),
            adaptive_strategy=session.adaptive_strategy,
            enrichment_failures=len(session.enrichment_failures),
            quarantined=len(session.quarantined_ids),
            total_accepted=len(ranked),
            processing_time_ms=round((time.monotonic() - start_time) * 1000, 2),
            quality=summarize_quality(videos),
        )
        return SearchResult(
            success=success,
            query=session.query,
            videos=videos,
            metadata=metadata,
            error=error.message if error else None,
            error_code=error.error_code if error else None,
        )

    @staticmethod
    def _failure_result(query: str, error: Exception, reason: StopReason) -> SearchResult:
        if isinstance(error, AppBaseError):
            message, code = error.message, error.error_code
        else:
            message, code = f"{type(error).__name__}: {error}", "INTERNAL_ERROR"
        return SearchResult(
            success=False,
            query=query,
            videos=[],
            metadata=SearchMetadata(stopped_reason=reason),
            error=message,
            error_code=code,
        )

    async def quick_search(self, query: str, max_results: int = 20) -> SearchResult:
        """Small, adaptive search with a relaxed view threshold."""
        return await self.search(query, target_result_count=max_results, **QUICK_SEARCH_OVERRIDES)

    async def high_quality_search(self, query: str, max_results: int = 40) -> SearchResult:
        """Adaptive search with strict engagement thresholds."""
        return await self.search(query, target_result_count=max_results, **HIGH_QUALITY_OVERRIDES)

    async def bulk_search(self, queries: Iterable[str], criteria: Optional[FilterCriteria] = None,
                          concurrency: Optional[int] = None, **overrides: Any) -> BulkSearchResult:
        """Run several searches, at most ``concurrency`` at a time.

        Queries run in batches; a fixed delay separates consecutive batches.
        An unexpected failure in one query becomes a failed SearchResult and
        does not affect the others.
        """
        criteria = self._build_criteria(criteria, overrides)
        query_list: List[str] = list(queries)
        limit = max(1, concurrency or self.bulk_concurrency)
        results: List[SearchResult] = []

        logger.info(f"Bulk search started: {len(query_list)} queries, concurrency {limit}",
                    queries=len(query_list), concurrency=limit)

        for batch_index, batch in enumerate(chunked(query_list, limit)):
            if batch_index > 0 and self.bulk_batch_delay_ms > 0:
                await asyncio.sleep(self.bulk_batch_delay_ms / 1000.0)

            outcomes = await asyncio.gather(
                *(self.search(query, criteria) for query in batch),
                return_exceptions=True
            )
            for query, outcome in zip(batch, outcomes):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    if isinstance(outcome, APIConfigurationError):
                        logger.error(f"Bulk search aborted on configuration error: {outcome}", exc_info=outcome)
                        raise outcome
                    logger.error(f"Unexpected error in bulk search for '{str(query)[:50]}': {outcome}",
                                 exc_info=outcome, query=str(query)[:50])
                    await self.stats.record_search(0, 0, success=False)
                    results.append(self._failure_result(str(query), outcome, StopReason.ERROR))
                else:
                    results.append(outcome)

        successful = [r for r in results if r.success]
        total_videos = sum(len(r.videos) for r in successful)
        summary = BulkSearchSummary(
            total_queries=len(query_list),
            successful_queries=len(successful),
            total_videos=total_videos,
            average_videos_per_query=round(total_videos / len(successful), 2) if successful else 0.0,
        )
        logger.info(
            f"Bulk search finished: {summary.successful_queries}/{summary.total_queries} succeeded, "
            f"{summary.total_videos} videos",
            **summary.model_dump()
        )
        return BulkSearchResult(results=results, summary=summary)

    async def get_stats(self) -> StatsSnapshot:
        return await self.stats.snapshot()

    async def clear_cache(self) -> int:
        """Drop every cached result. Returns the number of entries removed."""
        removed = await self.cache.clear()
        logger.info(f"Result cache cleared ({removed} entries)", removed=removed)
        return removed
