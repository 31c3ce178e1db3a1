#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pagination control loop for one search session.

Each iteration fetches a search page, enriches its candidates, filters them
and merges the accepted records, then evaluates the stop conditions in a
fixed priority order. The adaptive variant runs a one-page probe first and
derives the criteria for the rest of the session from the probe's yield.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from config import config
from exceptions import InvalidQueryError, QuotaExceededError, TransientAPIError
from logging_config import StructuredLogger
from models import (AdaptiveStrategy, FilterCriteria, SearchSession,
                    SessionState, StopReason)
from services.detail_enricher import DetailEnricher
from services.filters import filter_items
from services.ranking import merge_unique
from services.search_client import SearchClient
from utils import RetryPolicy, execute_with_retry

logger = StructuredLogger(__name__)

# Probe outcomes after which a full run cannot make progress
_TERMINAL_PROBE_REASONS = frozenset({
    StopReason.NO_MORE_PAGES,
    StopReason.QUOTA_EXCEEDED,
    StopReason.QUOTA_GUARD,
    StopReason.CANCELLED,
})


@dataclass(frozen=True)
class AdaptivePolicy:
    """Thresholds used to turn a probe's success rate into full-run criteria."""

    probe_target: int = 10
    high_yield_rate: float = 0.4
    low_yield_rate: float = 0.2
    relax_factor: float = 0.7
    min_view_count_floor: int = 500
    min_engagement_floor: float = 0.005
    fast_max_pages: int = 3
    max_pages_ceiling: int = 6

    @classmethod
    def from_config(cls) -> "AdaptivePolicy":
        return cls(
            probe_target=config.ADAPTIVE_PROBE_TARGET,
            high_yield_rate=config.ADAPTIVE_HIGH_YIELD_RATE,
            low_yield_rate=config.ADAPTIVE_LOW_YIELD_RATE,
            relax_factor=config.ADAPTIVE_RELAX_FACTOR,
            min_view_count_floor=config.ADAPTIVE_MIN_VIEW_COUNT_FLOOR,
            min_engagement_floor=config.ADAPTIVE_MIN_ENGAGEMENT_FLOOR,
            fast_max_pages=config.ADAPTIVE_FAST_MAX_PAGES,
            max_pages_ceiling=config.ADAPTIVE_MAX_PAGES_CEILING,
        )

    def probe_criteria(self, criteria: FilterCriteria) -> FilterCriteria:
        return criteria.with_overrides(
            target_result_count=min(self.probe_target, criteria.target_result_count),
            max_pages=1,
        )

    def derive(self, criteria: FilterCriteria, success_rate: float) -> Tuple[AdaptiveStrategy, FilterCriteria]:
        """Pick a strategy for the observed ``success_rate`` and adjust ``criteria``.

        Relaxed thresholds never end up above the caller's original values,
        even when the caller's value is already below the floor.
        """
        if success_rate >= self.high_yield_rate:
            return AdaptiveStrategy.FAST, criteria.with_overrides(
                max_pages=min(self.fast_max_pages, criteria.max_pages),
            )

        if success_rate >= self.low_yield_rate:
            return AdaptiveStrategy.STANDARD, criteria

        relaxed_views = max(self.min_view_count_floor, int(criteria.min_view_count * self.relax_factor))
        relaxed_engagement = max(self.min_engagement_floor, criteria.min_engagement_rate * self.relax_factor)
        return AdaptiveStrategy.RELAXED, criteria.with_overrides(
            min_view_count=min(criteria.min_view_count, relaxed_views),
            min_engagement_rate=min(criteria.min_engagement_rate, relaxed_engagement),
            max_pages=max(criteria.max_pages, min(self.max_pages_ceiling, criteria.max_pages + 1)),
        )


class PaginationController:
    """Drives fetch, enrich, filter, merge and evaluate over one SearchSession.

    Pages within a session are strictly sequential because each request
    needs the previous page's continuation token. Cancellation is checked
    only between iterations.
    """

    def __init__(self, search_client: SearchClient, enricher: DetailEnricher,
                 page_retry_policy: Optional[RetryPolicy] = None,
                 stagnation_limit: int = config.STAGNATION_PAGE_LIMIT,
                 adaptive_policy: Optional[AdaptivePolicy] = None):
        self.search_client = search_client
        self.enricher = enricher
        self.page_retry_policy = page_retry_policy or RetryPolicy.for_pages()
        self.stagnation_limit = stagnation_limit
        self.adaptive_policy = adaptive_policy or AdaptivePolicy.from_config()

    @property
    def iteration_cost(self) -> int:
        """Nominal quota for one page plus enrichment of a full page of candidates."""
        batches = math.ceil(self.search_client.page_size / self.enricher.batch_size)
        return self.search_client.quota_cost + self.enricher.batch_cost * batches

    def evaluate(self, session: SearchSession) -> Optional[StopReason]:
        """Return the first stop condition that holds, or None to continue."""
        criteria = session.criteria
        accepted = len(session.accumulated)

        if accepted >= criteria.target_result_count * criteria.early_stop_threshold:
            return StopReason.TARGET_ACHIEVED
        if session.pages_fetched >= 2 and session.success_rate < criteria.min_acceptable_success_rate:
            return StopReason.LOW_SUCCESS_RATE
        if session.quota_units_used + self.iteration_cost > criteria.max_quota_units:
            return StopReason.QUOTA_GUARD
        if session.pages_fetched > 0 and session.continuation_token is None:
            return StopReason.NO_MORE_PAGES
        if session.consecutive_empty_pages >= self.stagnation_limit:
            return StopReason.STAGNATION
        if session.pages_fetched >= criteria.max_pages:
            return StopReason.PAGE_BUDGET
        return None

    async def run(self, query: str, criteria: FilterCriteria,
                  cancel_event: Optional[asyncio.Event] = None,
                  request_id: Optional[str] = None) -> SearchSession:
        """Run the standard loop until a stop condition holds.

        Returns:
            SearchSession: The stopped session with accumulated results.

        Raises:
            InvalidQueryError: The query was rejected. No partial results.
        """
        session = SearchSession(query=query, criteria=criteria)
        await self._drive(session, cancel_event, request_id)
        return session

    async def run_adaptive(self, query: str, criteria: FilterCriteria,
                           cancel_event: Optional[asyncio.Event] = None,
                           request_id: Optional[str] = None) -> SearchSession:
        """Probe with one page, derive criteria from its yield, then continue.

        The probe's results, quota and continuation token stay in the session
        so the full run picks up where the probe left off.
        """
        log_prefix = f"[REQ-{request_id}] " if request_id else ""
        session = SearchSession(query=query, criteria=self.adaptive_policy.probe_criteria(criteria))
        await self._drive(session, cancel_event, request_id)

        if session.stopped_reason in _TERMINAL_PROBE_REASONS:
            logger.info(
                f"{log_prefix}Adaptive probe ended the session: {session.stopped_reason.value}",
                stopped_reason=session.stopped_reason.value
            )
            session.criteria = criteria
            return session

        rate = session.success_rate
        strategy, derived = self.adaptive_policy.derive(criteria, rate)
        session.adaptive_strategy = strategy
        session.criteria = derived
        session.stopped_reason = None
        session.state = SessionState.EVALUATING
        logger.info(
            f"{log_prefix}Adaptive probe success rate {rate:.2f}, strategy '{strategy.value}'",
            success_rate=round(rate, 4),
            strategy=strategy.value,
            max_pages=derived.max_pages,
            min_view_count=derived.min_view_count,
            min_engagement_rate=derived.min_engagement_rate
        )

        reason = self.evaluate(session)
        if reason is not None:
            session.stop(reason)
        else:
            await self._drive(session, cancel_event, request_id)
        return session

    async def _drive(self, session: SearchSession, cancel_event: Optional[asyncio.Event],
                     request_id: Optional[str]) -> None:
        log_prefix = f"[REQ-{request_id}] " if request_id else ""

        if session.pages_fetched == 0 and self.iteration_cost > session.criteria.max_quota_units:
            logger.warning(
                f"{log_prefix}Quota budget {session.criteria.max_quota_units} cannot cover one page "
                f"({self.iteration_cost} units)",
                max_quota_units=session.criteria.max_quota_units,
                iteration_cost=self.iteration_cost
            )
            session.stop(StopReason.QUOTA_GUARD)
            return

        while not session.stopped:
            if cancel_event is not None and cancel_event.is_set():
                session.stop(StopReason.CANCELLED)
                logger.info(f"{log_prefix}Search cancelled after {session.pages_fetched} page(s)")
                break

            if not await self._run_iteration(session, log_prefix):
                break

            reason = self.evaluate(session)
            if reason is not None:
                session.stop(reason)

        logger.info(
            f"{log_prefix}Pagination stopped: {session.stopped_reason.value}",
            stopped_reason=session.stopped_reason.value,
            pages_fetched=session.pages_fetched,
            accepted=len(session.accumulated),
            candidates=session.total_candidates_seen,
            quota_units_used=session.quota_units_used
        )

    async def _run_iteration(self, session: SearchSession, log_prefix: str) -> bool:
        """One fetch-enrich-filter-merge pass. Returns False if the session stopped."""
        session.state = SessionState.FETCHING
        try:
            page = await execute_with_retry(
                self.search_client.fetch_page,
                session.query, session.criteria, session.continuation_token,
                policy=self.page_retry_policy,
                retry_on=(TransientAPIError,),
                operation_name="search.list"
            )
        except TransientAPIError as e:
            logger.warning(f"{log_prefix}Search page unavailable after retries, treating as exhausted: {e}")
            session.error = e
            session.stop(StopReason.NO_MORE_PAGES)
            return False
        except QuotaExceededError as e:
            session.error = e
            session.stop(StopReason.QUOTA_EXCEEDED)
            return False
        except InvalidQueryError as e:
            session.error = e
            session.stop(StopReason.INVALID_QUERY)
            raise

        session.pages_fetched += 1
        session.quota_units_used += page.quota_cost
        session.total_candidates_seen += len(page.candidates)
        session.continuation_token = page.next_token

        session.state = SessionState.ENRICHING
        try:
            enrichment = await self.enricher.enrich([c.id for c in page.candidates])
        except QuotaExceededError as e:
            session.error = e
            session.stop(StopReason.QUOTA_EXCEEDED)
            return False
        session.quota_units_used += enrichment.quota_cost
        session.enrichment_failures.extend(enrichment.failures)
        session.quarantined_ids.extend(enrichment.quarantined_ids)

        session.state = SessionState.FILTERING
        accepted, rejections = filter_items(enrichment.items, session.criteria)
        before = len(session.accumulated)
        session.accumulated = merge_unique(session.accumulated, accepted)
        new_items = len(session.accumulated) - before
        session.consecutive_empty_pages = 0 if new_items else session.consecutive_empty_pages + 1

        session.state = SessionState.EVALUATING
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"{log_prefix}Page {session.pages_fetched}: {len(page.candidates)} candidates, "
                f"{len(enrichment.items)} enriched, {new_items} new accepted",
                page=session.pages_fetched,
                accepted_total=len(session.accumulated),
                rejections=dict(rejections),
                quota_units_used=session.quota_units_used
            )
        return True
