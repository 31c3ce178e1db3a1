#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Batch enrichment of candidate ids through the videos.list endpoint.
"""

from typing import Any, Dict, List, Optional, Sequence

from config import config
from exceptions import InvalidQueryError, PartialBatchFailure, TransientAPIError
from logging_config import StructuredLogger
from models import DetailedItem, EnrichmentResult
from services.youtube_api import YouTubeAPIBase
from utils import RetryPolicy, chunked, execute_with_retry

logger = StructuredLogger(__name__)

_DETAIL_FIELDS = (
    "items(id,"
    "snippet(title,channelId,channelTitle,publishedAt),"
    "contentDetails(duration,regionRestriction),"
    "status(privacyStatus,embeddable),"
    "statistics(viewCount,likeCount,commentCount))"
)


class DetailEnricher(YouTubeAPIBase):
    """Turns candidate ids into validated DetailedItem records.

    Ids are requested in fixed-size batches. A batch that keeps failing
    with a transient error is dropped and reported as a
    PartialBatchFailure; the remaining batches still run. Quota exhaustion
    is fatal and propagates.
    """

    def __init__(self, *args, batch_size: int = config.DETAIL_BATCH_SIZE,
                 parts: Sequence[str] = config.DETAIL_PARTS,
                 retry_policy: Optional[RetryPolicy] = None, **kwargs):
        super().__init__(*args, **kwargs)
        if not 0 < batch_size <= 50:
            raise ValueError("batch_size must be between 1 and 50")
        self.batch_size = batch_size
        self.parts = tuple(parts)
        self.batch_cost = config.DETAIL_BASE_QUOTA_COST + config.DETAIL_PART_QUOTA_COST * len(self.parts)
        self.retry_policy = retry_policy or RetryPolicy.for_enrichment()

    async def _fetch_batch(self, batch_ids: List[str]) -> List[Dict[str, Any]]:
        request = self.youtube.videos().list(
            part=",".join(self.parts),
            id=",".join(batch_ids),
            fields=_DETAIL_FIELDS,
            maxResults=len(batch_ids),
        )
        response = await self._execute_api_call(request, cost=self.batch_cost, operation="videos.list")
        return response.get("items") or []

    async def enrich(self, candidate_ids: Sequence[str]) -> EnrichmentResult:
        """Fetch details for ``candidate_ids``.

        Ids the API does not return (deleted or private videos) are skipped
        silently. Records that fail validation are quarantined.

        Returns:
            EnrichmentResult: Items in request order, the quota charged for
            successful batches, dropped batches and quarantined ids.

        Raises:
            QuotaExceededError: When the API reports exhausted quota.
        """
        unique_ids = list(dict.fromkeys(vid for vid in candidate_ids if vid))
        result = EnrichmentResult()
        if not unique_ids:
            return result

        by_id: Dict[str, DetailedItem] = {}
        for batch_index, batch_ids in enumerate(chunked(unique_ids, self.batch_size)):
            try:
                raw_items = await execute_with_retry(
                    self._fetch_batch, batch_ids,
                    policy=self.retry_policy,
                    retry_on=(TransientAPIError,),
                    operation_name=f"videos.list batch {batch_index}"
                )
            except (TransientAPIError, InvalidQueryError) as e:
                failure = PartialBatchFailure(batch_index, batch_ids, e)
                result.failures.append(failure)
                logger.warning(
                    f"Dropping detail batch {batch_index} ({len(batch_ids)} ids): {e}",
                    batch_index=batch_index,
                    dropped=len(batch_ids),
                    error_type=type(e).__name__
                )
                continue

            result.quota_cost += self.batch_cost
            requested = set(batch_ids)
            for raw in raw_items:
                raw_id = raw.get("id") if isinstance(raw, dict) else None
                if isinstance(raw_id, str) and raw_id in by_id:
                    continue
                try:
                    item = DetailedItem.from_api_response(raw)
                except (ValueError, TypeError) as e:
                    # pydantic's ValidationError is a ValueError too
                    result.quarantined_ids.append(str(raw_id))
                    logger.warning(f"Quarantined malformed video record {raw_id}: {e}", video_id=raw_id)
                    continue
                if item.id not in requested:
                    logger.debug(f"Ignoring unrequested video {item.id} in detail response")
                    continue
                by_id[item.id] = item

        result.items = [by_id[vid] for vid in unique_ids if vid in by_id]
        logger.debug(
            f"Enriched {len(result.items)}/{len(unique_ids)} candidates",
            enriched=len(result.items),
            requested=len(unique_ids),
            failed_batches=len(result.failures),
            quarantined=len(result.quarantined_ids),
            quota_cost=result.quota_cost
        )
        return result
