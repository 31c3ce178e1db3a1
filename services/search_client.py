#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Single-page access to the search.list endpoint.
"""

from typing import Any, Dict, List, Optional

from config import config
from exceptions import InvalidQueryError
from logging_config import StructuredLogger
from models import Candidate, FilterCriteria, SearchPage
from services.youtube_api import YouTubeAPIBase

logger = StructuredLogger(__name__)


class SearchClient(YouTubeAPIBase):
    """Fetches one page of short-video candidates per call.

    The page size is a fixed policy (the endpoint maximum) so each quota
    unit buys as many candidates as possible. Retrying is left to the
    caller.
    """

    def __init__(self, *args, page_size: int = config.SEARCH_PAGE_SIZE,
                 quota_cost: int = config.SEARCH_QUOTA_COST, **kwargs):
        super().__init__(*args, **kwargs)
        self.page_size = page_size
        self.quota_cost = quota_cost

    def _build_params(self, query: str, criteria: FilterCriteria,
                      continuation_token: Optional[str]) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "part": "id",
            "type": "video",
            "q": query,
            "maxResults": self.page_size,
            "videoDuration": config.SEARCH_DURATION_BUCKET,
            "order": config.SEARCH_ORDER_HINT,
            "fields": "items(id/videoId),nextPageToken,pageInfo/totalResults",
        }
        if criteria.target_region:
            params["regionCode"] = criteria.target_region
        if config.SEARCH_RELEVANCE_LANGUAGE:
            params["relevanceLanguage"] = config.SEARCH_RELEVANCE_LANGUAGE
        if config.SEARCH_SAFE_SEARCH:
            params["safeSearch"] = config.SEARCH_SAFE_SEARCH
        if criteria.require_embeddable:
            params["videoEmbeddable"] = "true"
        if continuation_token:
            params["pageToken"] = continuation_token
        return params

    async def fetch_page(self, query: str, criteria: FilterCriteria,
                         continuation_token: Optional[str] = None) -> SearchPage:
        """Request one page of candidates.

        Args:
            query: Non-empty search terms.
            criteria: Supplies the target region and embeddable requirement.
            continuation_token: Token from the previous page, None for the first.

        Returns:
            SearchPage: Candidate ids in response order (duplicates within the
            page removed), the next token and the quota charged.

        Raises:
            InvalidQueryError: For an empty query (no call is made) or a 4xx.
            TransientAPIError: On timeouts, network errors, 429 and 5xx.
            QuotaExceededError: When the API reports exhausted quota.
        """
        cleaned = query.strip() if isinstance(query, str) else ""
        if not cleaned:
            raise InvalidQueryError("Search query must not be empty")

        request = self.youtube.search().list(**self._build_params(cleaned, criteria, continuation_token))
        response = await self._execute_api_call(request, cost=self.quota_cost, operation="search.list")

        seen = set()
        candidates: List[Candidate] = []
        for item in response.get("items", []):
            video_id = (item.get("id") or {}).get("videoId")
            if video_id and video_id not in seen:
                seen.add(video_id)
                candidates.append(Candidate(video_id))

        next_token = response.get("nextPageToken") or None
        estimated_total = int((response.get("pageInfo") or {}).get("totalResults", 0) or 0)

        logger.debug(
            f"Search page fetched {len(candidates)} candidates for '{cleaned[:50]}'",
            query=cleaned[:50],
            candidates=len(candidates),
            has_next=next_token is not None,
            estimated_total=estimated_total
        )
        return SearchPage(
            candidates=candidates,
            next_token=next_token,
            quota_cost=self.quota_cost,
            estimated_total=estimated_total,
        )
