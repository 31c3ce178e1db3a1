#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Pydantic models and Dataclasses for Shortsieve search requests, results,
and the transient state of one search session.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

import isodate
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from exceptions import PartialBatchFailure

# Reference point for converting year/month durations to seconds
_DURATION_ANCHOR = datetime(2000, 1, 1)


def _parse_count(value: Any, field_name: str, video_id: str) -> int:
    """Coerce an API statistics count (a digit string) to int.

    Raises:
        ValueError: For null, negative, boolean or non-numeric values.
    """
    if isinstance(value, bool):
        raise ValueError(f"video {video_id} has non-numeric {field_name}: {value!r}")
    if isinstance(value, int):
        count = value
    elif isinstance(value, str) and value.strip().isdigit():
        count = int(value.strip())
    else:
        raise ValueError(f"video {video_id} has non-numeric {field_name}: {value!r}")
    if count < 0:
        raise ValueError(f"video {video_id} has negative {field_name}: {count}")
    return count


class SortKey(str, Enum):
    """Ranking keys accepted by FilterCriteria.sort_key."""

    ENGAGEMENT = "engagement"
    VIEW_COUNT = "viewCount"
    LIKE_COUNT = "likeCount"
    PUBLISHED_AT = "publishedAt"


class PrivacyStatus(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    UNLISTED = "unlisted"


class SessionState(str, Enum):
    """States of the pagination loop for one search session."""

    INIT = "init"
    FETCHING = "fetching"
    ENRICHING = "enriching"
    FILTERING = "filtering"
    EVALUATING = "evaluating"
    STOPPED = "stopped"


class StopReason(str, Enum):
    """Why pagination ended. Present on every terminal result."""

    TARGET_ACHIEVED = "target_achieved"
    LOW_SUCCESS_RATE = "low_success_rate"
    QUOTA_GUARD = "quota_guard"
    NO_MORE_PAGES = "no_more_pages"
    STAGNATION = "stagnation"
    PAGE_BUDGET = "page_budget"
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_QUERY = "invalid_query"
    CANCELLED = "cancelled"
    ERROR = "error"  # Unexpected failure outside the taxonomy


class AdaptiveStrategy(str, Enum):
    """Strategy chosen from the success rate observed by the adaptive probe."""

    FAST = "fast"
    STANDARD = "standard"
    RELAXED = "relaxed"


class RegionRestriction(BaseModel):
    """Region codes a video is blocked in or exclusively allowed in."""

    model_config = ConfigDict(frozen=True)

    blocked: FrozenSet[str] = frozenset()
    allowed: FrozenSet[str] = frozenset()

    @field_validator("blocked", "allowed", mode="before")
    @classmethod
    def upper_case_regions(cls, v: Any) -> Any:
        if v is None:
            return frozenset()
        if isinstance(v, (str, bytes)) or not isinstance(v, (list, tuple, set, frozenset)):
            raise ValueError(f"region list must be a list of codes, got {type(v).__name__}")
        return frozenset(str(code).upper() for code in v)


class FilterCriteria(BaseModel):
    """Options for one search call.

    All defaults live here; the object is validated once at construction and
    is immutable afterwards. Use ``with_overrides`` to derive a new,
    re-validated copy.
    """

    model_config = ConfigDict(frozen=True)

    min_duration_seconds: int = Field(5, ge=0, description="Shortest accepted video, in seconds.")
    max_duration_seconds: int = Field(60, ge=0, description="Longest accepted video, in seconds.")
    min_view_count: int = Field(1000, ge=0)
    min_like_count: int = Field(10, ge=0)
    min_engagement_rate: float = Field(0.01, ge=0, description="(likes + comments) / views.")
    require_embeddable: bool = True
    require_public: bool = True
    target_region: Optional[str] = Field("KR", description="Region the videos must be playable in. None disables region checks.")
    sort_key: SortKey = SortKey.ENGAGEMENT
    target_result_count: int = Field(40, ge=1)
    max_pages: int = Field(5, ge=1)
    max_quota_units: int = Field(500, ge=0)
    min_acceptable_success_rate: float = Field(0.3, ge=0, le=1)
    early_stop_threshold: float = Field(0.8, gt=0, le=1)
    use_cache: bool = True
    adaptive: bool = Field(False, description="Run a one-page probe first and derive the full-run criteria from its yield.")

    @field_validator("target_region")
    @classmethod
    def normalize_region(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip().upper()
        if len(v) != 2 or not v.isalpha():
            raise ValueError(f"target_region must be a two-letter region code, got {v!r}")
        return v

    @model_validator(mode="after")
    def check_duration_bounds(self) -> "FilterCriteria":
        if self.min_duration_seconds > self.max_duration_seconds:
            raise ValueError(
                f"min_duration_seconds ({self.min_duration_seconds}) must not exceed "
                f"max_duration_seconds ({self.max_duration_seconds})"
            )
        return self

    def with_overrides(self, **updates: Any) -> "FilterCriteria":
        """Return a validated copy with ``updates`` applied."""
        if not updates:
            return self
        return FilterCriteria.model_validate({**self.model_dump(), **updates})


class DetailedItem(BaseModel):
    """A fully enriched video record as returned by videos.list."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    channel_id: str = ""
    channel_title: str = ""
    published_at: Optional[datetime] = None
    duration_seconds: int = Field(..., ge=0)
    view_count: int = Field(..., ge=0)
    like_count: int = Field(0, ge=0)
    comment_count: int = Field(0, ge=0)
    embeddable: bool = False
    privacy_status: PrivacyStatus
    region_restriction: RegionRestriction = Field(default_factory=RegionRestriction)

    @classmethod
    def from_api_response(cls, item: Dict[str, Any]) -> "DetailedItem":
        """Build a record from a videos.list resource.

        Like and comment counts may be hidden by the uploader and default to
        zero. Everything else the filters rely on must be present.

        Raises:
            ValueError: If the resource is missing required fields or has an
                unparseable duration.
        """
        if not isinstance(item, dict):
            raise ValueError(f"video resource is not an object: {type(item).__name__}")
        video_id = item.get("id")
        if not video_id or not isinstance(video_id, str):
            raise ValueError("video resource has no id")

        snippet = item.get("snippet") or {}
        content = item.get("contentDetails") or {}
        status = item.get("status")
        stats = item.get("statistics")
        if not isinstance(snippet, dict) or not isinstance(content, dict):
            raise ValueError(f"video {video_id} has malformed snippet or contentDetails")
        if not isinstance(status, dict) or "privacyStatus" not in status:
            raise ValueError(f"video {video_id} has no status.privacyStatus")
        if not isinstance(stats, dict) or "viewCount" not in stats:
            raise ValueError(f"video {video_id} has no statistics.viewCount")

        raw_duration = content.get("duration")
        if not raw_duration or not isinstance(raw_duration, str):
            raise ValueError(f"video {video_id} has no valid contentDetails.duration: {raw_duration!r}")
        try:
            delta = isodate.parse_duration(raw_duration)
        except (isodate.ISO8601Error, ValueError, TypeError) as e:
            raise ValueError(f"video {video_id} has invalid duration {raw_duration!r}: {e}") from e
        if isinstance(delta, isodate.Duration):
            delta = delta.totimedelta(start=_DURATION_ANCHOR)

        restriction = content.get("regionRestriction") or {}
        if not isinstance(restriction, dict):
            raise ValueError(f"video {video_id} has malformed regionRestriction")

        return cls(
            id=video_id,
            title=snippet.get("title", ""),
            channel_id=snippet.get("channelId", ""),
            channel_title=snippet.get("channelTitle", ""),
            published_at=snippet.get("publishedAt") or None,
            duration_seconds=int(delta.total_seconds()),
            view_count=_parse_count(stats["viewCount"], "viewCount", video_id),
            like_count=_parse_count(stats.get("likeCount", 0), "likeCount", video_id),
            comment_count=_parse_count(stats.get("commentCount", 0), "commentCount", video_id),
            embeddable=bool(status.get("embeddable", False)),
            privacy_status=status["privacyStatus"],
            region_restriction=RegionRestriction(
                blocked=restriction.get("blocked"),
                allowed=restriction.get("allowed"),
            ),
        )

    @property
    def engagement_rate(self) -> float:
        """(likes + comments) / views, or 0.0 for a video with no views."""
        if self.view_count == 0:
            return 0.0
        return (self.like_count + self.comment_count) / self.view_count

    @property
    def quality_grade(self) -> str:
        """Letter grade combining engagement and reach."""
        rate, views = self.engagement_rate, self.view_count
        if rate >= 0.05 and views >= 100_000:
            return "A+"
        if rate >= 0.03 and views >= 50_000:
            return "A"
        if rate >= 0.02 and views >= 20_000:
            return "B+"
        if rate >= 0.01 and views >= 10_000:
            return "B"
        return "C"

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/shorts/{self.id}"


@dataclass(frozen=True)
class Candidate:
    """A bare video id from a search page, not yet enriched."""

    id: str


@dataclass
class SearchPage:
    """One search.list response reduced to what the pagination loop needs."""

    candidates: List[Candidate]
    next_token: Optional[str]
    quota_cost: int
    estimated_total: int = 0


@dataclass
class EnrichmentResult:
    """Output of DetailEnricher.enrich."""

    items: List[DetailedItem] = field(default_factory=list)
    quota_cost: int = 0
    failures: List[PartialBatchFailure] = field(default_factory=list)
    quarantined_ids: List[str] = field(default_factory=list)


@dataclass
class SearchSession:
    """Mutable state of one search call, owned by the pagination controller."""

    query: str
    criteria: FilterCriteria
    continuation_token: Optional[str] = None
    pages_fetched: int = 0
    total_candidates_seen: int = 0
    quota_units_used: int = 0
    accumulated: Dict[str, DetailedItem] = field(default_factory=dict)
    consecutive_empty_pages: int = 0
    state: SessionState = SessionState.INIT
    stopped_reason: Optional[StopReason] = None
    error: Optional[Exception] = None
    enrichment_failures: List[PartialBatchFailure] = field(default_factory=list)
    quarantined_ids: List[str] = field(default_factory=list)
    adaptive_strategy: Optional[AdaptiveStrategy] = None

    @property
    def success_rate(self) -> float:
        if self.total_candidates_seen == 0:
            return 0.0
        return len(self.accumulated) / self.total_candidates_seen

    @property
    def stopped(self) -> bool:
        return self.state is SessionState.STOPPED

    def stop(self, reason: StopReason) -> None:
        self.state = SessionState.STOPPED
        self.stopped_reason = reason


@dataclass
class CacheEntry:
    """A cached SearchResult. ``created_at`` is a time.monotonic() reading."""

    key: str
    value: Any
    created_at: float
    ttl_seconds: float

    def is_expired(self, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        return now - self.created_at >= self.ttl_seconds


class QualitySummary(BaseModel):
    """Aggregate quality figures for an accepted result set."""

    average_views: int = 0
    average_engagement: float = 0.0
    distribution: Dict[str, int] = Field(
        default_factory=lambda: {"premium": 0, "high": 0, "medium": 0, "standard": 0},
        description="Counts by engagement tier: premium >= 5%, high >= 3%, medium >= 2%, standard below.",
    )


class SearchMetadata(BaseModel):
    pages_fetched: int = 0
    total_candidates_seen: int = 0
    quota_units_used: int = 0
    stopped_reason: StopReason
    success_rate: float = 0.0
    adaptive_strategy: Optional[AdaptiveStrategy] = None
    enrichment_failures: int = Field(0, description="Detail batches dropped after retries.")
    quarantined: int = Field(0, description="Malformed detail records that were skipped.")
    total_accepted: int = Field(0, description="Accepted videos before the result was capped at the target count.")
    processing_time_ms: Optional[float] = None
    quality: QualitySummary = Field(default_factory=QualitySummary)


class SearchResult(BaseModel):
    """Public result of SearchService.search."""

    success: bool
    query: str
    videos: List[DetailedItem] = Field(default_factory=list, description="Ranked, deduplicated accepted videos.")
    metadata: SearchMetadata
    from_cache: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None


class BulkSearchSummary(BaseModel):
    total_queries: int
    successful_queries: int
    total_videos: int
    average_videos_per_query: float


class BulkSearchResult(BaseModel):
    results: List[SearchResult]
    summary: BulkSearchSummary


class StatsSnapshot(BaseModel):
    """Immutable view of the cumulative search counters."""

    model_config = ConfigDict(frozen=True)

    total_searches: int = 0
    failed_searches: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    total_videos_found: int = 0
    total_quota_units: int = 0
    cache_hit_rate: float = 0.0
    average_videos_per_search: float = 0.0
    efficiency: float = Field(0.0, description="Accepted videos per 100 quota units.")
