#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Playability and quality predicates applied to enriched video records.

Both predicates are pure: they read a DetailedItem and FilterCriteria and
return a FilterDecision without touching either.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from models import DetailedItem, FilterCriteria, PrivacyStatus

# Rejection reason codes
NOT_EMBEDDABLE = "not_embeddable"
NOT_PUBLIC = "not_public"
DURATION_OUT_OF_RANGE = "duration_out_of_range"
REGION_BLOCKED = "region_blocked"
REGION_NOT_ALLOWED = "region_not_allowed"
LOW_VIEW_COUNT = "low_view_count"
LOW_LIKE_COUNT = "low_like_count"
LOW_ENGAGEMENT = "low_engagement"


@dataclass(frozen=True)
class FilterDecision:
    passed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.passed


ACCEPTED = FilterDecision(True)


def engagement_rate(item: DetailedItem) -> float:
    """(likes + comments) / views, 0.0 when the video has no views."""
    return item.engagement_rate


def check_playability(item: DetailedItem, criteria: FilterCriteria) -> FilterDecision:
    """Can the video be embedded and played in the target region?"""
    if criteria.require_embeddable and not item.embeddable:
        return FilterDecision(False, NOT_EMBEDDABLE)
    if criteria.require_public and item.privacy_status is not PrivacyStatus.PUBLIC:
        return FilterDecision(False, NOT_PUBLIC)
    if not criteria.min_duration_seconds <= item.duration_seconds <= criteria.max_duration_seconds:
        return FilterDecision(False, DURATION_OUT_OF_RANGE)

    region = criteria.target_region
    if region is not None:
        restriction = item.region_restriction
        if region in restriction.blocked:
            return FilterDecision(False, REGION_BLOCKED)
        if restriction.allowed and region not in restriction.allowed:
            return FilterDecision(False, REGION_NOT_ALLOWED)

    return ACCEPTED


def check_quality(item: DetailedItem, criteria: FilterCriteria) -> FilterDecision:
    """Does the video meet the view, like and engagement thresholds?"""
    if item.view_count < criteria.min_view_count:
        return FilterDecision(False, LOW_VIEW_COUNT)
    if item.like_count < criteria.min_like_count:
        return FilterDecision(False, LOW_LIKE_COUNT)
    if item.engagement_rate < criteria.min_engagement_rate:
        return FilterDecision(False, LOW_ENGAGEMENT)
    return ACCEPTED


def evaluate_item(item: DetailedItem, criteria: FilterCriteria) -> FilterDecision:
    """Accept an item iff it is both playable and of sufficient quality."""
    decision = check_playability(item, criteria)
    if not decision.passed:
        return decision
    return check_quality(item, criteria)


def filter_items(items: Iterable[DetailedItem],
                 criteria: FilterCriteria) -> Tuple[List[DetailedItem], Counter]:
    """Split ``items`` into accepted records (input order kept) and rejection counts."""
    accepted: List[DetailedItem] = []
    rejections: Counter = Counter()
    for item in items:
        decision = evaluate_item(item, criteria)
        if decision.passed:
            accepted.append(item)
        else:
            rejections[decision.reason] += 1
    return accepted, rejections
