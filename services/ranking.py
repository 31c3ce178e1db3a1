#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Deduplication across pages and ranking of accepted videos.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping

from models import DetailedItem, QualitySummary, SortKey

_EPOCH_MIN = datetime.min.replace(tzinfo=timezone.utc)


def merge_unique(existing: Mapping[str, DetailedItem],
                 incoming: Iterable[DetailedItem]) -> Dict[str, DetailedItem]:
    """Union by id. The first record seen for an id wins.

    Returns a new dict; iteration order is the order of first appearance.
    """
    merged = dict(existing)
    for item in incoming:
        if item.id not in merged:
            merged[item.id] = item
    return merged


def _published_key(item: DetailedItem) -> datetime:
    published = item.published_at
    if published is None:
        return _EPOCH_MIN
    if published.tzinfo is None:
        return published.replace(tzinfo=timezone.utc)
    return published


_SORT_KEYS: Dict[SortKey, Callable[[DetailedItem], object]] = {
    SortKey.ENGAGEMENT: lambda item: item.engagement_rate,
    SortKey.VIEW_COUNT: lambda item: item.view_count,
    SortKey.LIKE_COUNT: lambda item: item.like_count,
    SortKey.PUBLISHED_AT: _published_key,
}


def rank(items: Iterable[DetailedItem], sort_key: SortKey) -> List[DetailedItem]:
    """Sort descending by ``sort_key``. Equal keys keep their input order."""
    # sorted() stays stable with reverse=True
    return sorted(items, key=_SORT_KEYS[SortKey(sort_key)], reverse=True)


def summarize_quality(items: List[DetailedItem]) -> QualitySummary:
    """Average reach and engagement plus the engagement tier distribution."""
    if not items:
        return QualitySummary()

    distribution = {"premium": 0, "high": 0, "medium": 0, "standard": 0}
    for item in items:
        rate = item.engagement_rate
        if rate >= 0.05:
            distribution["premium"] += 1
        elif rate >= 0.03:
            distribution["high"] += 1
        elif rate >= 0.02:
            distribution["medium"] += 1
        else:
            distribution["standard"] += 1

    return QualitySummary(
        average_views=round(sum(item.view_count for item in items) / len(items)),
        average_engagement=round(sum(item.engagement_rate for item in items) / len(items), 4),
        distribution=distribution,
    )
