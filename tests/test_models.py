"""
Tests for the data models: criteria validation and detail record parsing.
"""
import unittest
import sys
import os
from datetime import datetime, timezone

from pydantic import ValidationError

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import (CacheEntry, DetailedItem, FilterCriteria, PrivacyStatus,
                    SearchSession, SortKey, StopReason, SessionState)
from fake_youtube import video_resource


class TestFilterCriteria(unittest.TestCase):
    """Test cases for FilterCriteria."""

    def test_defaults(self):
        """Defaults are centralized on the model."""
        criteria = FilterCriteria()
        self.assertEqual(criteria.min_duration_seconds, 5)
        self.assertEqual(criteria.max_duration_seconds, 60)
        self.assertEqual(criteria.min_view_count, 1000)
        self.assertEqual(criteria.target_result_count, 40)
        self.assertEqual(criteria.max_quota_units, 500)
        self.assertEqual(criteria.early_stop_threshold, 0.8)
        self.assertEqual(criteria.sort_key, SortKey.ENGAGEMENT)
        self.assertEqual(criteria.target_region, "KR")

    def test_min_duration_must_not_exceed_max(self):
        """Inverted duration bounds are rejected at construction."""
        with self.assertRaises(ValidationError):
            FilterCriteria(min_duration_seconds=61, max_duration_seconds=60)

    def test_negative_thresholds_rejected(self):
        """Thresholds must be non-negative."""
        for field in ("min_view_count", "min_like_count", "min_engagement_rate", "max_quota_units"):
            with self.subTest(field=field):
                with self.assertRaises(ValueError):
                    FilterCriteria(**{field: -1})

    def test_is_immutable(self):
        """Criteria cannot be changed after construction."""
        criteria = FilterCriteria()
        with self.assertRaises(ValidationError):
            criteria.min_view_count = 5

    def test_with_overrides_revalidates(self):
        """with_overrides returns a new validated copy."""
        criteria = FilterCriteria()
        updated = criteria.with_overrides(min_view_count=200, sort_key="viewCount")

        self.assertEqual(updated.min_view_count, 200)
        self.assertEqual(updated.sort_key, SortKey.VIEW_COUNT)
        self.assertEqual(criteria.min_view_count, 1000)
        with self.assertRaises(ValidationError):
            criteria.with_overrides(min_duration_seconds=100)

    def test_region_normalized(self):
        """Region codes are upper-cased; malformed codes are rejected."""
        self.assertEqual(FilterCriteria(target_region="us").target_region, "US")
        with self.assertRaises(ValidationError):
            FilterCriteria(target_region="Korea")


class TestDetailedItem(unittest.TestCase):
    """Test cases for DetailedItem.from_api_response."""

    def test_parses_full_record(self):
        """All fields are read from the four parts."""
        raw = video_resource("abc", views=2500, likes=100, comments=25, duration="PT1M5S",
                             blocked=["de"], published="2024-03-01T12:30:00Z")

        item = DetailedItem.from_api_response(raw)

        self.assertEqual(item.id, "abc")
        self.assertEqual(item.duration_seconds, 65)
        self.assertEqual(item.view_count, 2500)
        self.assertEqual(item.like_count, 100)
        self.assertEqual(item.comment_count, 25)
        self.assertTrue(item.embeddable)
        self.assertEqual(item.privacy_status, PrivacyStatus.PUBLIC)
        self.assertEqual(item.region_restriction.blocked, frozenset({"DE"}))
        self.assertEqual(item.published_at, datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc))
        self.assertAlmostEqual(item.engagement_rate, 0.05)

    def test_hidden_counts_default_to_zero(self):
        """Likes and comments hidden by the uploader count as zero."""
        raw = video_resource("abc")
        del raw["statistics"]["likeCount"]
        del raw["statistics"]["commentCount"]

        item = DetailedItem.from_api_response(raw)

        self.assertEqual(item.like_count, 0)
        self.assertEqual(item.comment_count, 0)

    def test_malformed_records_raise_value_error(self):
        """Missing required parts or a bad duration raise ValueError."""
        no_stats = video_resource("a")
        del no_stats["statistics"]
        no_status = video_resource("b")
        del no_status["status"]
        bad_duration = video_resource("c", duration="thirty seconds")
        bad_privacy = video_resource("d", privacy="secret")

        for raw in (no_stats, no_status, bad_duration, bad_privacy, {"snippet": {}}):
            with self.subTest(raw=raw.get("id")):
                with self.assertRaises(ValueError):
                    DetailedItem.from_api_response(raw)

    def test_wrongly_typed_fields_raise_value_error(self):
        """Null or non-numeric counts, non-string durations and non-objects raise ValueError."""
        null_views = video_resource("a")
        null_views["statistics"]["viewCount"] = None
        float_likes = video_resource("b")
        float_likes["statistics"]["likeCount"] = "12.5"
        int_duration = video_resource("c")
        int_duration["contentDetails"]["duration"] = 30
        bad_region = video_resource("d")
        bad_region["contentDetails"]["regionRestriction"] = {"blocked": 7}

        for raw in (null_views, float_likes, int_duration, bad_region, "video", None, ["e"]):
            with self.subTest(raw=repr(raw)[:30]):
                with self.assertRaises(ValueError):
                    DetailedItem.from_api_response(raw)

    def test_integer_counts_accepted(self):
        """Counts already given as integers are accepted."""
        raw = video_resource("a")
        raw["statistics"] = {"viewCount": 2000, "likeCount": 100, "commentCount": 0}

        item = DetailedItem.from_api_response(raw)

        self.assertEqual(item.view_count, 2000)
        self.assertEqual(item.like_count, 100)

    def test_quality_grade(self):
        """Grades combine engagement and views."""
        def grade(views, likes):
            return DetailedItem.from_api_response(video_resource("g", views=views, likes=likes, comments=0)).quality_grade

        self.assertEqual(grade(200000, 12000), "A+")
        self.assertEqual(grade(60000, 2000), "A")
        self.assertEqual(grade(25000, 600), "B+")
        self.assertEqual(grade(12000, 150), "B")
        self.assertEqual(grade(5000, 1000), "C")


class TestSessionAndCacheEntry(unittest.TestCase):
    """Test cases for SearchSession and CacheEntry helpers."""

    def test_session_success_rate(self):
        """Success rate is accepted over candidates, zero before any candidate."""
        session = SearchSession(query="q", criteria=FilterCriteria())
        self.assertEqual(session.success_rate, 0.0)

        session.total_candidates_seen = 4
        session.accumulated = {"a": DetailedItem.from_api_response(video_resource("a"))}
        self.assertEqual(session.success_rate, 0.25)

    def test_session_stop(self):
        """stop() records the reason and moves to STOPPED."""
        session = SearchSession(query="q", criteria=FilterCriteria())
        self.assertEqual(session.state, SessionState.INIT)
        session.stop(StopReason.PAGE_BUDGET)
        self.assertTrue(session.stopped)
        self.assertEqual(session.stopped_reason, StopReason.PAGE_BUDGET)

    def test_cache_entry_expiry(self):
        """An entry expires once its TTL has elapsed."""
        entry = CacheEntry(key="k", value=None, created_at=100.0, ttl_seconds=10)
        self.assertFalse(entry.is_expired(now=109.9))
        self.assertTrue(entry.is_expired(now=110.0))


if __name__ == '__main__':
    unittest.main()
