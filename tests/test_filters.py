"""
Tests for the playability and quality predicates.
"""
import unittest
import sys
import os

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from models import DetailedItem, FilterCriteria
from services import filters
from services.filters import check_playability, check_quality, evaluate_item, filter_items
from fake_youtube import video_resource


def make_item(video_id="vid1", **kwargs):
    return DetailedItem.from_api_response(video_resource(video_id, **kwargs))


class TestPlayability(unittest.TestCase):
    """Test cases for check_playability."""

    def setUp(self):
        self.criteria = FilterCriteria(min_duration_seconds=5, max_duration_seconds=60)

    def test_accepts_playable_item(self):
        """A public, embeddable 30s video in an unrestricted region passes."""
        decision = check_playability(make_item(), self.criteria)
        self.assertTrue(decision.passed)
        self.assertIsNone(decision.reason)

    def test_duration_bounds_are_inclusive(self):
        """Durations equal to either bound are accepted, outside them rejected."""
        self.assertTrue(check_playability(make_item(duration="PT5S"), self.criteria))
        self.assertTrue(check_playability(make_item(duration="PT1M"), self.criteria))

        too_short = check_playability(make_item(duration="PT4S"), self.criteria)
        too_long = check_playability(make_item(duration="PT1M1S"), self.criteria)
        self.assertEqual(too_short.reason, filters.DURATION_OUT_OF_RANGE)
        self.assertEqual(too_long.reason, filters.DURATION_OUT_OF_RANGE)

    def test_not_embeddable(self):
        """Non-embeddable videos fail only when embedding is required."""
        item = make_item(embeddable=False)
        self.assertEqual(check_playability(item, self.criteria).reason, filters.NOT_EMBEDDABLE)

        relaxed = self.criteria.with_overrides(require_embeddable=False)
        self.assertTrue(check_playability(item, relaxed).passed)

    def test_not_public(self):
        """Unlisted and private videos fail when public visibility is required."""
        for privacy in ("unlisted", "private"):
            item = make_item(privacy=privacy)
            self.assertEqual(check_playability(item, self.criteria).reason, filters.NOT_PUBLIC)

        relaxed = self.criteria.with_overrides(require_public=False)
        self.assertTrue(check_playability(make_item(privacy="unlisted"), relaxed).passed)

    def test_region_blocked(self):
        """A video blocked in the target region is rejected."""
        item = make_item(blocked=["kr", "JP"])
        self.assertEqual(check_playability(item, self.criteria).reason, filters.REGION_BLOCKED)

    def test_region_allow_list(self):
        """A non-empty allow list must contain the target region."""
        self.assertTrue(check_playability(make_item(allowed=["KR", "US"]), self.criteria).passed)
        decision = check_playability(make_item(allowed=["US"]), self.criteria)
        self.assertEqual(decision.reason, filters.REGION_NOT_ALLOWED)

    def test_region_checks_disabled_without_target_region(self):
        """With no target region the restriction is ignored."""
        criteria = self.criteria.with_overrides(target_region=None)
        self.assertTrue(check_playability(make_item(blocked=["KR"]), criteria).passed)


class TestQuality(unittest.TestCase):
    """Test cases for check_quality and the engagement rate."""

    def setUp(self):
        self.criteria = FilterCriteria(min_view_count=1000, min_like_count=10, min_engagement_rate=0.01)

    def test_engagement_rate_formula(self):
        """Engagement is (likes + comments) / views."""
        item = make_item(views=2000, likes=30, comments=10)
        self.assertAlmostEqual(filters.engagement_rate(item), 0.02)

    def test_engagement_rate_zero_views(self):
        """A video with no views has zero engagement instead of a division error."""
        item = make_item(views=0, likes=5, comments=5)
        self.assertEqual(item.engagement_rate, 0.0)
        self.assertEqual(check_quality(item, self.criteria).reason, filters.LOW_VIEW_COUNT)

    def test_thresholds(self):
        """Each quality threshold produces its own reason code."""
        self.assertTrue(check_quality(make_item(views=1000, likes=10, comments=0), self.criteria).passed)
        self.assertEqual(check_quality(make_item(views=999), self.criteria).reason, filters.LOW_VIEW_COUNT)
        self.assertEqual(check_quality(make_item(likes=9), self.criteria).reason, filters.LOW_LIKE_COUNT)
        self.assertEqual(
            check_quality(make_item(views=100000, likes=50, comments=0), self.criteria).reason,
            filters.LOW_ENGAGEMENT
        )


class TestFilterItems(unittest.TestCase):
    """Test cases for evaluate_item and filter_items."""

    def test_both_predicates_must_hold(self):
        """An item of high quality that is not playable is rejected."""
        criteria = FilterCriteria()
        item = make_item(views=500000, likes=40000, duration="PT3M")
        self.assertTrue(check_quality(item, criteria).passed)
        self.assertFalse(evaluate_item(item, criteria).passed)

    def test_filter_items_keeps_order_and_counts_rejections(self):
        """Accepted items keep input order; rejections are tallied by reason."""
        criteria = FilterCriteria()
        items = [
            make_item("a"),
            make_item("b", views=10),
            make_item("c"),
            make_item("d", embeddable=False),
            make_item("e", views=20),
        ]

        accepted, rejections = filter_items(items, criteria)

        self.assertEqual([i.id for i in accepted], ["a", "c"])
        self.assertEqual(rejections[filters.LOW_VIEW_COUNT], 2)
        self.assertEqual(rejections[filters.NOT_EMBEDDABLE], 1)

    def test_accepted_items_satisfy_criteria(self):
        """Every accepted item respects the duration, embeddable and public requirements."""
        criteria = FilterCriteria(min_duration_seconds=10, max_duration_seconds=45)
        items = [
            make_item(str(n), duration=f"PT{n}S", embeddable=n % 3 != 0,
                      privacy="public" if n % 4 else "unlisted")
            for n in range(1, 70)
        ]

        accepted, _ = filter_items(items, criteria)

        self.assertTrue(accepted)
        for item in accepted:
            self.assertGreaterEqual(item.duration_seconds, criteria.min_duration_seconds)
            self.assertLessEqual(item.duration_seconds, criteria.max_duration_seconds)
            self.assertTrue(item.embeddable)
            self.assertEqual(item.privacy_status.value, "public")


if __name__ == '__main__':
    unittest.main()
