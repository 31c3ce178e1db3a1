"""
Tests for the ResultCache class and the cache fingerprint.
"""
import unittest
import sys
import os
import asyncio

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from models import FilterCriteria, SearchMetadata, SearchResult, StopReason
from services.result_cache import ResultCache, fingerprint


def make_result(query):
    return SearchResult(
        success=True,
        query=query,
        videos=[],
        metadata=SearchMetadata(stopped_reason=StopReason.TARGET_ACHIEVED),
    )


class TestFingerprint(unittest.TestCase):
    """Test cases for fingerprint."""

    def test_query_is_normalized(self):
        """Case and surrounding or repeated whitespace do not change the key."""
        criteria = FilterCriteria()
        self.assertEqual(fingerprint("  Cute  Cats ", criteria), fingerprint("cute cats", criteria))
        self.assertNotEqual(fingerprint("cute cats", criteria), fingerprint("cute dogs", criteria))

    def test_output_shaping_fields_change_the_key(self):
        """Target count, view and engagement thresholds and sort key are part of the key."""
        base = FilterCriteria()
        key = fingerprint("q", base)
        for update in ({"target_result_count": 20}, {"min_view_count": 10},
                       {"min_engagement_rate": 0.5}, {"sort_key": "viewCount"}):
            with self.subTest(update=update):
                self.assertNotEqual(fingerprint("q", base.with_overrides(**update)), key)

    def test_budget_fields_do_not_change_the_key(self):
        """Quota and page budgets only affect how results are obtained."""
        base = FilterCriteria()
        other = base.with_overrides(max_quota_units=2000, max_pages=9, adaptive=True)
        self.assertEqual(fingerprint("q", base), fingerprint("q", other))


class TestResultCache(unittest.IsolatedAsyncioTestCase):
    """Test cases for the ResultCache class."""

    async def asyncSetUp(self):
        """Set up test fixtures."""
        self.cache = ResultCache(maxsize=3, ttl_seconds=10)

    async def test_put_and_get(self):
        """Stored values are returned; unknown keys miss."""
        await self.cache.put("k1", make_result("one"))

        value = await self.cache.get("k1")

        self.assertEqual(value.query, "one")
        self.assertIsNone(await self.cache.get("missing"))

    async def test_oldest_entry_evicted(self):
        """At capacity the oldest entry goes first, regardless of reads."""
        for n in range(3):
            await self.cache.put(f"k{n}", make_result(str(n)))
        # Reading k0 does not refresh it
        await self.cache.get("k0")

        await self.cache.put("k3", make_result("3"))

        self.assertIsNone(await self.cache.get("k0"))
        self.assertIsNotNone(await self.cache.get("k1"))
        self.assertIsNotNone(await self.cache.get("k3"))
        self.assertEqual(await self.cache.size(), 3)
        stats = await self.cache.get_stats()
        self.assertEqual(stats["evictions"], 1)

    async def test_ttl_expiry(self):
        """Entries are not returned once their TTL has passed."""
        cache = ResultCache(maxsize=3, ttl_seconds=0.1)
        await cache.put("k", make_result("q"))
        self.assertIsNotNone(await cache.get("k"))

        await asyncio.sleep(0.2)

        self.assertIsNone(await cache.get("k"))
        stats = await cache.get_stats()
        self.assertEqual(stats["ttl_expirations"], 1)
        self.assertEqual(stats["size"], 0)

    async def test_clear(self):
        """clear() removes everything and reports the count."""
        await self.cache.put("a", make_result("a"))
        await self.cache.put("b", make_result("b"))

        self.assertEqual(await self.cache.clear(), 2)
        self.assertEqual(await self.cache.size(), 0)

    async def test_concurrent_puts_respect_capacity(self):
        """Concurrent writers never push the cache past maxsize."""
        await asyncio.gather(*(self.cache.put(f"k{n}", make_result(str(n))) for n in range(20)))
        self.assertEqual(await self.cache.size(), 3)

    async def test_invalid_arguments(self):
        """Non-positive size or TTL is rejected."""
        with self.assertRaises(ValueError):
            ResultCache(maxsize=0)
        with self.assertRaises(ValueError):
            ResultCache(ttl_seconds=0)


if __name__ == '__main__':
    unittest.main()
