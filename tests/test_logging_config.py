"""
Tests for the structured logging helpers.
"""
import unittest
import sys
import os
import json
import logging
from datetime import datetime, timezone

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from logging_config import JSONFormatter, StructuredLogger, setup_logging
from models import StopReason


class TestStructuredLogger(unittest.TestCase):
    """Test cases for StructuredLogger and JSONFormatter."""

    def test_keyword_context_attached_to_record(self):
        """Keyword arguments travel on the record's data attribute."""
        logger = StructuredLogger("shortsieve.test")
        with self.assertLogs("shortsieve.test", level="INFO") as captured:
            logger.info("page fetched", page=2, quota_units_used=218)

        record = captured.records[0]
        self.assertEqual(record.data, {"page": 2, "quota_units_used": 218})

    def test_bind_merges_context(self):
        """bind() returns a logger carrying extra context on every message."""
        logger = StructuredLogger("shortsieve.test").bind(request_id="abc123")
        with self.assertLogs("shortsieve.test", level="WARNING") as captured:
            logger.warning("slow", duration_ms=12)

        self.assertEqual(captured.records[0].data, {"request_id": "abc123", "duration_ms": 12})

    def test_json_formatter_renders_non_json_values(self):
        """Enums and datetimes in the context are rendered as strings."""
        record = logging.LogRecord("shortsieve.test", logging.INFO, __file__, 10, "stopped", None, None)
        record.data = {
            "stopped_reason": StopReason.QUOTA_GUARD,
            "at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        }

        payload = json.loads(JSONFormatter().format(record))

        self.assertEqual(payload["message"], "stopped")
        self.assertEqual(payload["level"], "INFO")
        self.assertIn("quota_guard", payload["stopped_reason"])
        self.assertTrue(payload["at"].startswith("2024-01-01"))


class TestSetupLogging(unittest.TestCase):
    """Test cases for setup_logging."""

    def setUp(self):
        """Remember the root logger state."""
        self.root = logging.getLogger()
        self.saved_handlers = self.root.handlers[:]
        self.saved_level = self.root.level

    def tearDown(self):
        """Restore the root logger state."""
        for handler in self.root.handlers[:]:
            self.root.removeHandler(handler)
        for handler in self.saved_handlers:
            self.root.addHandler(handler)
        self.root.setLevel(self.saved_level)

    def test_console_only(self):
        """Without a log file only the structured console handler is installed."""
        setup_logging(log_level_console=logging.WARNING, structured=True, log_file=None)

        self.assertEqual(len(self.root.handlers), 1)
        self.assertIsInstance(self.root.handlers[0].formatter, JSONFormatter)
        self.assertEqual(self.root.level, logging.WARNING)
        self.assertEqual(logging.getLogger("googleapiclient.discovery_cache").level, logging.ERROR)


if __name__ == '__main__':
    unittest.main()
