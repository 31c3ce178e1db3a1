#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Configuration module for Shortsieve.

Defines the quota, batching, retry, adaptive-pagination and caching
parameters used by the search pipeline, and loads overrides from
environment variables.
"""

import os
import logging
from typing import Dict, Any, Tuple

# Initialize a basic logger for config loading issues
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Default configuration values
_CONFIG_DEFAULTS: Dict[str, Any] = {
    # API Configuration
    "API_KEY": "",
    "API_KEY_ENV_VAR": "YOUTUBE_API_KEY",

    # Search endpoint (search.list)
    "SEARCH_PAGE_SIZE": 50,  # Max allowed by YouTube API for search results
    "SEARCH_QUOTA_COST": 100,  # Fixed cost per search.list call
    "SEARCH_DURATION_BUCKET": "short",  # Under 4 minutes
    "SEARCH_ORDER_HINT": "relevance",
    "SEARCH_RELEVANCE_LANGUAGE": "ko",
    "SEARCH_SAFE_SEARCH": "moderate",

    # Detail endpoint (videos.list)
    "DETAIL_BATCH_SIZE": 50,  # Max ids per videos.list call
    "DETAIL_PARTS": ("snippet", "contentDetails", "status", "statistics"),
    "DETAIL_BASE_QUOTA_COST": 1,
    "DETAIL_PART_QUOTA_COST": 2,  # Charged per requested part

    # Rate Limiting & Timeouts
    "MIN_DELAY_MS": 100,  # Min delay between API calls
    "MAX_DELAY_MS": 300,  # Max delay between API calls
    "API_TIMEOUT_SECONDS": 20.0,  # Timeout for a single API request

    # Retry policies
    "PAGE_RETRY_ATTEMPTS": 2,  # Extra attempts for a failed search page
    "PAGE_RETRY_BASE_DELAY_MS": 1000,  # Exponential backoff base
    "ENRICH_RETRY_ATTEMPTS": 2,  # Extra attempts for a failed detail batch
    "ENRICH_RETRY_DELAY_MS": 500,  # Linear backoff step
    "RETRY_JITTER_FACTOR": 0.1,

    # Pagination control
    "STAGNATION_PAGE_LIMIT": 2,  # Consecutive pages with no new accepted items

    # Adaptive pagination
    "ADAPTIVE_PROBE_TARGET": 10,
    "ADAPTIVE_HIGH_YIELD_RATE": 0.4,
    "ADAPTIVE_LOW_YIELD_RATE": 0.2,
    "ADAPTIVE_RELAX_FACTOR": 0.7,
    "ADAPTIVE_MIN_VIEW_COUNT_FLOOR": 500,
    "ADAPTIVE_MIN_ENGAGEMENT_FLOOR": 0.005,
    "ADAPTIVE_FAST_MAX_PAGES": 3,
    "ADAPTIVE_MAX_PAGES_CEILING": 6,

    # Result cache
    "RESULT_CACHE_SIZE": 100,
    "RESULT_CACHE_TTL_SECONDS": 4 * 3600,  # 4 hours

    # Bulk search
    "BULK_SEARCH_CONCURRENCY": 3,
    "BULK_BATCH_DELAY_MS": 500,  # Pause between batches of concurrent queries

    # Logging
    "SLOW_OPERATION_THRESHOLD_MS": 5000,
}

_INT_KEYS: Tuple[str, ...] = (
    "SEARCH_PAGE_SIZE", "SEARCH_QUOTA_COST",
    "DETAIL_BATCH_SIZE", "DETAIL_BASE_QUOTA_COST", "DETAIL_PART_QUOTA_COST",
    "MIN_DELAY_MS", "MAX_DELAY_MS",
    "PAGE_RETRY_ATTEMPTS", "PAGE_RETRY_BASE_DELAY_MS",
    "ENRICH_RETRY_ATTEMPTS", "ENRICH_RETRY_DELAY_MS",
    "STAGNATION_PAGE_LIMIT",
    "ADAPTIVE_PROBE_TARGET", "ADAPTIVE_MIN_VIEW_COUNT_FLOOR",
    "ADAPTIVE_FAST_MAX_PAGES", "ADAPTIVE_MAX_PAGES_CEILING",
    "RESULT_CACHE_SIZE", "RESULT_CACHE_TTL_SECONDS",
    "BULK_SEARCH_CONCURRENCY", "BULK_BATCH_DELAY_MS",
    "SLOW_OPERATION_THRESHOLD_MS",
)

_FLOAT_KEYS: Tuple[str, ...] = (
    "API_TIMEOUT_SECONDS", "RETRY_JITTER_FACTOR",
    "ADAPTIVE_HIGH_YIELD_RATE", "ADAPTIVE_LOW_YIELD_RATE",
    "ADAPTIVE_RELAX_FACTOR", "ADAPTIVE_MIN_ENGAGEMENT_FLOOR",
)

_STR_KEYS: Tuple[str, ...] = (
    "SEARCH_DURATION_BUCKET", "SEARCH_ORDER_HINT",
    "SEARCH_RELEVANCE_LANGUAGE", "SEARCH_SAFE_SEARCH",
)


class Config:
    """Configuration class that loads values from environment variables."""

    def __init__(self, load_from_env=True):
        """Initialize configuration with default values and optionally from environment.

        Args:
            load_from_env: Whether to load values from environment variables
        """
        for key, value in _CONFIG_DEFAULTS.items():
            setattr(self, key, value)

        if load_from_env:
            self.load_from_env()

    @property
    def detail_batch_cost(self) -> int:
        """Quota units charged for one videos.list call."""
        return self.DETAIL_BASE_QUOTA_COST + self.DETAIL_PART_QUOTA_COST * len(self.DETAIL_PARTS)

    @property
    def iteration_cost(self) -> int:
        """Nominal quota units for one full page: search plus enrichment of every candidate."""
        batches = -(-self.SEARCH_PAGE_SIZE // self.DETAIL_BATCH_SIZE)
        return self.SEARCH_QUOTA_COST + self.detail_batch_cost * batches

    def load_from_env(self):
        """Load configuration values from environment variables."""
        self.API_KEY = os.environ.get(self.API_KEY_ENV_VAR, self.API_KEY)

        for key in _INT_KEYS:
            self._load_int_from_env(key)
        for key in _FLOAT_KEYS:
            self._load_float_from_env(key)
        for key in _STR_KEYS:
            setattr(self, key, os.environ.get(key, getattr(self, key)))

        if self.DETAIL_BATCH_SIZE > 50:
            logger.warning(f"DETAIL_BATCH_SIZE {self.DETAIL_BATCH_SIZE} exceeds the upstream limit, using 50.")
            self.DETAIL_BATCH_SIZE = 50

        if not self.API_KEY:
            logger.warning(f"API key not found in env var {self.API_KEY_ENV_VAR}.")

    def _load_int_from_env(self, key):
        """Load an integer value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, int(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid integer value for {key}: {env_value}")
        return False

    def _load_float_from_env(self, key):
        """Load a float value from environment variable.

        Args:
            key: The configuration key to load

        Returns:
            bool: True if the value was loaded, False otherwise
        """
        env_value = os.environ.get(key)
        if env_value is not None:
            try:
                setattr(self, key, float(env_value))
                return True
            except ValueError:
                logger.warning(f"Invalid float value for {key}: {env_value}")
        return False


# Create a single instance of Config to be imported by other modules
config = Config(load_from_env=True)
