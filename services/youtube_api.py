#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Shared plumbing for YouTube Data API v3 calls.

Builds the discovery resource, spaces out consecutive requests, runs each
blocking ``execute()`` in the default executor under a timeout, counts
quota, and translates googleapiclient failures into the application's
error taxonomy.
"""

import asyncio
import json
import random
import time
from typing import Any, Dict, Optional

from googleapiclient.discovery import Resource, build
from googleapiclient.errors import HttpError

from config import config
from exceptions import (AppBaseError, APIConfigurationError, InvalidQueryError,
                        QuotaExceededError, TransientAPIError)
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

# Error reasons the API reports (in a 403) when quota is gone
_QUOTA_REASONS = ("quotaExceeded", "dailyLimitExceeded", "servingLimitExceeded")
_RATE_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")


def build_youtube_resource(api_key: Optional[str] = None) -> Resource:
    """Build a YouTube discovery resource from an API key (or config/env).

    Raises:
        APIConfigurationError: If no key is available or the build fails.
    """
    key = api_key if api_key is not None else config.API_KEY
    if not key:
        logger.critical("YouTube API key is missing.", exc_info=False)
        raise APIConfigurationError("YouTube API Key is not configured.")
    try:
        # cache_discovery=False prevents issues with stale discovery documents
        return build("youtube", "v3", developerKey=key, cache_discovery=False)
    except Exception as e:
        logger.critical(f"Error initializing YouTube API client build: {e}", error=str(e))
        raise APIConfigurationError(f"Could not initialize YouTube API service: {e}") from e


def _error_reasons(err: HttpError) -> str:
    """Concatenate the ``reason`` fields of an HttpError body, best effort."""
    content = getattr(err, "content", b"") or b""
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    try:
        payload = json.loads(content)
        errors = payload.get("error", {}).get("errors", [])
        return " ".join(str(e.get("reason", "")) for e in errors) or content
    except (ValueError, AttributeError):
        return content


def map_http_error(err: HttpError, operation: str) -> AppBaseError:
    """Translate an HttpError into TransientAPIError, QuotaExceededError,
    InvalidQueryError or APIConfigurationError."""
    status_code = getattr(getattr(err, "resp", None), "status", None)
    try:
        status_code = int(status_code)
    except (TypeError, ValueError):
        status_code = None
    reasons = _error_reasons(err)

    if status_code == 403 and any(r in reasons for r in _QUOTA_REASONS):
        return QuotaExceededError(f"YouTube API quota exceeded during {operation}")
    if status_code == 429 or (status_code == 403 and any(r in reasons for r in _RATE_REASONS)):
        return TransientAPIError(f"Rate limited during {operation} ({status_code})")
    if status_code is None or status_code >= 500:
        return TransientAPIError(f"YouTube API error {status_code} during {operation}")
    if status_code in (401, 403):
        return APIConfigurationError(f"YouTube API rejected credentials during {operation} ({status_code}): {reasons[:200]}")
    return InvalidQueryError(f"YouTube API rejected {operation} ({status_code}): {reasons[:200]}")


class YouTubeAPIBase:
    """Base class for the search and detail clients.

    Subclasses get ``self.youtube`` and ``_execute_api_call``. A resource can
    be injected (shared between clients, or a mock in tests); otherwise one
    is built from ``api_key`` or the configured key.
    """

    def __init__(self, youtube: Optional[Resource] = None, api_key: Optional[str] = None,
                 timeout_seconds: float = config.API_TIMEOUT_SECONDS,
                 min_delay_ms: float = config.MIN_DELAY_MS,
                 max_delay_ms: float = config.MAX_DELAY_MS):
        self.youtube = youtube if youtube is not None else build_youtube_resource(api_key)
        self.timeout_seconds = timeout_seconds
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max(min_delay_ms, max_delay_ms)

        self.api_calls_count = 0
        self.api_quota_used = 0
        self.quota_reached = False
        self.last_request_time_ms = 0.0

    async def _wait_for_rate_limit(self) -> float:
        """Sleep long enough to keep a randomized gap since the previous call.

        Returns:
            float: The delay applied in milliseconds.
        """
        if self.max_delay_ms <= 0:
            return 0.0

        now_ms = time.monotonic() * 1000
        elapsed_ms = now_ms - self.last_request_time_ms
        required_delay_ms = random.uniform(self.min_delay_ms, self.max_delay_ms)

        actual_delay_ms = 0.0
        if elapsed_ms < required_delay_ms:
            actual_delay_ms = required_delay_ms - elapsed_ms
            await asyncio.sleep(actual_delay_ms / 1000.0)
            logger.debug(f"Applied API delay: {actual_delay_ms:.2f}ms")
        self.last_request_time_ms = now_ms + actual_delay_ms
        return actual_delay_ms

    async def _execute_api_call(self, api_request: Any, cost: int, operation: str) -> Dict[str, Any]:
        """Execute one request object under the per-call timeout. Single attempt.

        Args:
            api_request: A googleapiclient HttpRequest (e.g. youtube.videos().list(...)).
            cost: Quota units charged for the call.
            operation: Endpoint name for logs and error messages.

        Returns:
            dict: The parsed JSON response.

        Raises:
            TransientAPIError: On timeout, connection failure, 429 or 5xx.
            QuotaExceededError: When the API reports exhausted quota.
            InvalidQueryError: On other 4xx responses.
            APIConfigurationError: On 401/403 credential problems.
        """
        await self._wait_for_rate_limit()

        loop = asyncio.get_running_loop()
        try:
            response = await asyncio.wait_for(
                loop.run_in_executor(None, api_request.execute),
                timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"{operation} timed out after {self.timeout_seconds}s", operation=operation)
            raise TransientAPIError(f"{operation} timed out after {self.timeout_seconds}s") from e
        except HttpError as e:
            mapped = map_http_error(e, operation)
            if isinstance(mapped, QuotaExceededError):
                self.quota_reached = True
                logger.critical(f"YouTube API quota exceeded during {operation}", operation=operation, exc_info=False)
            else:
                logger.warning(f"{operation} failed: {mapped.error_code}", operation=operation, error=mapped.message)
            raise mapped from e
        except OSError as e:
            # Socket, SSL and connection-reset failures from httplib2
            logger.warning(f"Network error during {operation}: {e}", operation=operation)
            raise TransientAPIError(f"Network error during {operation}: {e}") from e

        self.api_calls_count += 1
        self.api_quota_used += cost
        return response or {}

    def get_api_stats(self) -> Dict[str, Any]:
        return {
            "api_calls_count": self.api_calls_count,
            "api_quota_used": self.api_quota_used,
            "quota_reached": self.quota_reached,
        }
