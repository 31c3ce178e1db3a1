#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Utility functions and classes for Shortsieve.

Includes the bounded retry combinator shared by the pagination controller
and the detail enricher, a performance timer, and small sequence and query
helpers.
"""

import asyncio
import random
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, List, Optional, Sequence, Tuple, Type, TypeVar

from config import config
from exceptions import TransientError
from logging_config import StructuredLogger

logger = StructuredLogger(__name__)

T = TypeVar("T")

_WHITESPACE_RE = re.compile(r"\s+")


# --- Retry Combinator ---

@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry schedule.

    ``max_retries`` counts extra attempts after the first one, so a policy
    with ``max_retries=2`` makes at most three calls.

    Attributes:
        max_retries: Extra attempts allowed after the first failure.
        base_delay_ms: Delay before the first retry.
        backoff: "linear" (base * n) or "exponential" (base * 2 ** (n - 1)).
        jitter_factor: Random spread applied to each delay, 0 disables it.
        max_delay_seconds: Upper bound for a single delay.
    """

    max_retries: int = 2
    base_delay_ms: int = 1000
    backoff: str = "exponential"
    jitter_factor: float = 0.0
    max_delay_seconds: float = 60.0

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.backoff not in ("linear", "exponential"):
            raise ValueError(f"Unknown backoff strategy: {self.backoff}")

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before retry number ``retry_number`` (1-based)."""
        base = self.base_delay_ms / 1000.0
        if self.backoff == "linear":
            delay = base * retry_number
        else:
            delay = base * (2 ** (retry_number - 1))
        if self.jitter_factor:
            delay *= 1 + (random.random() * 2 - 1) * self.jitter_factor
        return max(0.0, min(delay, self.max_delay_seconds))

    @classmethod
    def for_pages(cls) -> "RetryPolicy":
        """Policy for search page fetches, from config."""
        return cls(
            max_retries=config.PAGE_RETRY_ATTEMPTS,
            base_delay_ms=config.PAGE_RETRY_BASE_DELAY_MS,
            backoff="exponential",
            jitter_factor=config.RETRY_JITTER_FACTOR,
        )

    @classmethod
    def for_enrichment(cls) -> "RetryPolicy":
        """Policy for detail batches, from config."""
        return cls(
            max_retries=config.ENRICH_RETRY_ATTEMPTS,
            base_delay_ms=config.ENRICH_RETRY_DELAY_MS,
            backoff="linear",
        )


async def execute_with_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (TransientError,),
    operation_name: Optional[str] = None,
    **kwargs: Any
) -> T:
    """Await ``func(*args, **kwargs)``, retrying on ``retry_on`` exceptions.

    Any other exception propagates immediately. After ``policy.max_retries``
    retries the last retryable exception is re-raised.

    Args:
        func: Coroutine function to call.
        *args: Positional arguments for the function.
        policy: Retry schedule.
        retry_on: Exception types that trigger a retry.
        operation_name: Name used in log messages. Defaults to the function name.
        **kwargs: Keyword arguments for the function.

    Returns:
        The result of the first successful call.
    """
    op_name = operation_name or getattr(func, "__name__", "unknown_operation")
    total_attempts = policy.max_retries + 1

    for attempt in range(1, total_attempts + 1):
        try:
            return await func(*args, **kwargs)
        except retry_on as e:
            if attempt >= total_attempts:
                logger.warning(
                    f"Operation '{op_name}' failed after {total_attempts} attempts: {type(e).__name__}",
                    operation=op_name,
                    attempts=total_attempts,
                    final_error=str(e)
                )
                raise

            delay = policy.delay_for(attempt)
            logger.info(
                f"Retrying '{op_name}' in {delay:.2f}s (attempt {attempt + 1}/{total_attempts})",
                operation=op_name,
                error_type=type(e).__name__,
                delay_seconds=round(delay, 3),
                next_attempt=attempt + 1
            )
            await asyncio.sleep(delay)

    # range() above always returns or raises
    raise RuntimeError(f"Retry loop exited unexpectedly for '{op_name}'")


# --- Performance Timer ---

@contextmanager
def performance_timer(operation_name: str, threshold_ms: float = 100.0):
    """Context manager for timing operations with threshold-based logging.

    Logs at WARNING when the block takes more than ten times ``threshold_ms``,
    at INFO above the threshold and at DEBUG otherwise.
    """
    start_time = time.monotonic()
    try:
        yield
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        log_data = {
            "operation": operation_name,
            "duration_ms": round(duration_ms, 2),
            "threshold_ms": threshold_ms
        }

        if duration_ms > threshold_ms * 10:
            logger.warning(f"SLOW OPERATION: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        elif duration_ms > threshold_ms:
            logger.info(f"Performance watch: '{operation_name}' took {duration_ms:.2f}ms", **log_data)
        else:
            logger.debug(f"Performance: '{operation_name}' completed in {duration_ms:.2f}ms", **log_data)


# --- Helpers ---

def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of ``items`` with at most ``size`` elements."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def normalize_query(query: str) -> str:
    """Trim, lower-case and collapse internal whitespace."""
    return _WHITESPACE_RE.sub(" ", query.strip()).lower()
