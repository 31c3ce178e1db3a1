#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Custom exception classes and error handling utilities for Shortsieve.

The pipeline distinguishes retryable upstream failures (TransientAPIError),
fatal ones that end a search session (QuotaExceededError,
InvalidQueryError), and recoverable per-batch losses (PartialBatchFailure)
that are recorded rather than raised. Every application error can be turned
into a FastAPI HTTPException for services embedding the pipeline.
"""

from typing import Optional, Sequence
from fastapi import HTTPException, status


# --- Base Exception Classes ---

class AppBaseError(Exception):
    """Base class for all application-specific exceptions.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        http_status_code: HTTP status code to use in API responses
        retry_after: Optional seconds to wait before retrying (for rate limits)
    """

    def __init__(self, message: str, error_code: Optional[str] = None,
                http_status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
                retry_after: Optional[int] = None):
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.http_status_code = http_status_code
        self.retry_after = retry_after
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        """Convert this exception to a FastAPI HTTPException.

        Returns:
            HTTPException: FastAPI exception with appropriate status and headers
        """
        headers = {"X-Error-Code": self.error_code}
        if self.retry_after:
            headers["Retry-After"] = str(self.retry_after)

        return HTTPException(
            status_code=self.http_status_code,
            detail=self.message,
            headers=headers
        )


class TransientError(AppBaseError):
    """Base class for retryable errors that might be temporary."""
    pass


class CriticalError(AppBaseError):
    """Base class for non-retryable errors that indicate a serious problem."""
    pass


# --- API-Related Exceptions ---

class TransientAPIError(TransientError):
    """Raised on network failures, timeouts, 429 and 5xx responses from the API."""

    def __init__(self, message: str = "Temporary YouTube API failure", retry_after: int = 30):
        super().__init__(
            message=message,
            error_code="TRANSIENT_API_ERROR",
            http_status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            retry_after=retry_after
        )


class QuotaExceededError(CriticalError):
    """Raised when the YouTube API quota has been exhausted."""

    def __init__(self, message: str = "YouTube API quota exceeded"):
        super().__init__(
            message=message,
            error_code="QUOTA_EXCEEDED",
            http_status_code=status.HTTP_403_FORBIDDEN,
            retry_after=3600  # Suggest retry after 1 hour
        )


class InvalidQueryError(CriticalError):
    """Raised when a search query is empty or rejected by the API."""

    def __init__(self, message: str = "Invalid search query"):
        super().__init__(
            message=message,
            error_code="INVALID_QUERY",
            http_status_code=status.HTTP_400_BAD_REQUEST
        )


class APIConfigurationError(CriticalError):
    """Raised when there's an issue with the API configuration."""

    def __init__(self, message: str = "API configuration error"):
        super().__init__(
            message=message,
            error_code="API_CONFIG_ERROR",
            http_status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class PartialBatchFailure(AppBaseError):
    """A detail batch that could not be fetched after retries.

    Never raised out of the enricher: instances are collected so callers can
    see which candidates were dropped and why.
    """

    def __init__(self, batch_index: int, video_ids: Sequence[str],
                 cause: Optional[BaseException] = None):
        self.batch_index = batch_index
        self.video_ids = list(video_ids)
        self.cause = cause
        super().__init__(
            message=f"Detail batch {batch_index} dropped ({len(self.video_ids)} ids): {cause}",
            error_code="PARTIAL_BATCH_FAILURE",
            http_status_code=status.HTTP_206_PARTIAL_CONTENT
        )


# --- Error Handling Utilities ---

def handle_exception(exception: Exception) -> HTTPException:
    """Convert any exception to an appropriate HTTPException.

    Args:
        exception: The exception to handle

    Returns:
        HTTPException: FastAPI exception with appropriate status and headers
    """
    if isinstance(exception, AppBaseError):
        return exception.to_http_exception()

    elif isinstance(exception, ValueError):
        # Criteria validation failures
        return InvalidQueryError(str(exception)).to_http_exception()

    elif isinstance(exception, HTTPException):
        return exception

    else:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Internal server error: {type(exception).__name__}",
            headers={"X-Error-Code": "INTERNAL_SERVER_ERROR"}
        )
