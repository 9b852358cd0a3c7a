"""
Base API Client for Categorizer Services

This module provides a common base for HTTP categorizer backends with
shared functionality for requests, retry with backoff, error mapping and
resource management.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from ..utils.error_handler import (
    APIClientError,
    AuthenticationError,
    RateLimitError,
    ServiceUnavailableError,
)
from .batch_types import Batch
from .data_models import Bookmark

RETRYABLE_STATUS_CODES = {408, 423, 429, 500, 502, 503, 504}


class BaseAPIClient(ABC):
    """
    Abstract base class for HTTP categorizer clients.

    Provides common functionality for HTTP requests, error handling,
    retry logic, and resource management. Instances are callable with a
    ``Batch`` so they can be injected as the classify operation.
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = 60.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the API client.

        Args:
            api_key: API key for authentication
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff (seconds)
            max_delay: Maximum delay between retries (seconds)
            transport: Optional httpx transport (used to plug in mock transports)
        """
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.transport = transport

        self.logger = logging.getLogger(self.__class__.__name__)

        # Created in __aenter__
        self._client: Optional[httpx.AsyncClient] = None

        # Request statistics
        self.request_count = 0
        self.error_count = 0
        self.retry_count = 0

    async def __aenter__(self) -> "BaseAPIClient":
        await self._initialize_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._cleanup_client()

    async def _initialize_client(self) -> None:
        """Initialize the HTTP client with appropriate configuration."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                limits=httpx.Limits(
                    max_keepalive_connections=10,
                    max_connections=20,
                    keepalive_expiry=30.0,
                ),
                transport=self.transport,
            )

    async def _cleanup_client(self) -> None:
        """Clean up HTTP client resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_common_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": "LinkLoom/1.0",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

    def _get_auth_headers(self) -> Dict[str, str]:
        # Subclasses override
        return {}

    def _calculate_retry_delay(self, attempt: int) -> float:
        """
        Calculate retry delay using exponential backoff with jitter.

        Args:
            attempt: Current retry attempt number (0-based)
        """
        delay = min(self.base_delay * (2**attempt), self.max_delay)
        # Jitter to prevent thundering herd
        jitter = delay * 0.1 * (0.5 - asyncio.get_running_loop().time() % 1)
        return max(delay + jitter, 0.0)

    def _should_retry(self, exception: Exception, attempt: int) -> bool:
        """Determine if a failed request should be retried."""
        if attempt >= self.max_retries:
            return False

        if isinstance(exception, (RateLimitError, ServiceUnavailableError)):
            return True

        if isinstance(exception, httpx.HTTPStatusError):
            return exception.response.status_code in RETRYABLE_STATUS_CODES

        return isinstance(exception, httpx.TransportError)

    def _sanitize_error_message(self, message: str) -> str:
        """Remove the API key from an error message."""
        if self.api_key and self.api_key in message:
            return message.replace(self.api_key, "***")
        return message

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid API key or unauthorized access")
        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded")
        if response.status_code >= 500:
            raise ServiceUnavailableError(
                f"Service unavailable: {response.status_code}"
            )
        response.raise_for_status()

    async def _make_request(
        self,
        method: str,
        url: str,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request with retry logic and error handling.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            data: Request data (JSON encoded)
            headers: Additional headers

        Returns:
            Response data as dictionary

        Raises:
            APIClientError: On API errors
            RateLimitError: On rate limit exceeded
            AuthenticationError: On authentication failure
            ServiceUnavailableError: On service unavailability
        """
        if not self._client:
            raise APIClientError("Client not initialized - use async context manager")

        request_headers = self._get_common_headers()
        request_headers.update(self._get_auth_headers())
        if headers:
            request_headers.update(headers)

        attempt = 0
        while True:
            try:
                self.request_count += 1
                response = await self._client.request(
                    method=method,
                    url=url,
                    json=data,
                    headers=request_headers,
                )
                self._raise_for_status(response)

                try:
                    return response.json()
                except ValueError as e:
                    raise APIClientError(f"Invalid JSON response: {e}")

            except (APIClientError, httpx.HTTPError) as e:
                self.error_count += 1
                sanitized_msg = self._sanitize_error_message(str(e))

                if self._should_retry(e, attempt):
                    delay = self._calculate_retry_delay(attempt)
                    self.retry_count += 1
                    self.logger.warning(
                        f"Request failed (attempt {attempt + 1}/"
                        f"{self.max_retries + 1}): {sanitized_msg}. "
                        f"Retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    attempt += 1
                    continue

                self.logger.error(f"Request failed permanently: {sanitized_msg}")
                if isinstance(e, APIClientError):
                    raise
                raise APIClientError(sanitized_msg) from e

    def get_statistics(self) -> Dict[str, Any]:
        """Get client statistics."""
        return {
            "request_count": self.request_count,
            "error_count": self.error_count,
            "retry_count": self.retry_count,
            "success_rate": (
                (self.request_count - self.error_count)
                / max(self.request_count, 1)
                * 100
            ),
        }

    async def __call__(self, batch: Batch) -> Dict[str, List[Bookmark]]:
        return await self.categorize(batch)

    @abstractmethod
    async def categorize(self, batch: Batch) -> Dict[str, List[Bookmark]]:
        """
        Group the bookmarks of one batch by category label.

        Args:
            batch: Batch to categorize

        Returns:
            Mapping of category label to bookmarks of this batch; bookmarks
            may be left out
        """
        pass


__all__ = ["BaseAPIClient", "RETRYABLE_STATUS_CODES"]
