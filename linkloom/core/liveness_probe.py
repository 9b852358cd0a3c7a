"""
Liveness Probe

Issues one HTTP GET per URL with a short timeout, classifies the result as
ok / dead / error, and for live pages extracts metadata from the document.
The probe never raises: every network condition becomes a tagged
``Metadata`` value. It performs no retries itself; ``retry_transient``
wraps a probe when the caller wants transient errors re-attempted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional
from urllib.parse import urlparse

import aiohttp

from .data_models import LinkStatus, Metadata
from .failure_classifier import (
    NO_RESPONSE_STATUS_CODE,
    classify_exception,
    classify_status_code,
)
from .metadata_extractor import extract_metadata

ProbeFunction = Callable[[str], Awaitable[Metadata]]

DEFAULT_TIMEOUT = 2.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; LinkLoom/1.0; +https://linkloom.app)"

# Only the start of a document is needed for head metadata
MAX_CONTENT_BYTES = 1024 * 1024

SUPPORTED_SCHEMES = ("http", "https")

logger = logging.getLogger(__name__)


def is_probeable_url(url: str) -> bool:
    """Check that a URL is a well-formed http(s) URL worth a network call."""
    if not url or not isinstance(url, str):
        return False

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False

    return parsed.scheme.lower() in SUPPORTED_SCHEMES and bool(parsed.netloc)


class LivenessProbe:
    """
    Async HTTP liveness probe with metadata extraction.

    Use as an async context manager so the underlying aiohttp session is
    closed, then call the instance (or ``probe``) with a URL.

    Example:
        >>> async with LivenessProbe(timeout=2.0) as probe:
        ...     metadata = await probe("https://example.com")
        >>> metadata.status
        <LinkStatus.OK: 'ok'>
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        verify_ssl: bool = True,
        max_connections: int = 100,
        max_content_bytes: int = MAX_CONTENT_BYTES,
    ):
        """
        Initialize the probe.

        Args:
            timeout: Per-request timeout in seconds
            user_agent: User-Agent header sent with every request
            verify_ssl: Whether to verify SSL certificates
            max_connections: Connection pool size
            max_content_bytes: Maximum number of body bytes read for parsing
        """
        self.timeout = timeout
        self.user_agent = user_agent
        self.verify_ssl = verify_ssl
        self.max_connections = max_connections
        self.max_content_bytes = max_content_bytes

        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "LivenessProbe":
        await self._initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _initialize_session(self) -> None:
        """Initialize aiohttp session"""
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=self.max_connections,
                limit_per_host=5,
                ttl_dns_cache=300,
                ssl=self.verify_ssl,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
            )

    async def close(self) -> None:
        """Close the session"""
        if self._session:
            await self._session.close()
            self._session = None

    async def __call__(self, url: str) -> Metadata:
        return await self.probe(url)

    async def probe(self, url: str) -> Metadata:
        """
        Probe a single URL.

        Args:
            url: URL to request

        Returns:
            Metadata tagged ok / dead / error; never raises
        """
        if not is_probeable_url(url):
            logger.debug(f"Not probing unsupported or malformed URL: {url!r}")
            return Metadata(
                url=url, status=LinkStatus.DEAD, status_code=NO_RESPONSE_STATUS_CODE
            )

        start_time = time.time()
        try:
            if self._session is None:
                await self._initialize_session()

            async with self._session.get(
                url,
                allow_redirects=True,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as response:
                metadata = await self._build_metadata(url, response)

        except Exception as e:
            status, status_code = classify_exception(e)
            logger.debug(
                f"Probe {url} failed after {time.time() - start_time:.2f}s: "
                f"{type(e).__name__}: {e} -> {status.value} ({status_code})"
            )
            return Metadata(url=url, status=status, status_code=status_code)

        logger.debug(
            f"Probe {url} -> {metadata.status.value} ({metadata.status_code}) "
            f"in {time.time() - start_time:.2f}s"
        )
        return metadata

    async def _build_metadata(
        self, url: str, response: aiohttp.ClientResponse
    ) -> Metadata:
        status = classify_status_code(response.status)
        if status is not LinkStatus.OK:
            return Metadata(url=url, status=status, status_code=response.status)

        content_type = response.headers.get("Content-Type", "").lower()
        if content_type and "html" not in content_type and "xml" not in content_type:
            # Live, but nothing to parse
            return Metadata(url=url, status=status, status_code=response.status)

        html = await self._read_text(response)
        page = extract_metadata(html)

        return Metadata(
            url=url,
            status=status,
            status_code=response.status,
            title=page.title,
            description=page.description,
            image=page.image,
            keywords=page.keywords,
            h1=page.h1,
            structured_data=page.structured_data,
        )

    async def _read_text(self, response: aiohttp.ClientResponse) -> str:
        """Read at most max_content_bytes of the body and decode it."""
        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(64 * 1024):
            chunks.append(chunk)
            size += len(chunk)
            if size >= self.max_content_bytes:
                break

        raw = b"".join(chunks)[: self.max_content_bytes]
        encoding = response.charset or "utf-8"
        try:
            return raw.decode(encoding, errors="replace")
        except LookupError:
            return raw.decode("utf-8", errors="replace")


def retry_transient(
    probe: ProbeFunction, max_retries: int, retry_delay: float = 1.0
) -> ProbeFunction:
    """
    Wrap a probe so ``error`` results are re-attempted with backoff.

    ``dead`` and ``ok`` results are returned immediately. After
    ``max_retries`` extra attempts the last result is returned as is.

    Args:
        probe: Probe function to wrap
        max_retries: Number of additional attempts for transient errors
        retry_delay: Base delay in seconds, doubled after each attempt
    """
    if max_retries <= 0:
        return probe

    async def probe_with_retries(url: str) -> Metadata:
        metadata = await probe(url)
        attempt = 0
        while metadata.is_retryable and attempt < max_retries:
            delay = retry_delay * (2**attempt)
            logger.debug(
                f"Transient {metadata.status_code} for {url}, retry "
                f"{attempt + 1}/{max_retries} in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
            attempt += 1
            metadata = await probe(url)
        return metadata

    return probe_with_retries


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_USER_AGENT",
    "LivenessProbe",
    "ProbeFunction",
    "is_probeable_url",
    "retry_transient",
]
