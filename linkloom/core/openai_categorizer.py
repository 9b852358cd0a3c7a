"""
OpenAI Categorizer

Sends one batch of bookmarks to the OpenAI chat completions API in JSON
mode and maps the returned category -> bookmark numbers back onto the
batch's bookmarks.
"""

import logging
from typing import Dict, List, Optional, Sequence
from urllib.parse import urlparse

import httpx

from ..utils.error_handler import CategorizationError
from ..utils.rate_limiter import RateLimiter
from .base_api_client import BaseAPIClient
from .batch_types import Batch
from .data_models import Bookmark
from .structured_output import OPENAI_RESPONSE_FORMAT, parse_assignments_response

SYSTEM_PROMPT = (
    "You are a helpful assistant that organizes bookmarks into folders. "
    "Return only JSON."
)


class OpenAICategorizer(BaseAPIClient):
    """
    OpenAI-backed categorizer.

    Example:
        >>> async with OpenAICategorizer(api_key, categories=["Recipes"]) as classify:
        ...     mapping = await classify(batch)
    """

    BASE_URL = "https://api.openai.com/v1/chat/completions"
    MODEL = "gpt-4o-mini"

    # Characters of the title sent per bookmark, to bound prompt size
    MAX_TITLE_LENGTH = 120

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        categories: Optional[Sequence[str]] = None,
        timeout: float = 60.0,
        max_retries: int = 3,
        requests_per_minute: int = 60,
        target_count: Optional[int] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize OpenAI categorizer.

        Args:
            api_key: OpenAI API key
            model: Chat model name
            categories: Preferred labels shared by every batch so that
                batches running in parallel converge on the same labels
            timeout: Request timeout in seconds
            max_retries: Retry attempts for rate limits and server errors
            requests_per_minute: Request pacing shared by all batches
            target_count: Approximate number of categories to aim for
            base_url: Override for the completions endpoint
            transport: Optional httpx transport (tests)
        """
        super().__init__(
            api_key, timeout=timeout, max_retries=max_retries, transport=transport
        )
        self.model = model or self.MODEL
        self.categories = [c.strip() for c in (categories or []) if c.strip()]
        self.target_count = target_count
        self.url = base_url or self.BASE_URL
        self.rate_limiter = RateLimiter(
            requests_per_minute=requests_per_minute, name="OpenAI"
        )

        # Token usage tracking
        self.total_input_tokens = 0
        self.total_output_tokens = 0

        self.logger = logging.getLogger(__name__)

    def _get_auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _create_messages(self, batch: Batch) -> List[Dict[str, str]]:
        """Build chat messages listing the batch's bookmarks by number."""
        lines = []
        for number, bookmark in enumerate(batch.bookmarks, start=1):
            title = (bookmark.title or "Untitled")[: self.MAX_TITLE_LENGTH]
            domain = urlparse(bookmark.url).netloc or "unknown"
            lines.append(f"{number}. {title} | {domain} | {bookmark.url}")

        prompt = [
            "Group the following bookmarks into semantic categories.",
            "",
            "Bookmarks:",
            *lines,
            "",
            "Rules:",
            "1. Assign every bookmark number to exactly one category.",
            "2. Use short, specific category names (e.g. \"Winter Sports\").",
            "3. Do not invent bookmark numbers that are not listed.",
        ]
        rule = 4
        if self.categories:
            prompt.append(
                f"{rule}. Prefer these existing categories when they fit: "
                + ", ".join(self.categories)
            )
            rule += 1
        if self.target_count:
            prompt.append(
                f"{rule}. Aim for about {self.target_count} categories across "
                "the whole collection; use broad groups rather than narrow ones."
            )
        prompt += [
            "",
            'Return a JSON object: {"categories": {"Category Name": [1, 2]}}',
        ]

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "\n".join(prompt)},
        ]

    async def categorize(self, batch: Batch) -> Dict[str, List[Bookmark]]:
        """
        Categorize one batch.

        Raises:
            CategorizationError: On rate limit timeout or unusable response
            APIClientError: On API failures after retries
        """
        if not batch.bookmarks:
            return {}

        if not await self.rate_limiter.acquire(timeout=self.timeout, key=batch.index):
            raise CategorizationError("Rate limit timeout for OpenAI API")

        request_data = {
            "model": self.model,
            "messages": self._create_messages(batch),
            "response_format": OPENAI_RESPONSE_FORMAT,
            "temperature": 0.2,
        }

        response = await self._make_request(
            method="POST", url=self.url, data=request_data
        )

        choices = response.get("choices") or []
        if not choices:
            raise CategorizationError("Empty response from OpenAI API")
        content = (choices[0].get("message") or {}).get("content") or ""

        usage = response.get("usage") or {}
        self.total_input_tokens += usage.get("prompt_tokens", 0)
        self.total_output_tokens += usage.get("completion_tokens", 0)

        assignments = parse_assignments_response(content)

        mapping: Dict[str, List[Bookmark]] = {}
        for label, numbers in assignments.categories.items():
            for number in numbers:
                if 1 <= number <= len(batch.bookmarks):
                    mapping.setdefault(label, []).append(batch.bookmarks[number - 1])
                else:
                    self.logger.debug(
                        f"Batch {batch.index}: ignoring unknown bookmark number {number}"
                    )

        self.logger.debug(
            f"Batch {batch.index}: {len(mapping)} categories for "
            f"{len(batch.bookmarks)} bookmarks"
        )
        return mapping

    def get_usage_statistics(self) -> Dict[str, int]:
        return {
            **self.get_statistics(),
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
        }


__all__ = ["OpenAICategorizer"]
