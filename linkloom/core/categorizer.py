"""
Batch Classification

Wraps one call to an external categorizer (language model or rules engine)
as a scheduler unit operation. The categorizer is injected; this module
only enforces the contract around it:

- every bookmark of the batch is placed exactly once in the batch's
  grouping fragment, bookmarks the categorizer left out go to "Other";
- a call that errors or times out never raises, it resolves to a
  ``Failure`` tagged with the batch index.

Also provides ``KeywordCategorizer``, the offline rules-based backend, and
``create_categorizer`` to build the backend named in the configuration.
"""

import asyncio
import logging
import re
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence
from urllib.parse import urlparse

from ..utils.error_handler import ConfigurationError
from .batch_types import Batch, Failure, Outcome, Success
from .cancellation import CancellationToken
from .data_models import Bookmark, Grouping

ClassifyFunction = Callable[[Batch], Awaitable[Mapping[str, Sequence[Bookmark]]]]

logger = logging.getLogger(__name__)


def build_fragment(batch: Batch, mapping: Mapping[str, Sequence[Bookmark]]) -> Grouping:
    """
    Turn a categorizer mapping into the batch's grouping fragment.

    Each batch member is placed once, under the first label that lists it.
    Bookmarks that are not members of the batch, or are listed more often
    than they occur in the batch, are ignored. Unlisted members go to Other.

    Args:
        batch: The batch that was categorized
        mapping: Category label -> bookmarks returned by the categorizer

    Returns:
        Grouping fragment holding exactly the batch's bookmarks
    """
    members = list(batch.bookmarks)
    placed = [False] * len(members)
    fragment = Grouping()

    for label, bookmarks in mapping.items():
        for bookmark in bookmarks:
            position = _find_unplaced(members, placed, bookmark)
            if position is None:
                logger.debug(
                    f"Batch {batch.index}: ignoring {bookmark!r} under {label!r}"
                )
                continue
            placed[position] = True
            fragment.add(label, members[position])

    fragment.add_other([m for m, was_placed in zip(members, placed) if not was_placed])
    return fragment


def _find_unplaced(
    members: List[Bookmark], placed: List[bool], bookmark: Bookmark
) -> Optional[int]:
    for position, member in enumerate(members):
        if not placed[position] and (member is bookmark or member == bookmark):
            return position
    return None


def classify_operation(
    classify: ClassifyFunction,
    timeout: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> Callable[[Batch], Awaitable[Outcome]]:
    """
    Build the scheduler unit operation for one categorization batch.

    Args:
        classify: Injected categorizer call
        timeout: Optional limit in seconds for one call
        cancel_token: Optional shared cancellation token, checked before
            the categorizer is called

    Returns:
        Async operation mapping a Batch to Success(Grouping) or a Failure
        tagged with the batch index; it never raises
    """

    async def operation(batch: Batch) -> Outcome:
        if cancel_token is not None and cancel_token.is_cancelled:
            return Failure(kind="cancelled", message=cancel_token.reason, index=batch.index)

        try:
            if timeout is not None:
                mapping = await asyncio.wait_for(classify(batch), timeout=timeout)
            else:
                mapping = await classify(batch)
        except asyncio.TimeoutError:
            return Failure(
                kind="timeout",
                message=f"Categorizer timed out after {timeout}s",
                index=batch.index,
            )
        except Exception as e:
            return Failure(kind=type(e).__name__, message=str(e), index=batch.index)

        if not isinstance(mapping, Mapping):
            return Failure(
                kind="invalid_response",
                message=f"Categorizer returned {type(mapping).__name__}, expected a mapping",
                index=batch.index,
            )

        return Success(build_fragment(batch, mapping))

    return operation


class KeywordCategorizer:
    """
    Offline rules-based categorizer.

    Scores each bookmark's title and URL against keyword and domain
    patterns per category. A bookmark with no match is left out of the
    returned mapping and so ends up in "Other".
    """

    CATEGORY_PATTERNS = {
        "Development": {
            "keywords": [
                "programming", "coding", "developer", "software", "github", "api",
                "framework", "python", "javascript", "typescript", "docker",
                "kubernetes", "react", "django", "rust",
            ],
            "domains": ["github.com", "gitlab.com", "stackoverflow.com", "dev.to", "pypi.org"],
        },
        "AI & Machine Learning": {
            "keywords": [
                "ai", "artificial intelligence", "machine learning", "deep learning",
                "neural", "llm", "pytorch", "tensorflow", "transformer",
            ],
            "domains": ["arxiv.org", "paperswithcode.com", "huggingface.co"],
        },
        "Design": {
            "keywords": ["design", "ux", "ui", "graphic", "typography", "color", "layout", "figma"],
            "domains": ["dribbble.com", "behance.net", "figma.com"],
        },
        "Business": {
            "keywords": ["business", "startup", "entrepreneur", "marketing", "finance", "strategy"],
            "domains": ["forbes.com", "bloomberg.com", "businessinsider.com"],
        },
        "Education": {
            "keywords": ["tutorial", "course", "learn", "education", "training", "guide"],
            "domains": ["coursera.org", "udemy.com", "edx.org", "khanacademy.org"],
        },
        "News & Media": {
            "keywords": ["news", "article", "blog", "media", "journalism"],
            "domains": ["medium.com", "nytimes.com", "bbc.com", "bbc.co.uk", "reddit.com"],
        },
        "Tools & Resources": {
            "keywords": ["tool", "utility", "resource", "generator", "converter", "calculator"],
            "domains": ["codepen.io", "jsfiddle.net", "regex101.com"],
        },
        "Reference": {
            "keywords": ["documentation", "docs", "reference", "wiki", "encyclopedia", "dictionary"],
            "domains": ["wikipedia.org", "docs.python.org", "developer.mozilla.org"],
        },
    }

    # Used instead of the fine categories when few categories are wanted
    BROAD_CATEGORIES = {
        "Work & Tech": [
            "Development", "AI & Machine Learning", "Design", "Business", "Tools & Resources",
        ],
        "News & Learning": ["News & Media", "Education", "Reference"],
    }
    BROAD_TARGET_THRESHOLD = 5

    KEYWORD_SCORE = 2
    DOMAIN_SCORE = 5

    def __init__(
        self,
        patterns: Optional[Dict[str, Dict[str, List[str]]]] = None,
        target_count: Optional[int] = None,
    ):
        """
        Args:
            patterns: Category -> {"keywords": [...], "domains": [...]} rules
            target_count: Desired number of categories; at or below
                BROAD_TARGET_THRESHOLD the default rules are merged into
                BROAD_CATEGORIES
        """
        self.target_count = target_count
        self.patterns = patterns or self.CATEGORY_PATTERNS
        if (
            patterns is None
            and target_count is not None
            and target_count <= self.BROAD_TARGET_THRESHOLD
        ):
            self.patterns = self._merge_patterns(self.BROAD_CATEGORIES)
        self._keyword_regexes = {
            category: [
                re.compile(rf"\b{re.escape(keyword.lower())}\b")
                for keyword in rules.get("keywords", [])
            ]
            for category, rules in self.patterns.items()
        }

    @classmethod
    def _merge_patterns(
        cls, groups: Dict[str, List[str]]
    ) -> Dict[str, Dict[str, List[str]]]:
        merged = {}
        for broad, members in groups.items():
            rules = {"keywords": [], "domains": []}
            for member in members:
                for kind in rules:
                    rules[kind].extend(cls.CATEGORY_PATTERNS[member][kind])
            merged[broad] = rules
        return merged

    async def __call__(self, batch: Batch) -> Dict[str, List[Bookmark]]:
        mapping: Dict[str, List[Bookmark]] = {}
        for bookmark in batch.bookmarks:
            category = self.determine_category(bookmark)
            if category is not None:
                mapping.setdefault(category, []).append(bookmark)
        return mapping

    def determine_category(self, bookmark: Bookmark) -> Optional[str]:
        """Return the best scoring category, or None when nothing matches."""
        domain = _extract_domain(bookmark.url)
        text = f"{bookmark.title} {bookmark.url}".lower()

        best_category = None
        best_score = 0
        for category, rules in self.patterns.items():
            score = sum(
                self.KEYWORD_SCORE
                for regex in self._keyword_regexes[category]
                if regex.search(text)
            )
            if any(
                domain == d or domain.endswith("." + d) for d in rules.get("domains", [])
            ):
                score += self.DOMAIN_SCORE

            if score > best_score:
                best_category, best_score = category, score

        return best_category


def _extract_domain(url: str) -> str:
    try:
        domain = urlparse(url).netloc.lower()
    except ValueError:
        return ""
    domain = domain.split("@")[-1].split(":")[0]
    return domain[4:] if domain.startswith("www.") else domain


def create_categorizer(
    engine: str,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    categories: Optional[Sequence[str]] = None,
    timeout: float = 60.0,
    requests_per_minute: int = 60,
    target_count: Optional[int] = None,
):
    """
    Create the categorizer backend for an engine name.

    Args:
        engine: "local" for KeywordCategorizer, "openai" for OpenAICategorizer
        api_key: Required for "openai"
        target_count: Desired number of categories (granularity)

    Raises:
        ConfigurationError: On unknown engine or missing API key
    """
    if engine == "local":
        return KeywordCategorizer(target_count=target_count)

    if engine == "openai":
        if not api_key:
            raise ConfigurationError(
                "OpenAI engine selected but no API key provided "
                "(set OPENAI_API_KEY or ai.openai_api_key)"
            )
        from .openai_categorizer import OpenAICategorizer

        return OpenAICategorizer(
            api_key,
            model=model,
            categories=categories,
            timeout=timeout,
            requests_per_minute=requests_per_minute,
            target_count=target_count,
        )

    raise ConfigurationError(f"Unknown categorizer engine: {engine!r}")


__all__ = [
    "ClassifyFunction",
    "KeywordCategorizer",
    "build_fragment",
    "classify_operation",
    "create_categorizer",
]
