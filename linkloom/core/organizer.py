"""
Organize: scan, then categorize what is still alive.

Chains the two pipeline entry points the way a full clean-up run needs
them. Every bookmark is checked first; bookmarks whose link is dead are set
aside as broken links, the rest are grouped into categories. Bookmarks
sharing a URL are counted as duplicates but still placed individually.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .async_pipeline import run_categorization, run_liveness_scan
from .batch_types import ScanEntry
from .cancellation import CancellationToken
from .categorizer import ClassifyFunction
from .data_models import Bookmark, Grouping, LinkStatus
from .liveness_probe import DEFAULT_TIMEOUT, ProbeFunction
from .scheduler import CompletionCallback, validate_limit

logger = logging.getLogger(__name__)

BROKEN_LINKS_LABEL = "Broken Links"


def find_duplicates(bookmarks: Sequence[Bookmark]) -> List[Bookmark]:
    """
    Return every bookmark whose URL already appeared earlier in the input.

    The first occurrence of a URL is not a duplicate; each later occurrence is.
    """
    seen = set()
    duplicates = []
    for bookmark in bookmarks:
        if bookmark.url in seen:
            duplicates.append(bookmark)
        else:
            seen.add(bookmark.url)
    return duplicates


def split_broken(entries: Sequence[ScanEntry]) -> Tuple[List[Bookmark], List[ScanEntry]]:
    """
    Split scan entries into bookmarks to categorize and broken entries.

    Only entries whose metadata is tagged dead count as broken. Transient
    errors and unit failures say nothing definite about the link, so those
    bookmarks stay in the categorization input.
    """
    live: List[Bookmark] = []
    broken: List[ScanEntry] = []
    for entry in entries:
        metadata = entry.metadata
        if metadata is not None and metadata.status is LinkStatus.DEAD:
            broken.append(entry)
        else:
            live.append(entry.bookmark)
    return live, broken


@dataclass
class OrganizeResult:
    """Outcome of an organize run."""

    grouping: Grouping
    broken: List[ScanEntry] = field(default_factory=list)
    duplicates: List[Bookmark] = field(default_factory=list)
    total: int = 0

    @property
    def broken_count(self) -> int:
        return len(self.broken)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)

    def summary(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "categorized": len(self.grouping),
            "categories": len(self.grouping.labels),
            "other": len(self.grouping.other),
            "broken": self.broken_count,
            "duplicates": self.duplicate_count,
        }

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Categories in grouping order, then Other, then Broken Links."""
        result = self.grouping.to_dict()
        result[BROKEN_LINKS_LABEL] = [
            {
                **entry.bookmark.to_dict(),
                "status_code": entry.metadata.status_code,
            }
            for entry in self.broken
        ]
        return result


async def run_organize(
    bookmarks: Sequence[Bookmark],
    classify: ClassifyFunction,
    *,
    scan_concurrency: int,
    chunk_size: int,
    categorize_concurrency: int,
    probe: Optional[ProbeFunction] = None,
    max_retries: int = 0,
    retry_delay: float = 1.0,
    timeout: float = DEFAULT_TIMEOUT,
    categorize_timeout: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
    on_scan_complete: Optional[CompletionCallback] = None,
    on_batch_complete: Optional[CompletionCallback] = None,
) -> OrganizeResult:
    """
    Scan every bookmark, then categorize the ones whose link is not dead.

    Args:
        bookmarks: Bookmarks to organize
        classify: Categorizer call for one batch
        scan_concurrency: Maximum probes in flight
        chunk_size: Maximum bookmarks per categorizer batch
        categorize_concurrency: Maximum categorizer batches in flight
        probe: Injected probe; a default LivenessProbe is used when omitted
        max_retries: Extra probe attempts for transient errors
        retry_delay: Base backoff delay in seconds between probe retries
        timeout: Per-request timeout for the default probe
        categorize_timeout: Optional limit in seconds for one categorizer call
        cancel_token: Optional token shared by both stages
        on_scan_complete: Optional ``(index, outcome)`` callback per probe
        on_batch_complete: Optional ``(index, outcome)`` callback per batch

    Returns:
        OrganizeResult; every input bookmark is either in the grouping or
        among the broken entries, exactly once

    Raises:
        ConfigurationError: If any limit or the chunk size is invalid
    """
    validate_limit(scan_concurrency)
    validate_limit(chunk_size, name="chunk size")
    validate_limit(categorize_concurrency)

    bookmarks = list(bookmarks)
    duplicates = find_duplicates(bookmarks)
    if duplicates:
        logger.info(f"Found {len(duplicates)} duplicate bookmarks by URL")

    entries = await run_liveness_scan(
        bookmarks,
        scan_concurrency,
        probe,
        max_retries=max_retries,
        retry_delay=retry_delay,
        timeout=timeout,
        cancel_token=cancel_token,
        on_unit_complete=on_scan_complete,
    )
    live, broken = split_broken(entries)
    if broken:
        logger.info(f"Setting aside {len(broken)} broken links")

    grouping = await run_categorization(
        live,
        chunk_size,
        categorize_concurrency,
        classify,
        timeout=categorize_timeout,
        cancel_token=cancel_token,
        on_unit_complete=on_batch_complete,
    )

    return OrganizeResult(
        grouping=grouping,
        broken=broken,
        duplicates=duplicates,
        total=len(bookmarks),
    )


__all__ = [
    "BROKEN_LINKS_LABEL",
    "OrganizeResult",
    "find_duplicates",
    "run_organize",
    "split_broken",
]
