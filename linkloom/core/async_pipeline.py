"""
Async Pipeline

The two entry points of the core:

- ``run_liveness_scan``: probe every bookmark's URL with at most K probes
  in flight and return one entry per bookmark, in input order.
- ``run_categorization``: chunk bookmarks into batches, classify up to K
  batches at once and merge the fragments into a single Grouping.

Both validate their limits before anything is launched and neither lets a
per-unit failure abort the run.
"""

import logging
from typing import List, Optional, Sequence

from .aggregator import GroupingAggregator, collect_scan_entries
from .batch_types import Outcome, ScanEntry
from .cancellation import CancellationToken
from .categorizer import ClassifyFunction, classify_operation
from .chunker import chunk_bookmarks
from .data_models import Bookmark, Grouping
from .liveness_probe import (
    DEFAULT_TIMEOUT,
    LivenessProbe,
    ProbeFunction,
    retry_transient,
)
from .scheduler import (
    CompletionCallback,
    ConcurrencyLimitedScheduler,
    as_unit_operation,
    validate_limit,
)

logger = logging.getLogger(__name__)


async def run_liveness_scan(
    bookmarks: Sequence[Bookmark],
    concurrency_limit: int,
    probe: Optional[ProbeFunction] = None,
    *,
    max_retries: int = 0,
    retry_delay: float = 1.0,
    timeout: float = DEFAULT_TIMEOUT,
    cancel_token: Optional[CancellationToken] = None,
    on_unit_complete: Optional[CompletionCallback] = None,
) -> List[ScanEntry]:
    """
    Probe every bookmark and return results aligned with the input.

    Args:
        bookmarks: Bookmarks to scan; duplicates are probed separately
        concurrency_limit: Maximum number of probes in flight (K)
        probe: Injected probe; a LivenessProbe with ``timeout`` is created
            and closed here when omitted
        max_retries: Extra attempts for results tagged ``error``
        retry_delay: Base backoff delay in seconds between retries
        timeout: Per-request timeout for the default probe
        cancel_token: Optional token; probes not yet started when it is
            cancelled resolve to ``Failure(kind="cancelled")``
        on_unit_complete: Optional ``(index, outcome)`` progress callback

    Returns:
        One ScanEntry per bookmark, in input order

    Raises:
        ConfigurationError: If concurrency_limit is not a positive integer
    """
    scheduler = ConcurrencyLimitedScheduler(
        concurrency_limit, on_unit_complete=on_unit_complete
    )
    bookmarks = list(bookmarks)
    if not bookmarks:
        return []

    logger.info(
        f"Starting liveness scan of {len(bookmarks)} bookmarks "
        f"(concurrency {scheduler.limit}, retries {max_retries})"
    )

    if probe is None:
        async with LivenessProbe(timeout=timeout) as default_probe:
            outcomes = await _scan(
                scheduler, bookmarks, default_probe, max_retries, retry_delay, cancel_token
            )
    else:
        outcomes = await _scan(
            scheduler, bookmarks, probe, max_retries, retry_delay, cancel_token
        )

    return collect_scan_entries(bookmarks, outcomes)


async def _scan(
    scheduler: ConcurrencyLimitedScheduler,
    bookmarks: List[Bookmark],
    probe: ProbeFunction,
    max_retries: int,
    retry_delay: float,
    cancel_token: Optional[CancellationToken],
) -> List[Outcome]:
    probe = retry_transient(probe, max_retries=max_retries, retry_delay=retry_delay)

    async def probe_bookmark(bookmark: Bookmark):
        return await probe(bookmark.url)

    operation = as_unit_operation(probe_bookmark, cancel_token=cancel_token)
    return await scheduler.run(bookmarks, operation)


async def run_categorization(
    bookmarks: Sequence[Bookmark],
    chunk_size: int,
    concurrency_limit: int,
    classify: ClassifyFunction,
    *,
    timeout: Optional[float] = None,
    cancel_token: Optional[CancellationToken] = None,
    on_unit_complete: Optional[CompletionCallback] = None,
) -> Grouping:
    """
    Group bookmarks into categories using an injected categorizer.

    Args:
        bookmarks: Bookmarks to categorize
        chunk_size: Maximum bookmarks per batch (B)
        concurrency_limit: Maximum number of batches in flight (K)
        classify: Categorizer call for one batch
        timeout: Optional limit in seconds for one categorizer call
        cancel_token: Optional token; batches not yet started when it is
            cancelled go to Other
        on_unit_complete: Optional ``(batch_index, outcome)`` progress callback

    Returns:
        Grouping holding every input bookmark exactly once

    Raises:
        ConfigurationError: If chunk_size or concurrency_limit is invalid
    """
    validate_limit(chunk_size, name="chunk size")
    validate_limit(concurrency_limit)

    batches = chunk_bookmarks(list(bookmarks), chunk_size)
    aggregator = GroupingAggregator(batches)

    def record(index: int, outcome: Outcome) -> None:
        aggregator.add(batches[index].index, outcome)
        if on_unit_complete is not None:
            on_unit_complete(index, outcome)

    scheduler = ConcurrencyLimitedScheduler(concurrency_limit, on_unit_complete=record)

    logger.info(
        f"Categorizing {len(bookmarks)} bookmarks in {len(batches)} batches "
        f"(chunk size {chunk_size}, concurrency {concurrency_limit})"
    )

    operation = classify_operation(classify, timeout=timeout, cancel_token=cancel_token)
    await scheduler.run(batches, operation)

    grouping = aggregator.finalize()
    if aggregator.failed_batches:
        logger.warning(
            f"{len(aggregator.failed_batches)} of {len(batches)} batches failed: "
            f"{aggregator.failed_batches}"
        )
    logger.info(
        f"Categorization finished: {len(grouping.labels)} categories, "
        f"{len(grouping.other)} bookmarks in Other"
    )
    return grouping


__all__ = ["run_liveness_scan", "run_categorization"]
