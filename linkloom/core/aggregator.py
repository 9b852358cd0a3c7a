"""
Result Aggregation

Turns the scheduler's per-unit outcomes into the results handed back to
callers: an input-aligned list of scan entries for liveness scans, and one
merged ``Grouping`` for categorization runs. No bookmark is ever dropped;
failed batches contribute their whole bookmark set to "Other".
"""

import logging
from typing import Dict, List, Sequence

from .batch_types import Batch, Failure, Outcome, ScanEntry
from .data_models import Bookmark, Grouping

logger = logging.getLogger(__name__)


def collect_scan_entries(
    bookmarks: Sequence[Bookmark], outcomes: Sequence[Outcome]
) -> List[ScanEntry]:
    """
    Pair each bookmark with its probe result, keeping input order.

    Args:
        bookmarks: Bookmarks in submission order
        outcomes: Scheduler outcomes aligned with ``bookmarks``

    Returns:
        One ScanEntry per bookmark holding its Metadata or its Failure
    """
    if len(bookmarks) != len(outcomes):
        raise ValueError(
            f"Outcome count {len(outcomes)} does not match "
            f"bookmark count {len(bookmarks)}"
        )

    entries = []
    for index, (bookmark, outcome) in enumerate(zip(bookmarks, outcomes)):
        if outcome is None:
            outcome = _missing_outcome(index)
        entries.append(ScanEntry(bookmark, outcome.value if outcome.ok else outcome))
    return entries


def _missing_outcome(index: int) -> Failure:
    return Failure(kind="missing_outcome", message="Unit produced no outcome", index=index)


class GroupingAggregator:
    """
    Merges per-batch grouping fragments into one run-level Grouping.

    Fragments may be added in any completion order; ``finalize`` merges them
    in batch index order so each label's bookmarks follow submission order.
    """

    def __init__(self, batches: Sequence[Batch]):
        self.batches = list(batches)
        self._outcomes: Dict[int, Outcome] = {}

    def add(self, batch_index: int, outcome: Outcome) -> None:
        """Record the outcome of one batch."""
        if batch_index in self._outcomes:
            logger.warning(f"Batch {batch_index} reported twice; keeping the first")
            return
        self._outcomes[batch_index] = outcome

    @property
    def failed_batches(self) -> List[int]:
        return [
            index for index, outcome in sorted(self._outcomes.items()) if not outcome.ok
        ]

    def finalize(self) -> Grouping:
        """
        Build the merged grouping.

        Batches that failed, or never reported, go to Other in full.
        """
        grouping = Grouping()
        for batch in self.batches:
            outcome = self._outcomes.get(batch.index)
            if outcome is None:
                outcome = _missing_outcome(batch.index)

            if outcome.ok:
                grouping.merge(outcome.value)
            else:
                logger.warning(
                    f"Batch {batch.index} failed ({outcome.kind}); "
                    f"moving {len(batch)} bookmarks to Other"
                )
                grouping.add_other(list(batch.bookmarks))

        expected = sum(len(batch) for batch in self.batches)
        if len(grouping) != expected:
            # Fragments are built per batch member, so this means a bad fragment
            logger.error(
                f"Grouping holds {len(grouping)} bookmarks, expected {expected}"
            )

        return grouping


def merge_batch_outcomes(
    batches: Sequence[Batch], outcomes: Sequence[Outcome]
) -> Grouping:
    """Merge scheduler outcomes aligned with ``batches`` into one Grouping."""
    aggregator = GroupingAggregator(batches)
    for batch, outcome in zip(batches, outcomes):
        aggregator.add(batch.index, outcome)
    return aggregator.finalize()


__all__ = ["collect_scan_entries", "GroupingAggregator", "merge_batch_outcomes"]
