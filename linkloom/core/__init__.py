"""
Core LinkLoom modules.

This package contains the concurrency-limited scheduler, the liveness probe
and batch classification unit operations, chunking, result aggregation and
the pipeline entry points built on them.
"""

from .async_pipeline import run_categorization, run_liveness_scan
from .batch_types import Batch, Failure, Outcome, RunStats, ScanEntry, Success
from .cancellation import CancellationToken
from .categorizer import KeywordCategorizer, build_fragment, classify_operation
from .data_models import OTHER_LABEL, Bookmark, Grouping, LinkStatus, Metadata
from .liveness_probe import LivenessProbe, retry_transient
from .organizer import BROKEN_LINKS_LABEL, OrganizeResult, find_duplicates, run_organize
from .scheduler import ConcurrencyLimitedScheduler, as_unit_operation, run_bounded

__all__ = [
    "BROKEN_LINKS_LABEL",
    "OTHER_LABEL",
    "Batch",
    "Bookmark",
    "CancellationToken",
    "ConcurrencyLimitedScheduler",
    "Failure",
    "Grouping",
    "KeywordCategorizer",
    "LinkStatus",
    "LivenessProbe",
    "Metadata",
    "OrganizeResult",
    "Outcome",
    "RunStats",
    "ScanEntry",
    "Success",
    "as_unit_operation",
    "build_fragment",
    "classify_operation",
    "find_duplicates",
    "retry_transient",
    "run_bounded",
    "run_categorization",
    "run_liveness_scan",
    "run_organize",
]
