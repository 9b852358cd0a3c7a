"""
Batch Processing Types

This module contains the data classes passed through the scheduler:
batches of bookmarks, the tagged outcome of executing one unit, the
per-bookmark entry of a liveness scan, and run statistics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, NamedTuple, Optional, Tuple, TypeVar, Union

from .data_models import Bookmark, LinkStatus, Metadata

T = TypeVar("T")


@dataclass(frozen=True)
class Batch:
    """
    Ordered group of bookmarks submitted together to a categorizer.

    ``index`` is the batch's position in the original partition; batches
    complete out of order and are reassembled by it.
    """

    index: int
    bookmarks: Tuple[Bookmark, ...]

    def __len__(self) -> int:
        return len(self.bookmarks)

    def __iter__(self):
        return iter(self.bookmarks)


@dataclass(frozen=True)
class Success(Generic[T]):
    """Unit completed and produced a value."""

    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """
    Unit could not produce a value.

    Args:
        kind: Short machine-readable failure category (exception class name,
            "cancelled", "unhandled_exception", ...)
        message: Human-readable detail
        index: Position of the unit in its run (batch index for
            categorization)
    """

    kind: str
    message: str
    index: Optional[int] = None

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {"kind": self.kind, "message": self.message, "index": self.index}


Outcome = Union[Success[T], Failure]


class ScanEntry(NamedTuple):
    """One row of a liveness scan: the bookmark and its metadata or failure."""

    bookmark: Bookmark
    result: Union[Metadata, Failure]

    @property
    def metadata(self) -> Optional[Metadata]:
        return self.result if isinstance(self.result, Metadata) else None

    @property
    def failure(self) -> Optional[Failure]:
        return self.result if isinstance(self.result, Failure) else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        entry: Dict[str, Any] = {"bookmark": self.bookmark.to_dict()}
        if self.metadata is not None:
            entry["metadata"] = self.metadata.to_dict()
        else:
            entry["failure"] = self.failure.to_dict()
        return entry


@dataclass
class RunStats:
    """Statistics for a liveness scan"""

    total: int = 0
    ok: int = 0
    dead: int = 0
    error: int = 0
    failed: int = 0
    status_codes: Dict[int, int] = field(default_factory=dict)
    started_at: datetime = field(default_factory=datetime.now)

    def update_from_entry(self, entry: ScanEntry) -> None:
        """Update statistics from a scan entry"""
        self.total += 1
        metadata = entry.metadata
        if metadata is None:
            self.failed += 1
            return

        if metadata.status is LinkStatus.OK:
            self.ok += 1
        elif metadata.status is LinkStatus.DEAD:
            self.dead += 1
        else:
            self.error += 1

        self.status_codes[metadata.status_code] = (
            self.status_codes.get(metadata.status_code, 0) + 1
        )

    @classmethod
    def from_entries(cls, entries: List[ScanEntry]) -> "RunStats":
        stats = cls()
        for entry in entries:
            stats.update_from_entry(entry)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "total": self.total,
            "ok": self.ok,
            "dead": self.dead,
            "error": self.error,
            "failed": self.failed,
            "status_codes": {str(k): v for k, v in sorted(self.status_codes.items())},
            "started_at": self.started_at.isoformat(),
        }


__all__ = [
    "Batch",
    "Success",
    "Failure",
    "Outcome",
    "ScanEntry",
    "RunStats",
]
