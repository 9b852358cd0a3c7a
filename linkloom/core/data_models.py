"""
Data models for LinkLoom.

This module defines the bookmark record consumed by the core, the page
metadata produced by a liveness probe, and the category grouping produced
by a categorization run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

# Reserved bucket for bookmarks no batch could place
OTHER_LABEL = "Other"


@dataclass(frozen=True)
class Bookmark:
    """
    A single bookmark record as supplied by the caller.

    Bookmarks are immutable input; the core never modifies them. Two
    bookmarks with the same url are still distinct items and each gets its
    own outcome.
    """

    id: Any
    url: str
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {"id": self.id, "url": self.url, "title": self.title}


class LinkStatus(str, Enum):
    """Liveness classification of a probed URL."""

    OK = "ok"
    # Permanently unreachable: 404/410/403, DNS failure, connection refused
    DEAD = "dead"
    # Transient or ambiguous: timeout, 5xx, other non-2xx, other network faults
    ERROR = "error"


@dataclass(frozen=True)
class Metadata:
    """Result of probing one URL. Created once, never mutated."""

    url: str
    status: LinkStatus
    status_code: int
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    keywords: Optional[Tuple[str, ...]] = None
    h1: Optional[str] = None
    structured_data: Optional[Any] = None

    @property
    def is_ok(self) -> bool:
        return self.status is LinkStatus.OK

    @property
    def is_retryable(self) -> bool:
        """Only transient errors are candidates for another attempt."""
        return self.status is LinkStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization, dropping absent fields"""
        result: Dict[str, Any] = {
            "url": self.url,
            "status": self.status.value,
            "status_code": self.status_code,
        }
        optional_fields = {
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "keywords": list(self.keywords) if self.keywords is not None else None,
            "h1": self.h1,
            "structured_data": self.structured_data,
        }
        result.update({k: v for k, v in optional_fields.items() if v is not None})
        return result


@dataclass
class Grouping:
    """
    Category label to bookmarks mapping, plus the reserved "Other" bucket.

    Used both for a single batch's fragment and for the run-level result.
    Label order is first-seen order; bookmark order within a label is
    insertion order.
    """

    categories: Dict[str, List[Bookmark]] = field(default_factory=dict)
    other: List[Bookmark] = field(default_factory=list)

    @staticmethod
    def normalize_label(label: Optional[str]) -> str:
        """Blank labels and any spelling of "other" map to the Other bucket."""
        cleaned = (label or "").strip()
        if not cleaned or cleaned.lower() == OTHER_LABEL.lower():
            return OTHER_LABEL
        return cleaned

    def add(self, label: Optional[str], bookmark: Bookmark) -> None:
        """Append a bookmark under a label, creating the label on first sight."""
        label = self.normalize_label(label)
        if label == OTHER_LABEL:
            self.other.append(bookmark)
        else:
            self.categories.setdefault(label, []).append(bookmark)

    def add_other(self, bookmarks: List[Bookmark]) -> None:
        self.other.extend(bookmarks)

    def merge(self, fragment: "Grouping") -> None:
        """Merge another grouping into this one, label by label."""
        for label, bookmarks in fragment.categories.items():
            self.categories.setdefault(label, []).extend(bookmarks)
        self.other.extend(fragment.other)

    @property
    def labels(self) -> List[str]:
        return list(self.categories.keys())

    def iter_bookmarks(self) -> Iterator[Bookmark]:
        for bookmarks in self.categories.values():
            yield from bookmarks
        yield from self.other

    def __len__(self) -> int:
        """Total number of bookmarks placed, including Other."""
        return sum(len(b) for b in self.categories.values()) + len(self.other)

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        """Convert to dictionary for serialization; Other is always last"""
        result = {
            label: [b.to_dict() for b in bookmarks]
            for label, bookmarks in self.categories.items()
        }
        result[OTHER_LABEL] = [b.to_dict() for b in self.other]
        return result


__all__ = ["OTHER_LABEL", "Bookmark", "LinkStatus", "Metadata", "Grouping"]
