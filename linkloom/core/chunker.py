"""
Chunker

Partitions a flat list of bookmarks into consecutive fixed-size batches
for the categorization stage. Every bookmark lands in exactly one batch
and batches keep input order; the last batch may be short.
"""

from typing import List, Sequence

from .batch_types import Batch
from .data_models import Bookmark
from .scheduler import validate_limit


def chunk_bookmarks(bookmarks: Sequence[Bookmark], chunk_size: int) -> List[Batch]:
    """
    Split bookmarks into batches of at most ``chunk_size``.

    Args:
        bookmarks: Bookmarks in input order (duplicates are kept as
            separate items)
        chunk_size: Maximum batch size (B)

    Returns:
        Batches indexed 0..n-1 in partition order

    Raises:
        ConfigurationError: If chunk_size is not a positive integer
    """
    chunk_size = validate_limit(chunk_size, name="chunk size")
    return [
        Batch(index=batch_index, bookmarks=tuple(bookmarks[start : start + chunk_size]))
        for batch_index, start in enumerate(range(0, len(bookmarks), chunk_size))
    ]


__all__ = ["chunk_bookmarks"]
