"""
Bookmark Loader

Reads bookmark records ``{id, url, title}`` from CSV or JSON files. CSV
files are read with pandas after detecting their encoding with chardet;
JSON files hold a list of objects (optionally under a "bookmarks" key).
"""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import chardet
import pandas as pd

from ..utils.error_handler import BookmarkImportError
from .data_models import Bookmark

logger = logging.getLogger(__name__)

# Bytes sampled for encoding detection
ENCODING_SAMPLE_SIZE = 65536
MIN_ENCODING_CONFIDENCE = 0.7
FALLBACK_ENCODINGS = ["utf-8", "utf-8-sig", "latin1", "cp1252"]


def detect_encoding(file_path: Union[str, Path]) -> str:
    """Detect a file's encoding, falling back to utf-8 on low confidence."""
    with open(file_path, "rb") as f:
        sample = f.read(ENCODING_SAMPLE_SIZE)

    result = chardet.detect(sample)
    encoding = result.get("encoding") or "utf-8"
    confidence = result.get("confidence") or 0.0
    logger.debug(f"Detected encoding: {encoding} (confidence: {confidence:.2f})")

    if confidence < MIN_ENCODING_CONFIDENCE:
        logger.debug(f"Low encoding confidence ({confidence:.2f}), using utf-8")
        return "utf-8"
    return encoding


def _read_csv(path: Path) -> pd.DataFrame:
    encoding = detect_encoding(path)
    encodings_to_try = [encoding] + [e for e in FALLBACK_ENCODINGS if e != encoding]

    last_error: Optional[Exception] = None
    for enc in encodings_to_try:
        try:
            df = pd.read_csv(path, encoding=enc, dtype=str, na_filter=False)
            logger.info(f"Read {len(df)} rows from {path} (encoding: {enc})")
            return df
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
        except (UnicodeDecodeError, LookupError, pd.errors.ParserError) as e:
            logger.debug(f"Failed to parse {path} with encoding {enc}: {e}")
            last_error = e

    raise BookmarkImportError(
        f"Could not read CSV file '{path}' with any of: "
        f"{', '.join(encodings_to_try)} ({last_error})"
    )


def _read_json(path: Path) -> pd.DataFrame:
    try:
        with open(path, "r", encoding=detect_encoding(path)) as f:
            data = json.load(f)
    except ValueError as e:
        raise BookmarkImportError(f"Invalid JSON in '{path}': {e}") from e

    if isinstance(data, dict):
        data = data.get("bookmarks")
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise BookmarkImportError(
            f"'{path}' must hold a list of bookmark objects"
        )

    return pd.DataFrame(data, dtype=object)


def _clean(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and pd.isna(value):
        return ""
    return str(value).strip()


def load_bookmarks(file_path: Union[str, Path]) -> List[Bookmark]:
    """
    Load bookmarks from a CSV or JSON file.

    Column names are matched case-insensitively. ``id`` defaults to the
    1-based row number and ``title`` to an empty string. Rows without a
    url are skipped.

    Args:
        file_path: Path to a .csv or .json file

    Returns:
        Bookmarks in file order

    Raises:
        BookmarkImportError: If the file is missing, unreadable, of an
            unsupported type, or has no url column
    """
    path = Path(file_path)
    if not path.is_file():
        raise BookmarkImportError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            df = _read_csv(path)
        elif suffix == ".json":
            df = _read_json(path)
        else:
            raise BookmarkImportError(
                f"Unsupported input format '{path.suffix}' (expected .csv or .json)"
            )
    except OSError as e:
        raise BookmarkImportError(f"Could not read '{path}': {e}") from e

    if df.empty and len(df.columns) == 0:
        logger.warning(f"No bookmarks found in {path}")
        return []

    df.columns = [str(c).strip().lower() for c in df.columns]
    if "url" not in df.columns:
        raise BookmarkImportError(
            f"'{path}' has no url column (found: {', '.join(df.columns)})"
        )

    bookmarks = []
    skipped = 0
    for row_number, row in enumerate(df.to_dict("records"), start=1):
        url = _clean(row.get("url"))
        if not url:
            skipped += 1
            continue
        bookmark_id = _clean(row.get("id")) or row_number
        bookmarks.append(
            Bookmark(id=bookmark_id, url=url, title=_clean(row.get("title")))
        )

    if skipped:
        logger.warning(f"Skipped {skipped} rows without a url in {path}")
    logger.info(f"Loaded {len(bookmarks)} bookmarks from {path}")
    return bookmarks


__all__ = ["detect_encoding", "load_bookmarks"]
