"""
JSON Exporter

Writes liveness scan results, category groupings and organize results to
JSON documents.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Sequence, Union

from .batch_types import RunStats, ScanEntry
from .data_models import Grouping
from .organizer import OrganizeResult

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"


def _export_info(kind: str) -> Dict[str, Any]:
    return {
        "exported_at": datetime.now().isoformat(),
        "format_version": FORMAT_VERSION,
        "generator": "linkloom",
        "kind": kind,
    }


def _write_json(data: Dict[str, Any], output_path: Union[str, Path]) -> Path:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False, default=str)
    return path


def build_scan_document(entries: Sequence[ScanEntry]) -> Dict[str, Any]:
    """Build the scan export structure: info, summary and one row per bookmark."""
    return {
        "export_info": _export_info("liveness_scan"),
        "summary": RunStats.from_entries(list(entries)).to_dict(),
        "results": [entry.to_dict() for entry in entries],
    }


def export_scan_results(
    entries: Sequence[ScanEntry], output_path: Union[str, Path]
) -> Path:
    """
    Write scan entries to a JSON file.

    Args:
        entries: Scan entries in input order
        output_path: Destination file

    Returns:
        Path written
    """
    path = _write_json(build_scan_document(entries), output_path)
    logger.info(f"Exported {len(entries)} scan results to {path}")
    return path


def build_grouping_document(grouping: Grouping) -> Dict[str, Any]:
    return {
        "export_info": _export_info("categorization"),
        "summary": {
            "total": len(grouping),
            "categories": len(grouping.labels),
            "other": len(grouping.other),
        },
        "categories": grouping.to_dict(),
    }


def export_grouping(grouping: Grouping, output_path: Union[str, Path]) -> Path:
    """Write a grouping to a JSON file; "Other" is always the last category."""
    path = _write_json(build_grouping_document(grouping), output_path)
    logger.info(
        f"Exported {len(grouping)} bookmarks in {len(grouping.labels)} "
        f"categories to {path}"
    )
    return path


def build_organize_document(result: OrganizeResult) -> Dict[str, Any]:
    return {
        "export_info": _export_info("organize"),
        "summary": result.summary(),
        "categories": result.to_dict(),
    }


def export_organized(result: OrganizeResult, output_path: Union[str, Path]) -> Path:
    """Write an organize result; "Broken Links" follows "Other" as the last category."""
    path = _write_json(build_organize_document(result), output_path)
    logger.info(
        f"Exported {result.total} bookmarks to {path} "
        f"({result.broken_count} broken, {result.duplicate_count} duplicates)"
    )
    return path


__all__ = [
    "build_grouping_document",
    "build_organize_document",
    "build_scan_document",
    "export_grouping",
    "export_organized",
    "export_scan_results",
]
