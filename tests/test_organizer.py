"""
Tests for the organize flow: duplicate detection, broken link separation
and the scan-then-categorize run.
"""

import json

import pytest

from fakes import FakeClassifier, FakeProbe, make_bookmarks
from linkloom.core.batch_types import Failure, ScanEntry
from linkloom.core.cancellation import CancellationToken
from linkloom.core.data_models import OTHER_LABEL, Bookmark, LinkStatus, Metadata
from linkloom.core.json_exporter import build_organize_document, export_organized
from linkloom.core.organizer import (
    BROKEN_LINKS_LABEL,
    find_duplicates,
    run_organize,
    split_broken,
)
from linkloom.utils.error_handler import ConfigurationError


def organize(bookmarks, classifier, probe, **kwargs):
    kwargs.setdefault("scan_concurrency", 3)
    kwargs.setdefault("chunk_size", 2)
    kwargs.setdefault("categorize_concurrency", 2)
    return run_organize(bookmarks, classifier, probe=probe, **kwargs)


class TestFindDuplicates:
    """Test duplicate detection by URL."""

    def test_first_occurrence_is_not_a_duplicate(self):
        bookmarks = make_bookmarks(3)
        copy = Bookmark(id="9", url=bookmarks[0].url, title="Again")
        second_copy = Bookmark(id="10", url=bookmarks[0].url)

        assert find_duplicates([*bookmarks, copy, second_copy]) == [copy, second_copy]

    def test_no_duplicates(self):
        assert find_duplicates(make_bookmarks(4)) == []


class TestSplitBroken:
    """Test separating dead links from the categorization input."""

    def test_only_dead_links_are_broken(self):
        bookmarks = make_bookmarks(4)
        entries = [
            ScanEntry(bookmarks[0], Metadata(url=bookmarks[0].url, status=LinkStatus.OK, status_code=200)),
            ScanEntry(bookmarks[1], Metadata(url=bookmarks[1].url, status=LinkStatus.DEAD, status_code=404)),
            ScanEntry(bookmarks[2], Metadata(url=bookmarks[2].url, status=LinkStatus.ERROR, status_code=503)),
            ScanEntry(bookmarks[3], Failure(kind="cancelled", message="stopped", index=3)),
        ]

        live, broken = split_broken(entries)

        assert live == [bookmarks[0], bookmarks[2], bookmarks[3]]
        assert [e.bookmark for e in broken] == [bookmarks[1]]


class TestRunOrganize:
    """Test the scan-then-categorize run with injected fakes."""

    @pytest.mark.asyncio
    async def test_dead_links_set_aside(self):
        bookmarks = make_bookmarks(5)
        probe = FakeProbe(statuses={bookmarks[1].url: 404, bookmarks[3].url: 503})
        classifier = FakeClassifier(labels={b.id: "Pages" for b in bookmarks})

        result = await organize(bookmarks, classifier, probe)

        assert result.grouping.categories["Pages"] == [
            bookmarks[0], bookmarks[2], bookmarks[3], bookmarks[4]
        ]
        assert [e.bookmark for e in result.broken] == [bookmarks[1]]
        assert result.total == 5
        assert len(result.grouping) + result.broken_count == 5

    @pytest.mark.asyncio
    async def test_summary_counts_broken_and_duplicates(self):
        bookmarks = make_bookmarks(3)
        copy = Bookmark(id="4", url=bookmarks[0].url, title="Copy")
        probe = FakeProbe(statuses={bookmarks[2].url: 410})
        classifier = FakeClassifier(labels={"1": "A"})

        result = await organize([*bookmarks, copy], classifier, probe)

        assert result.summary() == {
            "total": 4,
            "categorized": 3,
            "categories": 1,
            "other": 2,
            "broken": 1,
            "duplicates": 1,
        }
        # Duplicates are still checked and placed individually
        assert probe.calls.count(bookmarks[0].url) == 2
        assert result.grouping.other == [bookmarks[1], copy]

    @pytest.mark.asyncio
    async def test_broken_links_listed_after_other(self):
        bookmarks = make_bookmarks(3)
        probe = FakeProbe(statuses={bookmarks[0].url: 404})
        classifier = FakeClassifier(labels={"2": "A"})

        result = await organize(bookmarks, classifier, probe)
        categories = result.to_dict()

        assert list(categories) == ["A", OTHER_LABEL, BROKEN_LINKS_LABEL]
        assert categories[BROKEN_LINKS_LABEL] == [
            {**bookmarks[0].to_dict(), "status_code": 404}
        ]

    @pytest.mark.asyncio
    async def test_all_dead_skips_categorizer_calls(self):
        bookmarks = make_bookmarks(2)
        probe = FakeProbe(statuses={b.url: 404 for b in bookmarks})
        classifier = FakeClassifier()

        result = await organize(bookmarks, classifier, probe)

        assert classifier.seen_batches == []
        assert len(result.grouping) == 0
        assert result.broken_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "limits",
        [
            {"scan_concurrency": 0},
            {"chunk_size": 0},
            {"categorize_concurrency": -1},
        ],
    )
    async def test_invalid_limits_raise_before_scanning(self, limits):
        probe = FakeProbe()

        with pytest.raises(ConfigurationError):
            await organize(make_bookmarks(3), FakeClassifier(), probe, **limits)
        assert probe.calls == []

    @pytest.mark.asyncio
    async def test_cancelled_run_keeps_every_bookmark(self):
        bookmarks = make_bookmarks(4)
        token = CancellationToken()
        token.cancel("stopped")
        probe = FakeProbe()
        classifier = FakeClassifier(labels={b.id: "Pages" for b in bookmarks})

        result = await organize(bookmarks, classifier, probe, cancel_token=token)

        assert probe.calls == []
        assert classifier.seen_batches == []
        assert result.grouping.other == bookmarks
        assert result.broken_count == 0

    @pytest.mark.asyncio
    async def test_progress_callbacks_per_stage(self):
        scanned, batches = [], []

        await organize(
            make_bookmarks(5),
            FakeClassifier(),
            FakeProbe(),
            on_scan_complete=lambda index, outcome: scanned.append(index),
            on_batch_complete=lambda index, outcome: batches.append(index),
        )

        assert sorted(scanned) == [0, 1, 2, 3, 4]
        assert sorted(batches) == [0, 1, 2]


class TestOrganizeExport:
    """Test the organize JSON document."""

    @pytest.mark.asyncio
    async def test_document_written(self, tmp_path):
        bookmarks = make_bookmarks(3)
        probe = FakeProbe(statuses={bookmarks[2].url: 404})
        result = await organize(bookmarks, FakeClassifier(labels={"1": "A"}), probe)

        path = export_organized(result, tmp_path / "out" / "organized.json")
        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["export_info"]["kind"] == "organize"
        assert data["summary"]["broken"] == 1
        assert data["summary"]["duplicates"] == 0
        assert list(data["categories"])[-1] == BROKEN_LINKS_LABEL
        assert data["categories"] == result.to_dict()
        assert data["summary"] == build_organize_document(result)["summary"]
