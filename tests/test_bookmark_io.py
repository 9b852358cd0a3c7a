"""
Tests for reading bookmark files and exporting results.
"""

import json

import pytest

from fakes import make_bookmarks
from linkloom.core.batch_types import Failure, ScanEntry
from linkloom.core.bookmark_loader import detect_encoding, load_bookmarks
from linkloom.core.data_models import Bookmark, Grouping, LinkStatus, Metadata
from linkloom.core.json_exporter import (
    build_grouping_document,
    build_scan_document,
    export_grouping,
    export_scan_results,
)
from linkloom.utils.error_handler import BookmarkImportError


class TestLoadBookmarksCSV:
    """Test CSV input."""

    def test_basic_csv(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_text(
            "id,url,title\n"
            "a1,https://github.com,GitHub\n"
            "a2,https://example.org/misc,\n",
            encoding="utf-8",
        )

        bookmarks = load_bookmarks(path)

        assert bookmarks == [
            Bookmark(id="a1", url="https://github.com", title="GitHub"),
            Bookmark(id="a2", url="https://example.org/misc", title=""),
        ]

    def test_column_names_case_insensitive_and_extra_columns_ignored(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_text(
            "Title,URL,Folder\nPython docs,https://docs.python.org,Reference\n",
            encoding="utf-8",
        )

        bookmarks = load_bookmarks(path)

        assert bookmarks == [Bookmark(id=1, url="https://docs.python.org", title="Python docs")]

    def test_rows_without_url_skipped(self, tmp_path, caplog):
        path = tmp_path / "bookmarks.csv"
        path.write_text(
            "url,title\nhttps://a.example,A\n,No url\n  ,Blank\nhttps://b.example,B\n",
            encoding="utf-8",
        )

        with caplog.at_level("WARNING"):
            bookmarks = load_bookmarks(path)

        assert [b.url for b in bookmarks] == ["https://a.example", "https://b.example"]
        # Row numbers are kept as ids even when rows are skipped
        assert [b.id for b in bookmarks] == [1, 4]
        assert "Skipped 2 rows" in caplog.text

    def test_duplicate_urls_kept(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_text("url\nhttps://a.example\nhttps://a.example\n", encoding="utf-8")

        assert len(load_bookmarks(path)) == 2

    def test_latin1_file(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_bytes("url,title\nhttps://a.example,Caf\xe9 cr\xe8me\n".encode("latin-1"))

        bookmarks = load_bookmarks(path)

        assert bookmarks[0].title == "Café crème"

    def test_header_only(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_text("id,url,title\n", encoding="utf-8")

        assert load_bookmarks(path) == []

    def test_empty_file(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_text("", encoding="utf-8")

        assert load_bookmarks(path) == []

    def test_missing_url_column(self, tmp_path):
        path = tmp_path / "bookmarks.csv"
        path.write_text("id,title\n1,Nothing\n", encoding="utf-8")

        with pytest.raises(BookmarkImportError, match="no url column"):
            load_bookmarks(path)


class TestLoadBookmarksJSON:
    """Test JSON input."""

    def test_list_of_objects(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        path.write_text(
            json.dumps([{"id": 7, "url": "https://a.example", "title": "A"}, {"url": "https://b.example"}]),
            encoding="utf-8",
        )

        bookmarks = load_bookmarks(path)

        assert bookmarks == [
            Bookmark(id="7", url="https://a.example", title="A"),
            Bookmark(id=2, url="https://b.example", title=""),
        ]

    def test_bookmarks_key(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        path.write_text(
            json.dumps({"bookmarks": [{"url": "https://a.example"}]}), encoding="utf-8"
        )

        assert [b.url for b in load_bookmarks(path)] == ["https://a.example"]

    @pytest.mark.parametrize("content", ['{"items": []}', "[1, 2]", '"text"'])
    def test_wrong_shape(self, tmp_path, content):
        path = tmp_path / "bookmarks.json"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(BookmarkImportError, match="list of bookmark objects"):
            load_bookmarks(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bookmarks.json"
        path.write_text("[{", encoding="utf-8")

        with pytest.raises(BookmarkImportError, match="Invalid JSON"):
            load_bookmarks(path)


class TestLoadBookmarksErrors:
    """Test file-level errors."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(BookmarkImportError, match="not found"):
            load_bookmarks(tmp_path / "nope.csv")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "bookmarks.html"
        path.write_text("<dl></dl>", encoding="utf-8")

        with pytest.raises(BookmarkImportError, match="Unsupported input format"):
            load_bookmarks(path)

    def test_detect_encoding_defaults_to_utf8_for_ascii(self, tmp_path):
        path = tmp_path / "plain.csv"
        path.write_text("url\nhttps://a.example\n", encoding="utf-8")

        assert detect_encoding(path).lower() in ("ascii", "utf-8")


class TestScanExport:
    """Test scan result documents."""

    def _entries(self):
        bookmarks = make_bookmarks(3)
        return [
            ScanEntry(
                bookmarks[0],
                Metadata(
                    url=bookmarks[0].url,
                    status=LinkStatus.OK,
                    status_code=200,
                    title="Page one",
                    keywords=("a", "b"),
                ),
            ),
            ScanEntry(
                bookmarks[1],
                Metadata(url=bookmarks[1].url, status=LinkStatus.DEAD, status_code=404),
            ),
            ScanEntry(bookmarks[2], Failure(kind="cancelled", message="stopped", index=2)),
        ]

    def test_document_structure(self):
        document = build_scan_document(self._entries())

        assert document["export_info"]["kind"] == "liveness_scan"
        summary = document["summary"]
        assert (summary["total"], summary["ok"], summary["dead"], summary["failed"]) == (3, 1, 1, 1)
        assert summary["status_codes"] == {"200": 1, "404": 1}

        results = document["results"]
        assert results[0]["bookmark"] == {"id": "1", "url": "https://example.com/page1", "title": "Page 1"}
        assert results[0]["metadata"]["keywords"] == ["a", "b"]
        assert "description" not in results[0]["metadata"]
        assert results[1]["metadata"]["status"] == "dead"
        assert results[2]["failure"] == {"kind": "cancelled", "message": "stopped", "index": 2}

    def test_export_writes_file(self, tmp_path):
        path = export_scan_results(self._entries(), tmp_path / "out" / "scan.json")

        data = json.loads(path.read_text(encoding="utf-8"))
        assert len(data["results"]) == 3


class TestGroupingExport:
    """Test categorization documents."""

    def test_other_is_last_and_counts_match(self, tmp_path):
        bookmarks = make_bookmarks(4)
        grouping = Grouping()
        grouping.add_other([bookmarks[3]])
        grouping.add("Zeta", bookmarks[0])
        grouping.add("Alpha", bookmarks[1])
        grouping.add("Zeta", bookmarks[2])

        document = build_grouping_document(grouping)

        assert document["summary"] == {"total": 4, "categories": 2, "other": 1}
        assert list(document["categories"]) == ["Zeta", "Alpha", "Other"]
        assert [b["id"] for b in document["categories"]["Zeta"]] == ["1", "3"]

        path = export_grouping(grouping, tmp_path / "groups.json")
        assert json.loads(path.read_text(encoding="utf-8"))["categories"]["Other"][0]["id"] == "4"

    def test_non_ascii_written_as_is(self, tmp_path):
        grouping = Grouping()
        grouping.add("Café", Bookmark(id=1, url="https://a.example", title="Crème"))

        path = export_grouping(grouping, tmp_path / "groups.json")

        assert "Crème" in path.read_text(encoding="utf-8")
