"""report_usage ツールのユニットテスト."""

import sqlite3
from pathlib import Path

import polars as pl

from file_tag_db.core.implications import ImplicationStore
from file_tag_db.core.lifecycle import tag_file
from file_tag_db.core.tags import TagRepository
from file_tag_db.core.values import ValueRepository
from file_tag_db.tools.report_usage import export_usage_reports, usage_frame


class TestUsageReport:
    """export_usage_reports関数のテスト."""

    def test_export_writes_csv(self, conn: sqlite3.Connection, db_path: Path, tmp_path: Path, add_file) -> None:
        f1 = add_file("/f1")
        f2 = add_file("/f2")
        tag_file(conn, f1, "cheese")
        tag_file(conn, f2, "cheese")
        tag_file(conn, f2, "bread", "rye")
        tags = TagRepository(conn)
        ImplicationStore(conn).add(tags.by_name("cheese").id, tags.by_name("bread").id)
        ValueRepository(conn).insert("orphan")

        out = tmp_path / "reports"
        paths = export_usage_reports(db_path, out)

        usage = pl.read_csv(paths["tag_usage"])
        assert usage["tag"].to_list() == ["bread", "cheese"]
        assert usage["file_count"].to_list() == [1, 2]

        implications = pl.read_csv(paths["implications"])
        assert implications.select(["tag", "implied_tag"]).rows() == [("cheese", "bread")]

        unused = pl.read_csv(paths["unused_values"])
        assert unused["value"].to_list() == ["orphan"]

    def test_empty_reports_are_skipped(self, db_path: Path, tmp_path: Path) -> None:
        out = tmp_path / "reports"

        paths = export_usage_reports(db_path, out)

        assert paths == {"tag_usage": None, "implications": None, "unused_values": None}
        assert list(out.iterdir()) == []

    def test_usage_frame_schema(self, conn: sqlite3.Connection) -> None:
        frame = usage_frame(TagRepository(conn))

        assert frame.schema == {"tag_id": pl.Int64, "tag": pl.String, "file_count": pl.Int64}
        assert len(frame) == 0
