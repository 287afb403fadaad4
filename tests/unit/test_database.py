"""database.py のユニットテスト（作成・スキーマ・接続・トランザクション）."""

import sqlite3
from pathlib import Path

import pytest

from file_tag_db.core.database import (
    REQUIRED_INDEXES,
    chunked,
    connect,
    create_database,
    expect_at_most_one_row,
    expect_one_row,
    transaction,
)
from file_tag_db.core.exceptions import InvariantViolation


class _FakeCursor:
    def __init__(self, rowcount: int) -> None:
        self.rowcount = rowcount


class TestCreateDatabase:
    """create_database関数のテスト."""

    def test_create_new_database(self, tmp_path: Path) -> None:
        db_path = tmp_path / "sub" / "test.db"
        create_database(db_path)

        assert db_path.exists()

        conn = sqlite3.connect(db_path)
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table';")}
        conn.close()

        assert {"tag", "value", "file", "file_tag", "implication"} <= tables

    def test_create_database_already_exists(self, tmp_path: Path) -> None:
        """既存データベースに対する作成は警告のみで何もしない."""
        db_path = tmp_path / "test.db"
        create_database(db_path)

        conn = sqlite3.connect(db_path)
        conn.execute("INSERT INTO tag (name) VALUES ('keep')")
        conn.commit()
        conn.close()

        create_database(db_path)

        conn = sqlite3.connect(db_path)
        names = [r[0] for r in conn.execute("SELECT name FROM tag")]
        conn.close()
        assert names == ["keep"]

    def test_indexes_created(self, tmp_path: Path) -> None:
        db_path = tmp_path / "test.db"
        create_database(db_path)

        conn = sqlite3.connect(db_path)
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='index' AND name LIKE 'idx_%';")
        indexes = [row[0] for row in cursor.fetchall()]
        conn.close()

        assert len(indexes) == len(REQUIRED_INDEXES)
        assert "idx_implication_implied_tag_id" in indexes


class TestConnect:
    """connect関数のテスト."""

    def test_connect_nonexistent_db(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            connect(tmp_path / "nonexistent.db")

    def test_foreign_keys_enabled(self, conn: sqlite3.Connection) -> None:
        assert conn.execute("PRAGMA foreign_keys;").fetchone()[0] == 1

    def test_implication_requires_existing_tags(self, conn: sqlite3.Connection) -> None:
        """含意エッジは存在しないタグIDを参照できない."""
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO implication (tag_id, implied_tag_id) VALUES (1, 2)")

    def test_tag_name_unique(self, conn: sqlite3.Connection) -> None:
        conn.execute("INSERT INTO tag (name) VALUES ('cheese')")
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute("INSERT INTO tag (name) VALUES ('cheese')")


class TestTransaction:
    """transaction（SAVEPOINT）のテスト."""

    def test_commit_on_success(self, conn: sqlite3.Connection, db_path: Path) -> None:
        with transaction(conn):
            conn.execute("INSERT INTO tag (name) VALUES ('a')")

        other = sqlite3.connect(db_path)
        try:
            assert other.execute("SELECT count(1) FROM tag").fetchone()[0] == 1
        finally:
            other.close()

    def test_rollback_on_error(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(RuntimeError):
            with transaction(conn):
                conn.execute("INSERT INTO tag (name) VALUES ('a')")
                raise RuntimeError("boom")

        assert conn.execute("SELECT count(1) FROM tag").fetchone()[0] == 0
        assert not conn.in_transaction

    def test_nested_rollback_only_inner(self, conn: sqlite3.Connection) -> None:
        """内側の失敗は内側だけを巻き戻す."""
        with transaction(conn):
            conn.execute("INSERT INTO tag (name) VALUES ('outer')")
            with pytest.raises(sqlite3.IntegrityError):
                with transaction(conn):
                    conn.execute("INSERT INTO tag (name) VALUES ('inner')")
                    conn.execute("INSERT INTO tag (name) VALUES ('outer')")

        names = [r[0] for r in conn.execute("SELECT name FROM tag ORDER BY name")]
        assert names == ["outer"]

    def test_original_error_kept_when_sqlite_aborted_transaction(self, conn: sqlite3.Connection) -> None:
        """SQLite 側でトランザクション全体が巻き戻された場合も元の例外がそのまま伝播する."""
        with pytest.raises(sqlite3.OperationalError, match="disk is full"):
            with transaction(conn):
                conn.execute("INSERT INTO tag (name) VALUES ('a')")
                # SQLITE_FULL 相当: セーブポイントごとトランザクションが消える
                conn.execute("ROLLBACK")
                raise sqlite3.OperationalError("database or disk is full")

        assert not conn.in_transaction
        assert conn.execute("SELECT count(1) FROM tag").fetchone()[0] == 0


class TestRowCountChecks:
    """影響行数チェックのテスト."""

    def test_expect_one_row(self) -> None:
        expect_one_row(_FakeCursor(1), "insert tag")
        with pytest.raises(InvariantViolation, match="exactly one"):
            expect_one_row(_FakeCursor(0), "insert tag")

    def test_expect_at_most_one_row(self) -> None:
        expect_at_most_one_row(_FakeCursor(0), "delete tag")
        expect_at_most_one_row(_FakeCursor(1), "delete tag")
        with pytest.raises(InvariantViolation) as excinfo:
            expect_at_most_one_row(_FakeCursor(2), "delete tag")
        assert excinfo.value.actual == 2

    def test_invariant_violation_is_not_domain_error(self) -> None:
        from file_tag_db.core.exceptions import FileTagDbError

        assert not issubclass(InvariantViolation, FileTagDbError)


def test_chunked() -> None:
    assert list(chunked([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
    assert list(chunked([], 2)) == []
