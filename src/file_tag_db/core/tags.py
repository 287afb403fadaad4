"""タグの参照・作成・リネーム・削除（SQL 層）.

変更系（insert / rename）は必ず名前検証を通す。参照系は検証しない。
`delete()` は file_tag と tag 行だけを削除し、含意エッジには触れない。
含意まで含めた一括削除は `lifecycle.delete_tag()` を使うこと。
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from .database import chunked, expect_at_most_one_row, expect_one_row, placeholders
from .entities import Tag, TagFileCount
from .validation import validate_tag_name


def _read_tags(rows: list[tuple[int, str]]) -> list[Tag]:
    return [Tag(tag_id, name) for tag_id, name in rows]


class TagRepository:
    """tag テーブルへのアクセス."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def count(self) -> int:
        return self.conn.execute("SELECT count(1) FROM tag").fetchone()[0]

    def all(self) -> list[Tag]:
        rows = self.conn.execute("SELECT id, name FROM tag ORDER BY name").fetchall()
        return _read_tags(rows)

    def by_id(self, tag_id: int) -> Tag | None:
        row = self.conn.execute("SELECT id, name FROM tag WHERE id = ?", (tag_id,)).fetchone()
        return Tag(*row) if row else None

    def by_ids(self, tag_ids: Iterable[int]) -> list[Tag]:
        # 空の IN () は不正な SQL になるため、問い合わせずに空を返す
        ids = list(dict.fromkeys(tag_ids))
        tags: list[Tag] = []
        for chunk in chunked(ids):
            rows = self.conn.execute(
                f"SELECT id, name FROM tag WHERE id IN ({placeholders(len(chunk))}) ORDER BY name",
                chunk,
            ).fetchall()
            tags.extend(_read_tags(rows))
        return tags

    def by_name(self, name: str) -> Tag | None:
        row = self.conn.execute("SELECT id, name FROM tag WHERE name = ?", (name,)).fetchone()
        return Tag(*row) if row else None

    def by_names(self, names: Iterable[str]) -> list[Tag]:
        unique_names = list(dict.fromkeys(names))
        tags: list[Tag] = []
        for chunk in chunked(unique_names):
            rows = self.conn.execute(
                f"SELECT id, name FROM tag WHERE name IN ({placeholders(len(chunk))}) ORDER BY name",
                chunk,
            ).fetchall()
            tags.extend(_read_tags(rows))
        return tags

    def insert(self, name: str) -> Tag:
        """タグを作成する.

        Raises:
            InvalidNameError: 名前が不正
            sqlite3.IntegrityError: 同名のタグが既に存在する
            InvariantViolation: 影響行数が1でない
        """
        validate_tag_name(name)

        cursor = self.conn.execute("INSERT INTO tag (name) VALUES (?)", (name,))
        expect_one_row(cursor, "insert tag")

        return Tag(cursor.lastrowid, name)

    def rename(self, tag_id: int, name: str) -> Tag:
        validate_tag_name(name)

        cursor = self.conn.execute("UPDATE tag SET name = ? WHERE id = ?", (name, tag_id))
        expect_one_row(cursor, "rename tag")

        return Tag(tag_id, name)

    def delete(self, tag_id: int) -> None:
        """file_tag を削除してからタグ行を削除する（存在しないIDはエラーにしない）."""
        self.conn.execute("DELETE FROM file_tag WHERE tag_id = ?", (tag_id,))

        cursor = self.conn.execute("DELETE FROM tag WHERE id = ?", (tag_id,))
        expect_at_most_one_row(cursor, "delete tag")

    def usage(self) -> list[TagFileCount]:
        """タグごとの使用ファイル数（異なるファイルの数）を名前順で返す.

        同じファイルに同じタグが複数の値で付いていても1ファイルとして数える。
        一度も使われていないタグは含まない。
        """
        rows = self.conn.execute(
            """
            SELECT t.id, t.name, count(DISTINCT ft.file_id)
            FROM file_tag ft
            JOIN tag t ON t.id = ft.tag_id
            GROUP BY t.id, t.name
            ORDER BY t.name
            """
        ).fetchall()
        return [TagFileCount(tag_id, name, count) for tag_id, name, count in rows]
