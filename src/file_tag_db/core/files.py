"""ファイルとファイルタグ（file_tag）の操作.

ファイル管理そのものは外部サブシステムの責務で、ここではタグ/値のカスケード処理に必要な
最小限（ファイル登録、file_tag の追加・削除・複製・件数・取得）だけを扱います。
"""

from __future__ import annotations

import sqlite3

from loguru import logger

from .database import expect_at_most_one_row
from .entities import File, FileTag
from .implications import ImplicationStore


def _read_file_tags(rows: list[tuple[int, int, int]]) -> list[FileTag]:
    return [FileTag(file_id, tag_id, value_id) for file_id, tag_id, value_id in rows]


class FileTagRepository:
    """file / file_tag テーブルへのアクセス."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def file_by_path(self, path: str) -> File | None:
        row = self.conn.execute("SELECT id, path FROM file WHERE path = ?", (path,)).fetchone()
        return File(*row) if row else None

    def add_file(self, path: str) -> File:
        """ファイルを登録する（既に登録済みなら既存行を返す）."""
        existing = self.file_by_path(path)
        if existing is not None:
            return existing

        cursor = self.conn.execute("INSERT INTO file (path) VALUES (?)", (path,))
        logger.debug(f"Registered file #{cursor.lastrowid}: {path}")
        return File(cursor.lastrowid, path)

    def count_by_tag_id(self, tag_id: int) -> int:
        return self.conn.execute("SELECT count(1) FROM file_tag WHERE tag_id = ?", (tag_id,)).fetchone()[0]

    def count_by_value_id(self, value_id: int) -> int:
        return self.conn.execute(
            "SELECT count(1) FROM file_tag WHERE value_id = ?", (value_id,)
        ).fetchone()[0]

    def by_file_id(self, file_id: int) -> list[FileTag]:
        rows = self.conn.execute(
            "SELECT file_id, tag_id, value_id FROM file_tag WHERE file_id = ? ORDER BY tag_id, value_id",
            (file_id,),
        ).fetchall()
        return _read_file_tags(rows)

    def by_value_id(self, value_id: int) -> list[FileTag]:
        rows = self.conn.execute(
            "SELECT file_id, tag_id, value_id FROM file_tag WHERE value_id = ? ORDER BY file_id, tag_id",
            (value_id,),
        ).fetchall()
        return _read_file_tags(rows)

    def by_tag_id(self, tag_id: int, *, include_implied: bool = False) -> list[FileTag]:
        """タグが付いた file_tag を取得する.

        Args:
            tag_id: 対象タグ
            include_implied: True の場合、同じファイルについて「tag_id から含意されるタグ」の
                暗黙の file_tag（value_id=0, explicit=False, implicit=True）も加える。
                既に同じ (file_id, tag_id) の明示行がある場合は、その行に implicit を立てる。

        Returns:
            file_tag のリスト（明示行が先、暗黙行は含意の解決順）
        """
        rows = self.conn.execute(
            "SELECT file_id, tag_id, value_id FROM file_tag WHERE tag_id = ? ORDER BY file_id, value_id",
            (tag_id,),
        ).fetchall()
        file_tags = _read_file_tags(rows)

        if not include_implied or not file_tags:
            return file_tags

        file_ids = list(dict.fromkeys(ft.file_id for ft in file_tags))
        implied_ids = dict.fromkeys(
            implication.implied_tag.id for implication in ImplicationStore(self.conn).for_tags([tag_id])
        )

        # (file_id, tag_id) → file_tags 内の位置（同じ組に値違いの行が複数ありうる）
        positions: dict[tuple[int, int], list[int]] = {}
        for index, ft in enumerate(file_tags):
            positions.setdefault((ft.file_id, ft.tag_id), []).append(index)

        for implied_id in implied_ids:
            for file_id in file_ids:
                indexes = positions.get((file_id, implied_id))
                if indexes:
                    for index in indexes:
                        ft = file_tags[index]
                        file_tags[index] = FileTag(ft.file_id, ft.tag_id, ft.value_id, ft.explicit, True)
                else:
                    positions[(file_id, implied_id)] = [len(file_tags)]
                    file_tags.append(FileTag(file_id, implied_id, 0, explicit=False, implicit=True))

        return file_tags

    def add(self, file_id: int, tag_id: int, value_id: int = 0) -> FileTag:
        """ファイルにタグ（と値）を付ける。同じ組み合わせが既にあれば何もしない."""
        self.conn.execute(
            "INSERT OR IGNORE INTO file_tag (file_id, tag_id, value_id) VALUES (?, ?, ?)",
            (file_id, tag_id, value_id),
        )
        return FileTag(file_id, tag_id, value_id)

    def delete(self, file_id: int, tag_id: int, value_id: int) -> None:
        cursor = self.conn.execute(
            "DELETE FROM file_tag WHERE file_id = ? AND tag_id = ? AND value_id = ?",
            (file_id, tag_id, value_id),
        )
        expect_at_most_one_row(cursor, "delete file_tag")

    def delete_by_tag_id(self, tag_id: int) -> int:
        cursor = self.conn.execute("DELETE FROM file_tag WHERE tag_id = ?", (tag_id,))
        logger.debug(f"Deleted {cursor.rowcount} file_tag row(s) for tag #{tag_id}")
        return cursor.rowcount

    def delete_by_value_id(self, value_id: int) -> int:
        cursor = self.conn.execute("DELETE FROM file_tag WHERE value_id = ?", (value_id,))
        logger.debug(f"Deleted {cursor.rowcount} file_tag row(s) for value #{value_id}")
        return cursor.rowcount

    def copy(self, source_tag_id: int, dest_tag_id: int) -> int:
        """source_tag_id の file_tag を値ごと dest_tag_id に複製する."""
        cursor = self.conn.execute(
            """
            INSERT OR IGNORE INTO file_tag (file_id, tag_id, value_id)
            SELECT file_id, ?, value_id
            FROM file_tag
            WHERE tag_id = ?
            """,
            (dest_tag_id, source_tag_id),
        )
        return cursor.rowcount
