"""値（tag=value の value）の参照・作成・削除.

value_id = 0 は「値なし」の番兵で、DBには永続化されない。
空文字の値名は常にこの番兵に解決される（参照ミスにはならない）。
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from loguru import logger

from .database import chunked, expect_at_most_one_row, expect_one_row, placeholders
from .entities import NO_VALUE, Value
from .validation import validate_value_name


def _read_values(rows: list[tuple[int, str]]) -> list[Value]:
    return [Value(value_id, name) for value_id, name in rows]


class ValueRepository:
    """value テーブルへのアクセス."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def count(self) -> int:
        return self.conn.execute("SELECT count(1) FROM value").fetchone()[0]

    def all(self) -> list[Value]:
        rows = self.conn.execute("SELECT id, name FROM value ORDER BY name").fetchall()
        return _read_values(rows)

    def by_id(self, value_id: int) -> Value | None:
        row = self.conn.execute("SELECT id, name FROM value WHERE id = ?", (value_id,)).fetchone()
        return Value(*row) if row else None

    def by_ids(self, value_ids: Iterable[int]) -> list[Value]:
        ids = list(dict.fromkeys(value_ids))
        values: list[Value] = []
        for chunk in chunked(ids):
            rows = self.conn.execute(
                f"SELECT id, name FROM value WHERE id IN ({placeholders(len(chunk))}) ORDER BY name",
                chunk,
            ).fetchall()
            values.extend(_read_values(rows))
        return values

    def by_name(self, name: str) -> Value | None:
        if name == "":
            return NO_VALUE

        row = self.conn.execute("SELECT id, name FROM value WHERE name = ?", (name,)).fetchone()
        return Value(*row) if row else None

    def by_names(self, names: Iterable[str]) -> list[Value]:
        unique_names = list(dict.fromkeys(names))
        values: list[Value] = []
        for chunk in chunked(unique_names):
            rows = self.conn.execute(
                f"SELECT id, name FROM value WHERE name IN ({placeholders(len(chunk))}) ORDER BY name",
                chunk,
            ).fetchall()
            values.extend(_read_values(rows))
        return values

    def by_tag_id(self, tag_id: int) -> list[Value]:
        """タグと組み合わせて使われている値."""
        rows = self.conn.execute(
            """
            SELECT DISTINCT v.id, v.name
            FROM value v
            JOIN file_tag ft ON ft.value_id = v.id
            WHERE ft.tag_id = ?
            ORDER BY v.name
            """,
            (tag_id,),
        ).fetchall()
        return _read_values(rows)

    def unused(self) -> list[Value]:
        rows = self.conn.execute(
            """
            SELECT id, name
            FROM value
            WHERE id NOT IN (SELECT DISTINCT value_id FROM file_tag)
            ORDER BY name
            """
        ).fetchall()
        return _read_values(rows)

    def insert(self, name: str) -> Value:
        validate_value_name(name)

        cursor = self.conn.execute("INSERT INTO value (name) VALUES (?)", (name,))
        expect_one_row(cursor, "insert value")

        return Value(cursor.lastrowid, name)

    def rename(self, value_id: int, name: str) -> Value:
        validate_value_name(name)

        cursor = self.conn.execute("UPDATE value SET name = ? WHERE id = ?", (name, value_id))
        expect_one_row(cursor, "rename value")

        return Value(value_id, name)

    def delete(self, value_id: int) -> None:
        """file_tag を削除してから値の行を削除する.

        番兵（value_id=0）は永続化されていないため何もしない。
        ここで file_tag を消すと「値なし」のタグ付けが全て消えてしまう。
        """
        if value_id == NO_VALUE.id:
            return

        self.conn.execute("DELETE FROM file_tag WHERE value_id = ?", (value_id,))

        cursor = self.conn.execute("DELETE FROM value WHERE id = ?", (value_id,))
        expect_at_most_one_row(cursor, "delete value")

    def delete_if_unused(self, value_id: int) -> bool:
        """どの file_tag からも参照されていなければ値を削除する.

        Returns:
            削除した場合 True
        """
        if value_id == NO_VALUE.id:
            return False

        count = self.conn.execute(
            "SELECT count(1) FROM file_tag WHERE value_id = ?", (value_id,)
        ).fetchone()[0]
        if count > 0:
            return False

        cursor = self.conn.execute("DELETE FROM value WHERE id = ?", (value_id,))
        expect_at_most_one_row(cursor, "delete value")
        if cursor.rowcount:
            logger.debug(f"Deleted unused value #{value_id}")
        return cursor.rowcount == 1

    def delete_unused(self, value_ids: Iterable[int]) -> int:
        """指定した値のうち未使用のものを一括削除する.

        Returns:
            削除した行数
        """
        ids = [value_id for value_id in dict.fromkeys(value_ids) if value_id != NO_VALUE.id]
        deleted = 0
        for chunk in chunked(ids):
            cursor = self.conn.execute(
                f"""
                DELETE FROM value
                WHERE id IN ({placeholders(len(chunk))})
                  AND id NOT IN (SELECT DISTINCT value_id FROM file_tag)
                """,
                chunk,
            )
            deleted += cursor.rowcount
        return deleted
