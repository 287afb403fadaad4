"""タグの含意（implication）の保存と推移閉包の解決.

含意はタグIDの組 (tag_id → implied_tag_id) の有向グラフとして保存します。
循環は拒否せず許容し、閉包の解決側で停止性と重複除去を保証します。
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from loguru import logger

from .database import chunked, placeholders, transaction
from .entities import Implication, Tag

_SELECT_IMPLICATIONS = """
    SELECT i.tag_id, t1.name, i.implied_tag_id, t2.name
    FROM implication i
    JOIN tag t1 ON t1.id = i.tag_id
    JOIN tag t2 ON t2.id = i.implied_tag_id
"""


def _read_implications(rows: list[tuple[int, str, int, str]]) -> list[Implication]:
    return [
        Implication(Tag(tag_id, tag_name), Tag(implied_id, implied_name))
        for tag_id, tag_name, implied_id, implied_name in rows
    ]


class ImplicationStore:
    """implication テーブルへのアクセスと閉包計算."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def all(self) -> list[Implication]:
        rows = self.conn.execute(_SELECT_IMPLICATIONS + " ORDER BY t1.name, t2.name").fetchall()
        return _read_implications(rows)

    def _direct_for_tags(self, tag_ids: list[int]) -> list[Implication]:
        implications: list[Implication] = []
        for chunk in chunked(tag_ids):
            rows = self.conn.execute(
                _SELECT_IMPLICATIONS + f" WHERE i.tag_id IN ({placeholders(len(chunk))}) ORDER BY t1.name, t2.name",
                chunk,
            ).fetchall()
            implications.extend(_read_implications(rows))
        return implications

    def for_tags(self, tag_ids: Iterable[int]) -> list[Implication]:
        """指定タグから到達できる含意エッジ（推移閉包）を返す.

        集積結果（空）とフロンティア（起点ID）を持ち、フロンティアの直接エッジを取得しては
        (含意元ID, 含意先ID) が未収集のものだけを結果に加え、その含意先IDを次のフロンティアにする。
        フロンティアが空になったら終了する。

        - 循環があっても、循環内のエッジを収集し終えた時点で新しいフロンティアが出なくなり停止する
        - 同じエッジに複数の経路で到達しても（また DB 上で重複していても）結果には1回だけ現れる

        Args:
            tag_ids: 起点となるタグID

        Returns:
            含意エッジのリスト（発見順）
        """
        result: list[Implication] = []
        seen: set[tuple[int, int]] = set()
        frontier = list(dict.fromkeys(tag_ids))

        while frontier:
            next_frontier: list[int] = []
            for implication in self._direct_for_tags(frontier):
                if implication.key in seen:
                    continue
                seen.add(implication.key)
                result.append(implication)
                next_frontier.append(implication.implied_tag.id)
            frontier = list(dict.fromkeys(next_frontier))

        return result

    def add(self, tag_id: int, implied_tag_id: int) -> None:
        self.conn.execute(
            "INSERT INTO implication (tag_id, implied_tag_id) VALUES (?, ?)",
            (tag_id, implied_tag_id),
        )
        logger.debug(f"Added implication #{tag_id} -> #{implied_tag_id}")

    def update_for_tag(self, tag_id: int, new_tag_id: int) -> int:
        """tag_id を端点に持つ全エッジを new_tag_id に付け替える.

        含意元側・含意先側の両方を書き換える。書き換えの結果 new_tag_id → new_tag_id となった
        自己ループは削除し、new_tag_id を端点に持つ重複エッジは1本にまとめる。

        Returns:
            書き換えた端点の数
        """
        with transaction(self.conn):
            implying = self.conn.execute(
                "UPDATE implication SET tag_id = ? WHERE tag_id = ?",
                (new_tag_id, tag_id),
            ).rowcount
            implied = self.conn.execute(
                "UPDATE implication SET implied_tag_id = ? WHERE implied_tag_id = ?",
                (new_tag_id, tag_id),
            ).rowcount
            self.conn.execute(
                "DELETE FROM implication WHERE tag_id = ? AND implied_tag_id = ?",
                (new_tag_id, new_tag_id),
            )
            # 付け替えで同じ (含意元, 含意先) になったエッジは rowid の最小のものだけ残す
            self.conn.execute(
                """
                DELETE FROM implication
                WHERE (tag_id = ? OR implied_tag_id = ?)
                  AND rowid NOT IN (
                      SELECT min(rowid)
                      FROM implication
                      WHERE tag_id = ? OR implied_tag_id = ?
                      GROUP BY tag_id, implied_tag_id
                  )
                """,
                (new_tag_id, new_tag_id, new_tag_id, new_tag_id),
            )

        logger.debug(f"Rewrote {implying + implied} implication endpoint(s) from #{tag_id} to #{new_tag_id}")
        return implying + implied

    def remove(self, tag_id: int, implied_tag_id: int) -> int:
        cursor = self.conn.execute(
            "DELETE FROM implication WHERE tag_id = ? AND implied_tag_id = ?",
            (tag_id, implied_tag_id),
        )
        return cursor.rowcount

    def remove_for_tag(self, tag_id: int) -> int:
        cursor = self.conn.execute(
            "DELETE FROM implication WHERE tag_id = ? OR implied_tag_id = ?",
            (tag_id, tag_id),
        )
        logger.debug(f"Removed {cursor.rowcount} implication(s) featuring tag #{tag_id}")
        return cursor.rowcount
