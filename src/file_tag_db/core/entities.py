"""タグストアのエンティティ（行の不変表現）."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Tag:
    id: int
    name: str


@dataclass(frozen=True)
class Value:
    id: int
    name: str


# 「値なし」を表す番兵。永続化されることはない。
NO_VALUE = Value(0, "")


@dataclass(frozen=True)
class File:
    id: int
    path: str


@dataclass(frozen=True)
class FileTag:
    """ファイルへのタグ付け.

    Attributes:
        explicit: file_tag テーブルに行が存在する
        implicit: 含意（implication）によって導かれる
    """

    file_id: int
    tag_id: int
    value_id: int = 0
    explicit: bool = True
    implicit: bool = False


@dataclass(frozen=True)
class Implication:
    """含意エッジ: implying_tag が付いたファイルは implied_tag も持つとみなす."""

    implying_tag: Tag
    implied_tag: Tag

    @property
    def key(self) -> tuple[int, int]:
        return (self.implying_tag.id, self.implied_tag.id)


def implies(implications: list[Implication], tag_id: int) -> bool:
    """いずれかのエッジの含意先が tag_id であるか."""
    return any(implication.implied_tag.id == tag_id for implication in implications)


@dataclass(frozen=True)
class TagFileCount:
    id: int
    name: str
    file_count: int
