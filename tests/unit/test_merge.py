"""merge_tags（タグのマージ）のユニットテスト."""

import sqlite3
import time

import pytest

from file_tag_db.core.database import transaction
from file_tag_db.core.exceptions import MergeStepError, TagNotFoundError
from file_tag_db.core.files import FileTagRepository
from file_tag_db.core.implications import ImplicationStore
from file_tag_db.core.lifecycle import merge_tags, tag_file
from file_tag_db.core.tags import TagRepository
from file_tag_db.core.values import ValueRepository


def _files_with(conn: sqlite3.Connection, tag_name: str) -> set[int]:
    tag = TagRepository(conn).by_name(tag_name)
    return {ft.file_id for ft in FileTagRepository(conn).by_tag_id(tag.id)}


class TestMergeTags:
    """merge_tags関数のテスト."""

    def test_basic_merge(self, conn: sqlite3.Connection, add_file) -> None:
        """綴り違いのタグを正しいタグにまとめる."""
        f1 = add_file("/f1")
        f2 = add_file("/f2")
        tag_file(conn, f1, "cheese")
        tag_file(conn, f2, "cehese")

        result = merge_tags(conn, ["cehese"], "cheese")

        assert result.ok
        assert result.merged == ["cehese"]
        assert _files_with(conn, "cheese") == {f1, f2}
        assert TagRepository(conn).by_name("cehese") is None

    def test_multiple_sources(self, conn: sqlite3.Connection, add_file) -> None:
        f1 = add_file("/f1")
        f2 = add_file("/f2")
        f3 = add_file("/f3")
        tag_file(conn, f1, "cheese")
        tag_file(conn, f2, "cehese")
        tag_file(conn, f3, "chese")
        tag_file(conn, f3, "cehese")

        result = merge_tags(conn, ["cehese", "chese"], "cheese")

        assert result.merged == ["cehese", "chese"]
        assert _files_with(conn, "cheese") == {f1, f2, f3}
        assert [t.name for t in TagRepository(conn).all()] == ["cheese"]

    def test_warnings_for_self_and_missing(self, conn: sqlite3.Connection, add_file) -> None:
        """自己マージと存在しないマージ元は警告になり、マージ先は変わらない."""
        f1 = add_file("/f1")
        tag_file(conn, f1, "cheese")

        result = merge_tags(conn, ["ghost", "cheese"], "cheese")

        assert not result.ok
        assert result.merged == []
        assert result.warnings == [
            "no such tag 'ghost'.",
            "cannot merge tag 'cheese' into itself.",
        ]
        assert _files_with(conn, "cheese") == {f1}

    def test_warnings_do_not_stop_batch(self, conn: sqlite3.Connection, add_file) -> None:
        f1 = add_file("/f1")
        tag_file(conn, f1, "cehese")
        TagRepository(conn).insert("cheese")

        result = merge_tags(conn, ["ghost", "cehese"], "cheese")

        assert result.merged == ["cehese"]
        assert len(result.warnings) == 1
        assert _files_with(conn, "cheese") == {f1}

    def test_missing_destination(self, conn: sqlite3.Connection, add_file) -> None:
        tag_file(conn, add_file("/f1"), "cehese")

        with pytest.raises(TagNotFoundError):
            merge_tags(conn, ["cehese"], "cheese")

        assert TagRepository(conn).by_name("cehese") is not None

    def test_values_are_preserved(self, conn: sqlite3.Connection, add_file) -> None:
        f1 = add_file("/f1")
        f2 = add_file("/f2")
        tag_file(conn, f1, "yr", "2023")
        tag_file(conn, f2, "year", "2024")

        merge_tags(conn, ["yr"], "year")

        year = TagRepository(conn).by_name("year")
        v2023 = ValueRepository(conn).by_name("2023")
        v2024 = ValueRepository(conn).by_name("2024")
        pairs = [(ft.file_id, ft.value_id) for ft in FileTagRepository(conn).by_tag_id(year.id)]
        assert pairs == [(f1, v2023.id), (f2, v2024.id)]

    def test_implications_move_to_destination(self, conn: sqlite3.Connection) -> None:
        """マージ元の含意エッジはマージ先に付け替えられ、自己ループは消える."""
        tags = TagRepository(conn)
        store = ImplicationStore(conn)
        src = tags.insert("src")
        dest = tags.insert("dest")
        x = tags.insert("x")
        y = tags.insert("y")
        store.add(src.id, x.id)
        store.add(y.id, src.id)
        store.add(src.id, dest.id)

        merge_tags(conn, ["src"], "dest")

        assert sorted(i.key for i in store.all()) == sorted([(dest.id, x.id), (y.id, dest.id)])

    def test_shared_implication_listed_once(self, conn: sqlite3.Connection) -> None:
        """マージ元とマージ先が同じタグを含意していても、マージ後のエッジは1本."""
        tags = TagRepository(conn)
        store = ImplicationStore(conn)
        src = tags.insert("src")
        dest = tags.insert("dest")
        food = tags.insert("food")
        store.add(src.id, food.id)
        store.add(dest.id, food.id)

        merge_tags(conn, ["src"], "dest")

        assert [(i.implying_tag.name, i.implied_tag.name) for i in store.all()] == [("dest", "food")]

    def test_merge_heavily_used_tag(self, conn: sqlite3.Connection, add_file) -> None:
        """数千ファイルに付いたタグ（含意あり）のマージが現実的な時間で終わる."""
        tags = TagRepository(conn)
        store = ImplicationStore(conn)
        file_tags = FileTagRepository(conn)
        src = tags.insert("src")
        dest = tags.insert("dest")
        for name in ["i1", "i2", "i3"]:
            store.add(src.id, tags.insert(name).id)

        with transaction(conn):
            for n in range(4000):
                file_tags.add(add_file(f"/f{n}"), src.id)

        started = time.perf_counter()
        result = merge_tags(conn, ["src"], "dest")
        elapsed = time.perf_counter() - started

        assert result.ok
        assert file_tags.count_by_tag_id(dest.id) == 4000
        assert elapsed < 5.0

    def test_implied_file_tags_are_applied(self, conn: sqlite3.Connection, add_file) -> None:
        """マージ元から含意されるタグが付いたファイルにもマージ先が付く."""
        tags = TagRepository(conn)
        tags.insert("mozzarella")
        tags.insert("cheese")
        f1 = add_file("/f1")
        tag_file(conn, f1, "mozarella")
        ImplicationStore(conn).add(tags.by_name("mozarella").id, tags.by_name("cheese").id)

        merge_tags(conn, ["mozarella"], "mozzarella")

        assert _files_with(conn, "mozzarella") == {f1}

    def test_storage_error_keeps_earlier_sources(
        self, conn: sqlite3.Connection, add_file, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """途中のストレージエラーでは、それ以前のマージ元はマージ済みのまま、失敗したマージ元は元のまま."""
        f1 = add_file("/f1")
        f2 = add_file("/f2")
        tag_file(conn, f1, "first")
        tag_file(conn, f2, "second")
        dest = TagRepository(conn).insert("dest")

        original_add = FileTagRepository.add

        def _add(self, file_id: int, tag_id: int, value_id: int = 0):
            if file_id == f2 and tag_id == dest.id:
                raise sqlite3.OperationalError("disk I/O error")
            return original_add(self, file_id, tag_id, value_id)

        monkeypatch.setattr(FileTagRepository, "add", _add)

        with pytest.raises(MergeStepError) as excinfo:
            merge_tags(conn, ["first", "second"], "dest")

        assert excinfo.value.step == "apply"
        assert excinfo.value.tag_name == "second"

        monkeypatch.undo()
        tags = TagRepository(conn)
        assert tags.by_name("first") is None
        assert tags.by_name("second") is not None
        assert _files_with(conn, "dest") == {f1}
        assert _files_with(conn, "second") == {f2}
