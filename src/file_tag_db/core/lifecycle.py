"""タグのライフサイクル操作（コピー・削除・マージ・リネーム）.

コマンド層から呼ばれるオーケストレーション層です。
複数ステートメントにまたがる操作は `transaction()`（SAVEPOINT）で囲み、途中で失敗したら巻き戻します。

設計方針:
    - タグ削除は「含意エッジ → file_tag → tag 行」を1トランザクションで行う（retire）
    - マージはマージ元タグ1件ごとに1トランザクション。失敗したら以降は中断するが、
      それまでに処理済みのマージ元は巻き戻さない
    - 自己マージ・存在しないマージ元は警告として集計し、バッチ全体は続行する
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field

from loguru import logger

from .database import transaction
from .entities import FileTag, Tag, Value
from .exceptions import CopyStepError, MergeStepError, TagNotFoundError
from .files import FileTagRepository
from .implications import ImplicationStore
from .tags import TagRepository
from .validation import validate_tag_name
from .values import ValueRepository


@dataclass
class MergeResult:
    """マージ結果.

    Attributes:
        dest: マージ先タグ
        merged: マージ（削除）できたマージ元タグ名
        warnings: スキップしたマージ元についての警告
    """

    dest: Tag
    merged: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """警告なしで完了したか（False は「警告付きで完了」）."""
        return not self.warnings


def copy_tag(conn: sqlite3.Connection, source_tag_id: int, name: str) -> Tag:
    """タグをコピーする（新しいタグに同じ file_tag を複製する）.

    作成と複製は1トランザクションで行うため、複製に失敗しても新しいタグは残らない。

    Raises:
        InvalidNameError: name が不正
        CopyStepError: 作成または複製がストレージエラーで失敗した
    """
    validate_tag_name(name)

    tags = TagRepository(conn)
    file_tags = FileTagRepository(conn)

    with transaction(conn):
        try:
            tag = tags.insert(name)
        except sqlite3.Error as e:
            raise CopyStepError("create", f"could not create tag '{name}': {e}") from e

        try:
            copied = file_tags.copy(source_tag_id, tag.id)
        except sqlite3.Error as e:
            raise CopyStepError(
                "copy", f"could not copy file tags for tag #{source_tag_id} to tag '{name}': {e}"
            ) from e

    logger.info(f"Copied tag #{source_tag_id} to '{name}' ({copied} file tag(s))")
    return tag


def delete_tag(conn: sqlite3.Connection, tag_id: int) -> None:
    """タグを退役させる（含意エッジ・file_tag・タグ行を1トランザクションで削除）."""
    with transaction(conn):
        ImplicationStore(conn).remove_for_tag(tag_id)
        FileTagRepository(conn).delete_by_tag_id(tag_id)
        TagRepository(conn).delete(tag_id)

    logger.debug(f"Deleted tag #{tag_id}")


def rename_tag(conn: sqlite3.Connection, tag_id: int, name: str) -> Tag:
    """存在するタグをリネームする.

    Raises:
        TagNotFoundError: tag_id のタグが存在しない
        InvalidNameError: name が不正
    """
    tags = TagRepository(conn)
    if tags.by_id(tag_id) is None:
        raise TagNotFoundError(f"#{tag_id}")

    return tags.rename(tag_id, name)


def delete_value(conn: sqlite3.Connection, value_id: int) -> None:
    """値を削除する（参照している file_tag ごと）."""
    with transaction(conn):
        ValueRepository(conn).delete(value_id)


def tag_file(conn: sqlite3.Connection, file_id: int, tag_name: str, value_name: str = "") -> FileTag:
    """ファイルにタグ（と値）を付ける。タグ/値が無ければ作成する.

    値名が空なら「値なし」（value_id=0）として付ける。
    """
    tags = TagRepository(conn)
    values = ValueRepository(conn)

    with transaction(conn):
        tag = tags.by_name(tag_name)
        if tag is None:
            tag = tags.insert(tag_name)
            logger.info(f"New tag '{tag_name}'")

        value: Value | None = values.by_name(value_name)
        if value is None:
            value = values.insert(value_name)
            logger.info(f"New value '{value_name}'")

        return FileTagRepository(conn).add(file_id, tag.id, value.id)


def untag_file(conn: sqlite3.Connection, file_id: int, tag_id: int, value_id: int = 0) -> None:
    """ファイルからタグを外し、未使用になった値を削除する."""
    with transaction(conn):
        FileTagRepository(conn).delete(file_id, tag_id, value_id)
        ValueRepository(conn).delete_if_unused(value_id)


def _merge_one(conn: sqlite3.Connection, source: Tag, dest: Tag) -> int:
    """マージ元1件を処理する（呼び出し側でトランザクションを張る）."""
    file_tags = FileTagRepository(conn)

    logger.info(f"Finding files tagged '{source.name}'")
    try:
        source_file_tags = file_tags.by_tag_id(source.id, include_implied=True)
    except sqlite3.Error as e:
        raise MergeStepError(
            "retrieve", source.name, f"could not retrieve files for tag '{source.name}': {e}"
        ) from e

    logger.info(f"Applying tag '{dest.name}' to {len(source_file_tags)} file tag(s)")
    for file_tag in source_file_tags:
        try:
            file_tags.add(file_tag.file_id, dest.id, file_tag.value_id)
        except sqlite3.Error as e:
            raise MergeStepError(
                "apply",
                source.name,
                f"could not apply tag '{dest.name}' to file #{file_tag.file_id}: {e}",
            ) from e

    logger.info(f"Deleting tag '{source.name}'")
    try:
        ImplicationStore(conn).update_for_tag(source.id, dest.id)
        delete_tag(conn, source.id)
    except sqlite3.Error as e:
        raise MergeStepError("delete", source.name, f"could not delete tag '{source.name}': {e}") from e

    return len(source_file_tags)


def merge_tags(conn: sqlite3.Connection, source_names: list[str], dest_name: str) -> MergeResult:
    """複数のタグを1つのタグにマージする.

    処理の流れ:
        1. マージ先を名前で解決（存在しなければ何もせず TagNotFoundError）
        2. マージ元ごとに（指定順）
           - マージ先と同名 → 警告してスキップ
           - 存在しない → 警告してスキップ
           - 含意で導かれる分も含めて file_tag を取得し、値を保ったままマージ先に付け替える
           - マージ元の含意エッジをマージ先に付け替え、マージ元を削除する
        3. 警告があれば MergeResult.ok が False（警告付き完了）

    Args:
        conn: DB接続
        source_names: マージ元タグ名
        dest_name: マージ先タグ名

    Returns:
        MergeResult

    Raises:
        TagNotFoundError: マージ先が存在しない
        MergeStepError: マージ元の処理中にストレージエラー（そのマージ元は巻き戻され、
            それ以前に処理したマージ元はマージ済みのまま残る）

    Examples:
        >>> result = merge_tags(conn, ["cehese"], "cheese")
        >>> result.ok
        True
    """
    tags = TagRepository(conn)

    dest = tags.by_name(dest_name)
    if dest is None:
        raise TagNotFoundError(dest_name)

    result = MergeResult(dest=dest)

    for source_name in source_names:
        if source_name == dest_name:
            message = f"cannot merge tag '{source_name}' into itself."
            logger.warning(message)
            result.warnings.append(message)
            continue

        try:
            source = tags.by_name(source_name)
        except sqlite3.Error as e:
            raise MergeStepError(
                "retrieve", source_name, f"could not retrieve tag '{source_name}': {e}"
            ) from e
        if source is None:
            message = f"no such tag '{source_name}'."
            logger.warning(message)
            result.warnings.append(message)
            continue

        try:
            with transaction(conn):
                _merge_one(conn, source, dest)
        except MergeStepError as e:
            logger.error(f"Merge aborted at step '{e.step}' for tag '{e.tag_name}': {e}")
            raise

        result.merged.append(source_name)

    logger.info(
        f"Merged {len(result.merged)} tag(s) into '{dest_name}'"
        + (f" with {len(result.warnings)} warning(s)" if result.warnings else "")
    )
    return result
