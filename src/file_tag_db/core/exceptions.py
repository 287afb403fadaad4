"""File tag DB exceptions.

カスタム例外クラスを定義します。

ストレージ由来の失敗は `sqlite3.Error` のまま伝播させ、ここでは包み直しません。
例外はマージ途中の失敗（`MergeStepError`）とコピー途中の失敗（`CopyStepError`）のみで、
どちらも `raise ... from e` で元の例外を保持します。
"""


class FileTagDbError(Exception):
    """呼び出し側で回復可能なドメインエラーの基底クラス."""


class InvalidNameError(FileTagDbError, ValueError):
    """タグ名/値名がクエリ文法の予約トークン・予約文字に抵触している."""


class TagNotFoundError(FileTagDbError, LookupError):
    """存在が必須の操作（マージ先、リネーム対象など）でタグが見つからない.

    単純な参照（by_id / by_name）は None を返すだけで、この例外は送出しません。
    """

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"no such tag '{name}'")


class MergeStepError(FileTagDbError):
    """マージ処理のいずれかのステップがストレージエラーで失敗した.

    Attributes:
        step: 失敗したステップ（"retrieve", "apply", "delete" など）
        tag_name: 処理中だったマージ元タグ名
    """

    def __init__(self, step: str, tag_name: str, message: str) -> None:
        self.step = step
        self.tag_name = tag_name
        super().__init__(message)


class CopyStepError(FileTagDbError):
    """タグのコピー中（作成または file_tag 複製）にストレージエラーが起きた."""

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(message)


class InvariantViolation(RuntimeError):
    """INSERT/UPDATE/DELETE の影響行数が契約と異なる.

    スキーマまたはストレージ層の欠陥を示すため回復不能として扱い、捕捉しないこと。
    """

    def __init__(self, statement: str, expected: str, actual: int) -> None:
        self.statement = statement
        self.expected = expected
        self.actual = actual
        super().__init__(f"{statement}: expected {expected} row(s) to be affected, got {actual}")
