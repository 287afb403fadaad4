"""タグストアのコア処理群.

- 名前検証（クエリ文法の予約トークン・予約文字）
- タグ/値/file_tag のリポジトリ
- 含意の保存と推移閉包の解決
- ライフサイクル操作（コピー、削除、マージ）
"""

from .database import connect, create_database, transaction
from .implications import ImplicationStore
from .lifecycle import MergeResult, copy_tag, delete_tag, merge_tags, rename_tag
from .tags import TagRepository
from .validation import validate_tag_name, validate_value_name
from .values import ValueRepository

__all__ = [
    "connect",
    "create_database",
    "transaction",
    "validate_tag_name",
    "validate_value_name",
    "TagRepository",
    "ValueRepository",
    "ImplicationStore",
    "MergeResult",
    "copy_tag",
    "delete_tag",
    "merge_tags",
    "rename_tag",
]
