"""file_tag_db: ファイル分類用タグストアのタグ/値/含意エンジン."""

__version__ = "0.1.0"
