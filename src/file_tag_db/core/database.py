"""SQLiteデータベース作成・接続ユーティリティ.

タグストア用の SQLite スキーマ作成、接続の初期化、トランザクション境界（SAVEPOINT）を提供します。

注意:
    接続は autocommit（isolation_level=None）で開きます。
    複数ステートメントにまたがる処理は `transaction()` で明示的に囲む前提です。
"""

from __future__ import annotations

import itertools
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from .exceptions import InvariantViolation

# foreign_keys は接続ごとの設定なので、接続を開くたびに適用する。
CONNECTION_PRAGMAS = [
    "PRAGMA foreign_keys = ON;",
    "PRAGMA temp_store = MEMORY;",
]

PERSISTENT_PRAGMAS = [
    "PRAGMA journal_mode = WAL;",
    "PRAGMA synchronous = NORMAL;",
]

# 想定クエリ（タグ/値ごとの file_tag 走査、含意の前方/後方参照）に基づくインデックス
REQUIRED_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_file_tag_tag_id ON file_tag(tag_id);",
    "CREATE INDEX IF NOT EXISTS idx_file_tag_value_id ON file_tag(value_id);",
    "CREATE INDEX IF NOT EXISTS idx_implication_tag_id ON implication(tag_id);",
    "CREATE INDEX IF NOT EXISTS idx_implication_implied_tag_id ON implication(implied_tag_id);",
]

SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS tag (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        UNIQUE(name)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS value (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL,
        UNIQUE(name)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS file (
        id INTEGER PRIMARY KEY,
        path TEXT NOT NULL,
        UNIQUE(path)
    );
    """,
    # value_id = 0 は「値なし」。value テーブルには存在しないため外部キーは張らない。
    """
    CREATE TABLE IF NOT EXISTS file_tag (
        file_id INTEGER NOT NULL,
        tag_id INTEGER NOT NULL,
        value_id INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (file_id, tag_id, value_id),
        FOREIGN KEY(file_id) REFERENCES file(id),
        FOREIGN KEY(tag_id) REFERENCES tag(id)
    );
    """,
    # 重複エッジは許容する（for_tags 側で値比較により重複除去する）。
    """
    CREATE TABLE IF NOT EXISTS implication (
        tag_id INTEGER NOT NULL,
        implied_tag_id INTEGER NOT NULL,
        FOREIGN KEY(tag_id) REFERENCES tag(id),
        FOREIGN KEY(implied_tag_id) REFERENCES tag(id)
    );
    """,
]

# SQLite のホストパラメータ上限（古いビルドは 999）より小さく保つ
MAX_IN_PARAMS = 500

_savepoint_counter = itertools.count(1)


def apply_connection_pragmas(conn: sqlite3.Connection) -> None:
    """接続ごとに適用が必要な PRAGMA を設定する。"""
    for pragma in CONNECTION_PRAGMAS:
        conn.execute(pragma)


def connect(db_path: Path | str) -> sqlite3.Connection:
    """既存のデータベースに接続する.

    Args:
        db_path: データベースファイルパス（":memory:" も可）

    Returns:
        autocommit モードの接続（外部キー制約有効）
    """
    if str(db_path) != ":memory:":
        db_path = Path(db_path)
        if not db_path.exists():
            msg = f"Database does not exist: {db_path}"
            raise FileNotFoundError(msg)

    conn = sqlite3.connect(db_path, isolation_level=None)
    apply_connection_pragmas(conn)
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """DBスキーマ（テーブル・インデックス）を作成する."""
    for stmt in SCHEMA_SQL:
        conn.execute(stmt)
    for index_sql in REQUIRED_INDEXES:
        logger.debug(f"Creating index: {index_sql}")
        conn.execute(index_sql)


def create_database(db_path: Path | str) -> None:
    """データベースファイルを新規作成する.

    Args:
        db_path: 作成するデータベースファイルパス

    Note:
        既に存在する場合は警告のみで何もしません。
    """
    db_path = Path(db_path)

    if db_path.exists():
        logger.warning(f"Database already exists: {db_path}")
        return

    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Creating database: {db_path}")

    conn = sqlite3.connect(db_path, isolation_level=None)
    try:
        for pragma in PERSISTENT_PRAGMAS:
            conn.execute(pragma)
            logger.debug(f"Applied: {pragma}")

        apply_connection_pragmas(conn)
        create_schema(conn)
        logger.info("Database created successfully")

    except Exception as e:
        logger.error(f"Failed to create database: {e}")
        raise
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """SAVEPOINT による入れ子可能なトランザクション境界.

    ブロックが正常終了すれば RELEASE、例外なら ROLLBACK TO してから RELEASE し、例外を再送出します。
    外側のトランザクション内で呼ばれた場合は内側だけが巻き戻ります。
    """
    name = f"sp_{next(_savepoint_counter)}"
    conn.execute(f"SAVEPOINT {name};")
    try:
        yield conn
    except BaseException:
        # SQLITE_FULL などでは SQLite がトランザクション全体を巻き戻し、セーブポイントも消えている
        if conn.in_transaction:
            try:
                conn.execute(f"ROLLBACK TO {name};")
                conn.execute(f"RELEASE {name};")
            except sqlite3.OperationalError as rollback_error:
                logger.warning(f"Could not roll back savepoint {name}: {rollback_error}")
        raise
    else:
        conn.execute(f"RELEASE {name};")


def expect_one_row(cursor: sqlite3.Cursor, statement: str) -> None:
    if cursor.rowcount != 1:
        raise InvariantViolation(statement, "exactly one", cursor.rowcount)


def expect_at_most_one_row(cursor: sqlite3.Cursor, statement: str) -> None:
    if cursor.rowcount > 1:
        raise InvariantViolation(statement, "at most one", cursor.rowcount)


def chunked(seq: list, size: int = MAX_IN_PARAMS) -> Iterator[list]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def placeholders(count: int) -> str:
    """`IN (...)` 用のプレースホルダ文字列（例: "?,?,?"）."""
    return ",".join("?" * count)
