import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from file_tag_db.core.database import connect, create_database
from file_tag_db.core.files import FileTagRepository


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "tags.db"
    create_database(path)
    return path


@pytest.fixture
def conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    connection = connect(db_path)
    try:
        yield connection
    finally:
        connection.close()


@pytest.fixture
def add_file(conn: sqlite3.Connection):
    """パスを渡すと file を登録して ID を返すヘルパー."""
    files = FileTagRepository(conn)

    def _add(path: str) -> int:
        return files.add_file(path).id

    return _add
