"""設定の読み込みとデータベースパスの解決."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml
from loguru import logger

DATABASE_ENV_VAR = "FILE_TAG_DB"
LOCAL_DB_DIR = ".file-tag-db"
LOCAL_DB_NAME = "db"
DEFAULT_DB_PATH = Path("~") / LOCAL_DB_DIR / "default.db"


@dataclass(frozen=True)
class StoreConfig:
    database: Path | None = None
    log_level: str = "WARNING"


def load_config(config_yml: Path | None) -> StoreConfig:
    """YAML 設定ファイルを読み込む.

    Args:
        config_yml: 設定ファイルのパス（None または存在しない場合はデフォルト設定）

    Returns:
        StoreConfig

    Raises:
        ValueError: トップレベルがマッピングでない場合、または log_level が未知のレベル名の場合
    """
    if config_yml is None or not Path(config_yml).exists():
        return StoreConfig()

    with open(config_yml, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Config must be a mapping: {config_yml}")

    database = config.get("database")
    log_level = str(config.get("log_level", "WARNING")).upper()
    try:
        logger.level(log_level)
    except ValueError as e:
        raise ValueError(f"Unknown log_level '{log_level}' in {config_yml}") from e

    logger.debug(f"Loaded config from {config_yml}")
    return StoreConfig(
        database=Path(database).expanduser() if database else None,
        log_level=log_level,
    )


def _find_local_database(start: Path) -> Path | None:
    for directory in (start, *start.parents):
        candidate = directory / LOCAL_DB_DIR / LOCAL_DB_NAME
        if candidate.exists():
            return candidate
    return None


def resolve_database_path(
    explicit: Path | None = None,
    config: StoreConfig | None = None,
    *,
    cwd: Path | None = None,
) -> Path:
    """使用するデータベースのパスを決める.

    優先順位:
        1. 明示指定（--database）
        2. 環境変数 FILE_TAG_DB
        3. 設定ファイルの database
        4. カレントディレクトリから親へ遡って見つかった .file-tag-db/db
        5. ~/.file-tag-db/default.db
    """
    if explicit is not None:
        return Path(explicit)

    env_path = os.environ.get(DATABASE_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    if config is not None and config.database is not None:
        return config.database

    local = _find_local_database((cwd or Path.cwd()).resolve())
    if local is not None:
        return local

    return DEFAULT_DB_PATH.expanduser()
