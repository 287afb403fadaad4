"""CLI エントリポイント.

終了コード:
    0: 成功
    1: 警告付きで完了（マージ元のスキップなど）
    2: エラー
"""

from __future__ import annotations

import argparse
import sqlite3
import sys
from pathlib import Path

import yaml
from loguru import logger

from file_tag_db import __version__
from file_tag_db.config import load_config, resolve_database_path
from file_tag_db.core.database import connect, create_database
from file_tag_db.core.entities import Tag
from file_tag_db.core.exceptions import FileTagDbError, TagNotFoundError
from file_tag_db.core.files import FileTagRepository
from file_tag_db.core.implications import ImplicationStore
from file_tag_db.core.lifecycle import copy_tag, delete_tag, merge_tags, rename_tag, tag_file
from file_tag_db.core.tags import TagRepository
from file_tag_db.core.values import ValueRepository

EXIT_OK = 0
EXIT_WARNINGS = 1
EXIT_ERROR = 2


def _configure_logging(verbosity: int, default_level: str) -> None:
    level = {0: default_level, 1: "INFO"}.get(verbosity, "DEBUG")
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{level}</level>: {message}")


def _require_tag(tags: TagRepository, name: str) -> Tag:
    tag = tags.by_name(name)
    if tag is None:
        raise TagNotFoundError(name)
    return tag


def _cmd_init(args: argparse.Namespace, db_path: Path) -> int:
    create_database(db_path)
    return EXIT_OK


def _cmd_tag(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    file = FileTagRepository(conn).add_file(str(Path(args.file).resolve()))
    for arg in args.tags:
        tag_name, _, value_name = arg.partition("=")
        tag_file(conn, file.id, tag_name, value_name)
    return EXIT_OK


def _cmd_tags(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    tags = TagRepository(conn)
    if args.count:
        for usage in tags.usage():
            print(f"{usage.name}\t{usage.file_count}")
    else:
        for tag in tags.all():
            print(tag.name)
    return EXIT_OK


def _cmd_values(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    for value in ValueRepository(conn).all():
        print(value.name)
    return EXIT_OK


def _cmd_rename(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    tag = _require_tag(TagRepository(conn), args.old)
    rename_tag(conn, tag.id, args.new)
    return EXIT_OK


def _cmd_copy(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    tag = _require_tag(TagRepository(conn), args.tag)
    copy_tag(conn, tag.id, args.new)
    return EXIT_OK


def _cmd_delete(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    tags = TagRepository(conn)
    were_warnings = False
    for name in args.tags:
        tag = tags.by_name(name)
        if tag is None:
            logger.warning(f"no such tag '{name}'.")
            were_warnings = True
            continue
        delete_tag(conn, tag.id)
    return EXIT_WARNINGS if were_warnings else EXIT_OK


def _cmd_merge(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    if len(args.tags) < 2:
        logger.error("too few arguments")
        return EXIT_ERROR

    *source_names, dest_name = args.tags
    result = merge_tags(conn, source_names, dest_name)
    return EXIT_OK if result.ok else EXIT_WARNINGS


def _cmd_imply(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    tags = TagRepository(conn)
    implications = ImplicationStore(conn)

    tag = _require_tag(tags, args.tag)
    for implied_name in args.implied:
        implied = _require_tag(tags, implied_name)
        if args.delete:
            if implications.remove(tag.id, implied.id) == 0:
                logger.warning(f"tag '{tag.name}' does not imply '{implied.name}'.")
        else:
            implications.add(tag.id, implied.id)
    return EXIT_OK


def _cmd_implications(conn: sqlite3.Connection, args: argparse.Namespace) -> int:
    implications = ImplicationStore(conn)
    if args.tags:
        tags = TagRepository(conn)
        edges = implications.for_tags([_require_tag(tags, name).id for name in args.tags])
    else:
        edges = implications.all()

    for edge in edges:
        print(f"{edge.implying_tag.name} -> {edge.implied_tag.name}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="file-tag-db", description="Manage tags of a file tag database")
    parser.add_argument("--database", type=Path, default=None, help="Database file path")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("file-tag-db.yml"),
        help="YAML config file (default: ./file-tag-db.yml if present)",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create a new database")

    p = sub.add_parser("tag", help="Apply tags to a file")
    p.add_argument("file", help="File path")
    p.add_argument("tags", nargs="+", metavar="TAG[=VALUE]")

    p = sub.add_parser("tags", help="List tags")
    p.add_argument("--count", action="store_true", help="Show the number of tagged files")

    sub.add_parser("values", help="List values")

    p = sub.add_parser("rename", help="Rename a tag")
    p.add_argument("old")
    p.add_argument("new")

    p = sub.add_parser("copy", help="Copy a tag")
    p.add_argument("tag")
    p.add_argument("new")

    p = sub.add_parser("delete", help="Delete tags")
    p.add_argument("tags", nargs="+", metavar="TAG")

    p = sub.add_parser("merge", help="Merge TAGs into DEST")
    p.add_argument("tags", nargs="+", metavar="TAG", help="Source tags followed by the destination tag")

    p = sub.add_parser("imply", help="Add (or remove) tag implications")
    p.add_argument("--delete", action="store_true", help="Remove the implications instead")
    p.add_argument("tag")
    p.add_argument("implied", nargs="+")

    p = sub.add_parser("implications", help="List implications (closure for the given tags)")
    p.add_argument("tags", nargs="*", metavar="TAG")

    return parser


_COMMANDS = {
    "tag": _cmd_tag,
    "tags": _cmd_tags,
    "values": _cmd_values,
    "rename": _cmd_rename,
    "copy": _cmd_copy,
    "delete": _cmd_delete,
    "merge": _cmd_merge,
    "imply": _cmd_imply,
    "implications": _cmd_implications,
}


def main(argv: list[str] | None = None) -> int:
    """CLI エントリポイント（終了コードを返す）."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except (ValueError, yaml.YAMLError) as e:
        _configure_logging(args.verbose, "WARNING")
        logger.error(str(e))
        return EXIT_ERROR
    _configure_logging(args.verbose, config.log_level)
    db_path = resolve_database_path(args.database, config)

    if args.command == "init":
        return _cmd_init(args, db_path)

    try:
        conn = connect(db_path)
    except FileNotFoundError as e:
        logger.error(f"{e} (run 'file-tag-db init' first)")
        return EXIT_ERROR

    try:
        return _COMMANDS[args.command](conn, args)
    except (FileTagDbError, sqlite3.Error) as e:
        logger.error(str(e))
        return EXIT_ERROR
    finally:
        conn.close()


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
