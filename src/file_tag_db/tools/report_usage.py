"""タグ使用状況と含意グラフのレポートを CSV として出力する。"""

from __future__ import annotations

import argparse
from pathlib import Path

import polars as pl
from loguru import logger

from file_tag_db.core.database import connect
from file_tag_db.core.implications import ImplicationStore
from file_tag_db.core.tags import TagRepository
from file_tag_db.core.values import ValueRepository


def usage_frame(tags: TagRepository) -> pl.DataFrame:
    """タグごとの使用ファイル数（名前順）."""
    usage = tags.usage()
    return pl.DataFrame(
        {
            "tag_id": [u.id for u in usage],
            "tag": [u.name for u in usage],
            "file_count": [u.file_count for u in usage],
        },
        schema={"tag_id": pl.Int64, "tag": pl.String, "file_count": pl.Int64},
    )


def implications_frame(implications: ImplicationStore) -> pl.DataFrame:
    edges = implications.all()
    return pl.DataFrame(
        {
            "tag_id": [e.implying_tag.id for e in edges],
            "tag": [e.implying_tag.name for e in edges],
            "implied_tag_id": [e.implied_tag.id for e in edges],
            "implied_tag": [e.implied_tag.name for e in edges],
        },
        schema={
            "tag_id": pl.Int64,
            "tag": pl.String,
            "implied_tag_id": pl.Int64,
            "implied_tag": pl.String,
        },
    )


def unused_values_frame(values: ValueRepository) -> pl.DataFrame:
    unused = values.unused()
    return pl.DataFrame(
        {"value_id": [v.id for v in unused], "value": [v.name for v in unused]},
        schema={"value_id": pl.Int64, "value": pl.String},
    )


def export_usage_reports(db_path: Path | str, output_dir: Path | str) -> dict[str, Path | None]:
    """レポートをCSVファイルとして出力する.

    Args:
        db_path: データベースファイルパス
        output_dir: 出力ディレクトリ

    Returns:
        出力したCSVのパス（該当行が無ければ None）
        - "tag_usage": tag_usage.csv
        - "implications": implications.csv
        - "unused_values": unused_values.csv
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path)
    try:
        frames = {
            "tag_usage": usage_frame(TagRepository(conn)),
            "implications": implications_frame(ImplicationStore(conn)),
            "unused_values": unused_values_frame(ValueRepository(conn)),
        }
    finally:
        conn.close()

    result_paths: dict[str, Path | None] = {}
    for name, frame in frames.items():
        if len(frame) == 0:
            result_paths[name] = None
            continue
        path = output_dir / f"{name}.csv"
        frame.write_csv(path)
        logger.info(f"Wrote {len(frame)} row(s): {path}")
        result_paths[name] = path

    return result_paths


def main() -> None:
    parser = argparse.ArgumentParser(description="Export tag usage and implication reports as CSV.")
    parser.add_argument("--db", type=Path, required=True, help="SQLite DB path")
    parser.add_argument("--out-dir", type=Path, required=True, help="Output directory for CSV reports")
    args = parser.parse_args()

    export_usage_reports(args.db, args.out_dir)


if __name__ == "__main__":
    main()
