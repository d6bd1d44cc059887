"""Render a serialized source pipeline against a sample table."""

from __future__ import annotations

import argparse
import json
import sys
import warnings
from pathlib import Path

import pandas as pd

from lazysource.ir.serialize import source_from_dict
from lazysource.runtime.executor import render
from lazysource.runtime.sql_backend import to_sql
from lazysource.source.bases import DataFrameTable


def _load_table(path: Path, fmt: str | None = None) -> pd.DataFrame:
    if fmt is None:
        suffix = path.suffix.lower()
        if suffix in {".parquet", ".pq"}:
            fmt = "parquet"
        elif suffix in {".json", ".jsonl"}:
            fmt = "json"
        else:
            fmt = "csv"
    if fmt == "parquet":
        return pd.read_parquet(path)
    if fmt == "json":
        return pd.read_json(path, lines=path.suffix.lower() == ".jsonl")
    return pd.read_csv(path)


def _write_table(frame: pd.DataFrame, path: Path) -> None:
    suffix = path.suffix.lower()
    if suffix in {".parquet", ".pq"}:
        frame.to_parquet(path, index=False)
    elif suffix == ".json":
        frame.to_json(path, orient="records", indent=2)
    else:
        frame.to_csv(path, index=False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--pipeline",
        type=Path,
        required=True,
        help="Serialized pipeline JSON (see lazysource.ir.serialize)",
    )
    parser.add_argument(
        "--sample",
        type=Path,
        default=None,
        help="Sample input table (csv/json/parquet)",
    )
    parser.add_argument(
        "--sample-format",
        choices=["csv", "json", "parquet"],
        default=None,
    )
    parser.add_argument(
        "--sql",
        metavar="TABLE",
        default=None,
        help="Print the SQL the pipeline renders to against TABLE instead of running it",
    )
    parser.add_argument(
        "--dialect",
        default=None,
        help="SQL dialect for --sql (defaults to LAZYSOURCE_SQL_DIALECT or sqlite)",
    )
    parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Output path for the rendered table (csv/json/parquet by suffix)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    pipeline = json.loads(args.pipeline.read_text(encoding="utf-8"))

    if args.sql is not None:
        if args.sample is not None:
            frame = _load_table(args.sample, args.sample_format)
        else:
            frame = pd.DataFrame(columns=list(pipeline.get("columns", ())))
        source = source_from_dict(pipeline, DataFrameTable(frame))
        query = to_sql(source, dialect=args.dialect, table=args.sql)
        if args.out is not None:
            args.out.write_text(query + "\n", encoding="utf-8")
        else:
            sys.stdout.write(query + "\n")
        return 0

    if args.sample is None or args.out is None:
        parser.error("--sample and --out are required unless --sql is given")

    source = source_from_dict(pipeline, DataFrameTable(_load_table(args.sample, args.sample_format)))
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        result = render(source, backend="pandas")
    for warning in caught:
        sys.stderr.write(f"note: {warning.message}\n")
    _write_table(result, args.out)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
