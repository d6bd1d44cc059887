from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pandas as pd

from lazysource import Source, desc
from lazysource.ir.serialize import source_to_dict

ROOT = Path(__file__).resolve().parents[2]


def _run_cli(args: list[str], *, cwd: Path) -> subprocess.CompletedProcess:
    env = os.environ.copy()
    existing = env.get("PYTHONPATH", "")
    env["PYTHONPATH"] = str(ROOT) if not existing else f"{ROOT}{os.pathsep}{existing}"
    return subprocess.run(
        [sys.executable, *args],
        cwd=cwd,
        env=env,
        check=True,
        capture_output=True,
        text=True,
    )


def _write_pipeline(source: Source, path: Path) -> Path:
    path.write_text(json.dumps(source_to_dict(source), indent=2), encoding="utf-8")
    return path


def test_render_pipeline_cli(tmp_path: Path, batting_frame: pd.DataFrame) -> None:
    source = Source.from_pandas(batting_frame)
    pipeline = (
        source.filter("year > 1950")
        .group("id")
        .summarise(total="sum(rbi)", seasons="n()")
        .arrange(desc("total"))
    )
    pipeline_path = _write_pipeline(pipeline, tmp_path / "pipeline.json")
    sample_path = tmp_path / "batting.csv"
    batting_frame.to_csv(sample_path, index=False)
    out = tmp_path / "result.csv"

    _run_cli(
        [
            "-m",
            "lazysource.cli.render_pipeline",
            "--pipeline",
            str(pipeline_path),
            "--sample",
            str(sample_path),
            "--out",
            str(out),
        ],
        cwd=ROOT,
    )
    result = pd.read_csv(out)
    expected = pd.DataFrame({"id": ["bonds", "aaron"], "total": [162, 140], "seasons": [2, 2]})
    pd.testing.assert_frame_equal(result, expected, check_dtype=False)


def test_render_pipeline_cli_prints_sql(tmp_path: Path, batting_frame: pd.DataFrame) -> None:
    source = Source.from_pandas(batting_frame)
    pipeline_path = _write_pipeline(
        source.filter("lg == 'NL'").select("id", "rbi"), tmp_path / "pipeline.json"
    )
    completed = _run_cli(
        [
            "-m",
            "lazysource.cli.render_pipeline",
            "--pipeline",
            str(pipeline_path),
            "--sql",
            "batting",
        ],
        cwd=ROOT,
    )
    assert 'FROM "batting"' in completed.stdout
    assert "WHERE \"lg\" = 'NL'" in completed.stdout


def test_render_pipeline_cli_reports_notes(tmp_path: Path, batting_frame: pd.DataFrame) -> None:
    source = Source.from_pandas(batting_frame)
    pipeline_path = _write_pipeline(source.group("id"), tmp_path / "pipeline.json")
    sample_path = tmp_path / "batting.json"
    batting_frame.to_json(sample_path, orient="records")
    out = tmp_path / "result.csv"
    completed = _run_cli(
        [
            "-m",
            "lazysource.cli.render_pipeline",
            "--pipeline",
            str(pipeline_path),
            "--sample",
            str(sample_path),
            "--sample-format",
            "json",
            "--out",
            str(out),
        ],
        cwd=ROOT,
    )
    assert "group keys have no effect" in completed.stderr
    assert len(pd.read_csv(out)) == 6
