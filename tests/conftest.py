"""Pytest configuration for lazysource tests."""

from __future__ import annotations

import sqlite3
import sys
from pathlib import Path

import pandas as pd
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lazysource.runtime.executor import reset_backend  # noqa: E402
from lazysource.source.source import Source  # noqa: E402


@pytest.fixture
def batting_frame() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "id": ["aaron", "aaron", "bonds", "bonds", "ruth", "ruth"],
            "year": [1974, 1976, 1986, 1990, 1927, 1935],
            "g": [150, 80, 110, 150, 151, 28],
            "rbi": [100, 40, 48, 114, 164, 12],
            "lg": ["NL", "AL", "NL", "NL", "AL", "NL"],
        }
    )


@pytest.fixture
def batting(batting_frame: pd.DataFrame) -> Source:
    return Source.from_pandas(batting_frame)


@pytest.fixture
def sqlite_batting(batting_frame: pd.DataFrame):
    connection = sqlite3.connect(":memory:")
    batting_frame.to_sql("batting", connection, index=False)
    try:
        yield connection
    finally:
        connection.close()


@pytest.fixture(autouse=True)
def _fresh_backend_choice():
    reset_backend()
    yield
    reset_backend()
