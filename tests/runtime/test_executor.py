from __future__ import annotations

import pandas as pd
import pytest

from lazysource import Source
from lazysource.errors import RenderError
from lazysource.runtime import executor


def test_auto_picks_backend_by_base(batting, sqlite_batting):
    assert executor.get_backend(batting.base).name == "pandas"
    sql_source = Source.from_sql(sqlite_batting, "batting")
    assert executor.get_backend(sql_source.base).name == "sql"


def test_unknown_environment_value_warns(monkeypatch):
    monkeypatch.setenv("LAZYSOURCE_BACKEND", "spark")
    with pytest.warns(UserWarning, match="Unknown LAZYSOURCE_BACKEND"):
        assert executor.requested_backend() == "auto"


def test_environment_backend_must_support_the_base(monkeypatch, batting):
    monkeypatch.setenv("LAZYSOURCE_BACKEND", "sql")
    with pytest.raises(RenderError):
        batting.summarise(n="n()").render()


def test_unknown_explicit_backend(batting):
    with pytest.raises(ValueError, match="Unknown backend"):
        executor.get_backend(batting.base, "spark")


def test_registered_backend_receives_plan(monkeypatch, batting):
    monkeypatch.setattr(executor, "_BACKENDS", dict(executor._BACKENDS))
    monkeypatch.setattr(executor, "_CHOICES", set(executor._CHOICES))
    seen = {}

    class RecordingBackend:
        name = "recording"

        def supports(self, base):
            return True

        def render(self, source, plan=None):
            seen["kinds"] = plan.describe()
            return pd.DataFrame({"ok": [True]})

    executor.register_backend(RecordingBackend())
    result = batting.filter("year > 1980").render(backend="recording")
    assert result["ok"].tolist() == [True]
    assert seen["kinds"][1] == "filter: year > 1980"


def test_environment_choice_is_normalised_and_cached(monkeypatch):
    monkeypatch.setenv("LAZYSOURCE_BACKEND", "PANDAS")
    assert executor.requested_backend() == "pandas"
    monkeypatch.setenv("LAZYSOURCE_BACKEND", "sql")
    assert executor.requested_backend() == "pandas"
    executor.reset_backend()
    assert executor.requested_backend() == "sql"
