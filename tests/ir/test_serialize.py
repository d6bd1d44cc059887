from __future__ import annotations

import json

import pandas as pd
import pytest

from lazysource import desc
from lazysource.ir.graph import BinaryExpr, CallExpr, ColumnRef, Literal, UnaryExpr
from lazysource.ir.serialize import (
    expr_from_dict,
    expr_to_dict,
    source_from_dict,
    source_to_dict,
)
from lazysource.source.bases import DataFrameTable


def test_expr_roundtrip_nested_call():
    expr = BinaryExpr(
        "truediv",
        CallExpr("sum", (ColumnRef("rbi"),)),
        UnaryExpr("neg", Literal(2)),
    )
    restored = expr_from_dict(json.loads(json.dumps(expr_to_dict(expr))))
    assert restored == expr


def test_source_roundtrip_through_json(batting):
    leagues = ["AL", "NL"]
    pipeline = (
        batting.filter("year > 1950", "lg in leagues")
        .group("id")
        .summarise(total="sum(rbi)", games="sum(g)")
        .arrange(desc("total"))
        .select("id", "total")
    )
    payload = json.loads(json.dumps(source_to_dict(pipeline)))
    assert payload["columns"] == ["id", "year", "g", "rbi", "lg"]
    assert payload["computation"]["kind"] == "summarise"

    restored = source_from_dict(payload, pipeline.base)
    assert restored == pipeline
    pd.testing.assert_frame_equal(restored.render(), pipeline.render())


def test_source_from_dict_checks_base_columns(batting):
    payload = source_to_dict(batting.filter("year > 1950"))
    other = DataFrameTable(pd.DataFrame({"id": ["x"], "year": [2000]}))
    with pytest.raises(ValueError, match="recorded against columns"):
        source_from_dict(payload, other)


def test_unknown_kinds_are_rejected(batting):
    with pytest.raises(ValueError):
        expr_from_dict({"kind": "window"})
    payload = source_to_dict(batting)
    payload["computation"]["kind"] = "pivot"
    with pytest.raises(ValueError):
        source_from_dict(payload, batting.base)
