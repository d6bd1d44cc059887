from __future__ import annotations

from lazysource.ir.format import expr_to_string, sort_key_to_string
from lazysource.ir.functions import is_aggregate
from lazysource.ir.graph import (
    BinaryExpr,
    CallExpr,
    ColumnRef,
    ComparisonExpr,
    Literal,
    LogicalExpr,
    Mutation,
    SortKey,
    UnaryExpr,
    expr_columns,
)


def test_expr_to_string_parenthesizes_nested_operands():
    predicate = LogicalExpr(
        "and",
        ComparisonExpr("gt", ColumnRef("year"), Literal(1980)),
        ComparisonExpr("in", ColumnRef("lg"), Literal(("AL",))),
    )
    assert expr_to_string(predicate) == "(year > 1980) & (lg in ('AL',))"
    assert expr_to_string(BinaryExpr("mul", ColumnRef("rbi"), Literal(2))) == "rbi * 2"
    assert expr_to_string(UnaryExpr("neg", ColumnRef("x"))) == "-x"
    assert expr_to_string(CallExpr("mean", (ColumnRef("g"),))) == "mean(g)"


def test_sort_key_to_string():
    assert sort_key_to_string(SortKey(ColumnRef("y"), descending=True)) == "desc(y)"
    assert sort_key_to_string(SortKey(ColumnRef("y"))) == "y"


def test_expr_columns_collects_references():
    expr = BinaryExpr(
        "add",
        CallExpr("sum", (ColumnRef("rbi"),)),
        UnaryExpr("neg", ColumnRef("g")),
    )
    assert expr_columns(expr) == {"rbi", "g"}


def test_is_aggregate_looks_through_the_tree():
    assert is_aggregate(BinaryExpr("sub", ColumnRef("x"), CallExpr("mean", (ColumnRef("x"),))))
    assert not is_aggregate(CallExpr("abs", (ColumnRef("x"),)))


def test_computation_names_are_unique_in_first_position():
    entries = (
        ("a", Literal(1)),
        ("b", Literal(2)),
        ("a", Literal(3)),
    )
    assert Mutation(entries).names == ("a", "b")
