from __future__ import annotations

from dataclasses import replace

import pytest

from lazysource import desc, fn
from lazysource.errors import IncompatibleOperationError, ResolutionError
from lazysource.ir.graph import (
    BinaryExpr,
    CallExpr,
    ColumnRef,
    ComparisonExpr,
    Literal,
    NoComputation,
    SortKey,
    Summary,
)


def test_verbs_leave_receiver_unchanged(batting):
    snapshot = replace(batting)
    batting.filter("year > 1980")
    batting.mutate(rate="rbi / g")
    batting.summarise(total="sum(rbi)")
    batting.arrange(desc("year"))
    batting.select("id:g")
    batting.group("id")
    assert batting == snapshot
    assert batting.filters == ()
    assert isinstance(batting.computation, NoComputation)


def test_filter_appends_in_call_order(batting):
    first = batting.filter("year > 1980")
    second = first.filter("g > 100")
    assert second.filters == (
        ComparisonExpr("gt", ColumnRef("year"), Literal(1980)),
        ComparisonExpr("gt", ColumnRef("g"), Literal(100)),
    )
    assert first.filters == second.filters[:1]


def test_filter_rejects_keyword_arguments(batting):
    with pytest.raises(TypeError):
        batting.filter(year=1980)


def test_mutate_after_summarise_fails_and_keeps_input(batting):
    summarised = batting.summarise(total="sum(rbi)")
    snapshot = replace(summarised)
    with pytest.raises(IncompatibleOperationError, match="only one of summarise and mutate"):
        summarised.mutate(rate="rbi / g")
    assert summarised == snapshot


def test_summarise_after_mutate_fails(batting):
    mutated = batting.mutate(rate="rbi / g")
    with pytest.raises(IncompatibleOperationError):
        mutated.summarise(total="sum(rbi)")
    with pytest.raises(ValueError):
        mutated.summarize(total="sum(rbi)")


def test_filter_then_summarise_scenario(batting):
    result = batting.filter("year > 1980").summarise(g="mean(g)")
    assert result.filters == (ComparisonExpr("gt", ColumnRef("year"), Literal(1980)),)
    assert result.summaries == (("g", CallExpr("mean", (ColumnRef("g"),))),)
    assert result.mutations == ()
    assert isinstance(result.computation, Summary)
    with pytest.raises(IncompatibleOperationError):
        result.mutate(x="g * 2")


def test_arrange_keeps_direction_and_order(batting):
    result = batting.arrange("year", desc("g"))
    assert result.ordering == (
        SortKey(ColumnRef("year")),
        SortKey(ColumnRef("g"), descending=True),
    )
    assert batting.arrange("desc(g)").ordering == result.ordering[1:]
    assert batting.arrange(batting.g.desc()).ordering == result.ordering[1:]


def test_group_and_arrange_are_independent(batting):
    result = batting.group("id").arrange(desc("year"))
    assert result.groups == (ColumnRef("id"),)
    assert result.ordering == (SortKey(ColumnRef("year"), descending=True),)


def test_local_names_fold_into_literals(batting):
    threshold = 1980
    result = batting.filter("year > threshold + 5")
    assert result.filters == (ComparisonExpr("gt", ColumnRef("year"), Literal(1985)),)


def test_columns_shadow_local_names(batting):
    year = 2000  # noqa: F841
    result = batting.filter("year > 1")
    assert result.filters == (ComparisonExpr("gt", ColumnRef("year"), Literal(1)),)


def test_explicit_environment_replaces_caller_scope(batting):
    result = batting.filter("year > cutoff", _env={"cutoff": 1950})
    assert result.filters[0].right == Literal(1950)
    with pytest.raises(ResolutionError):
        batting.filter("year > threshold", _env={})


def test_unknown_name_raises_resolution_error(batting):
    with pytest.raises(ResolutionError) as info:
        batting.filter("salary > 10")
    assert info.value.name == "salary"
    assert isinstance(info.value, NameError)


def test_unparsable_text_raises_syntax_error(batting):
    with pytest.raises(SyntaxError):
        batting.filter("year >")


def test_local_function_folds_when_arguments_are_constant(batting):
    def cutoff(offset):
        return 1900 + offset

    result = batting.filter("year > cutoff(80)")
    assert result.filters[0].right == Literal(1980)
    with pytest.raises(ResolutionError):
        batting.filter("cutoff(year) > 1")


def test_builder_expressions_match_text(batting):
    assert batting.filter(batting.year > 1980).filters == batting.filter("year > 1980").filters
    mixed = batting.filter((batting.lg == "NL") & (batting.g > 100))
    assert mixed.filters == batting.filter("(lg == 'NL') & (g > 100)").filters


def test_builder_expression_has_no_truth_value(batting):
    with pytest.raises(TypeError):
        batting.filter((batting.year > 1980) and (batting.g > 1))


def test_membership_uses_local_collection(batting):
    leagues = ["AL"]
    result = batting.filter("lg in leagues")
    assert result.filters == (ComparisonExpr("in", ColumnRef("lg"), Literal(("AL",))),)
    assert batting.filter(batting.lg.isin(leagues)).filters == result.filters


def test_mutate_sees_earlier_names(batting):
    result = batting.mutate(rate="rbi / g", double="rate * 2")
    assert result.mutations[1] == (
        "double",
        BinaryExpr("mul", ColumnRef("rate"), Literal(2)),
    )
    later = result.mutate(triple="rate * 3")
    assert later.mutations[-1][1].left == ColumnRef("rate")
    assert later.columns == ("id", "year", "g", "rbi", "lg", "rate", "double", "triple")


def test_unnamed_entries_are_named_by_text(batting):
    result = batting.mutate("rbi * 2", fn.mean(batting.g))
    assert [name for name, _ in result.mutations] == ["rbi * 2", "mean(g)"]


def test_summarise_keeps_reused_names(batting):
    result = batting.summarise(v="sum(rbi)").summarise(v="max(rbi)")
    assert [name for name, _ in result.summaries] == ["v", "v"]
    assert result.computation.names == ("v",)


def test_empty_computation_call_is_a_copy(batting):
    assert batting.mutate() == batting
    assert isinstance(batting.summarise().computation, NoComputation)


def test_desc_outside_arrange_is_rejected(batting):
    with pytest.raises(ResolutionError):
        batting.mutate(x="desc(g)")
    with pytest.raises(ResolutionError):
        batting.filter(desc("g"))


def test_column_proxies(batting):
    assert batting.year.expr == ColumnRef("year")
    assert batting["lg"].expr == ColumnRef("lg")
    with pytest.raises(AttributeError):
        batting.salary
    with pytest.raises(KeyError):
        batting["salary"]


def test_str_lists_pending_operations(batting):
    text = str(batting.filter("year > 1980").group("id").summarise(n="n()"))
    assert "filter: year > 1980" in text
    assert "summarise: n = n()" in text
    assert "group: id" in text
