from __future__ import annotations

import pytest

from lazysource import desc
from lazysource.errors import RenderError
from lazysource.ir.graph import ColumnRef
from lazysource.planner.plan import (
    FilterStage,
    MutateStage,
    SummariseStage,
    build_plan,
    stage_kind,
)


def _kinds(plan):
    return [stage_kind(stage) for stage in plan.stages]


def test_stages_follow_fixed_order(batting):
    source = (
        batting.arrange(desc("year"))
        .mutate(rate="rbi / g")
        .select("id", "rate")
        .filter("year > 1950")
    )
    plan = build_plan(source)
    assert _kinds(plan) == ["input", "filter", "mutate", "arrange", "project"]
    assert plan.final_schema == ("id", "rate")
    assert plan.notes == ()


def test_filters_are_combined_in_order(batting):
    plan = build_plan(batting.filter("year > 1950").filter("g > 100"))
    stage = plan.stage("filter")
    assert isinstance(stage, FilterStage)
    assert stage.predicate.op == "and"
    assert stage.predicate.left.left == ColumnRef("year")


def test_summarise_schema_puts_keys_first(batting):
    plan = build_plan(batting.group("lg").summarise(total="sum(rbi)", n="n()"))
    stage = plan.stage("summarise")
    assert isinstance(stage, SummariseStage)
    assert [name for name, _ in stage.keys] == ["lg"]
    assert plan.final_schema == ("lg", "total", "n")


def test_mutate_is_partitioned_by_group_keys(batting):
    plan = build_plan(batting.group("id").mutate(share="rbi / sum(rbi)"))
    stage = plan.stage("mutate")
    assert isinstance(stage, MutateStage)
    assert stage.partition_by == (("id", ColumnRef("id")),)
    assert plan.final_schema[-1] == "share"


def test_notes_for_ignored_and_duplicated_parts(batting):
    grouped = build_plan(batting.group("id"))
    assert grouped.notes == ("group keys have no effect without summarise or mutate",)

    shadowed = build_plan(batting.summarise(v="sum(rbi)").summarise(v="max(rbi)"))
    assert any("defined more than once" in note for note in shadowed.notes)
    assert shadowed.final_schema == ("v",)

    duplicated = build_plan(batting.select("id", "year").select("id"))
    assert duplicated.final_schema == ("id", "year")
    assert any("selected more than once" in note for note in duplicated.notes)


def test_filter_on_computed_column_is_rejected(batting):
    with pytest.raises(RenderError, match="computed"):
        build_plan(batting.mutate(rate="rbi / g").filter("rate > 0.5"))


def test_references_to_dropped_columns_are_rejected(batting):
    summary = batting.group("id").summarise(total="sum(rbi)")
    with pytest.raises(RenderError, match="Sort keys"):
        build_plan(summary.arrange("year"))
    with pytest.raises(RenderError, match="Selected columns"):
        build_plan(summary.select("year"))


def test_describe_lists_stages(batting):
    lines = batting.filter("year > 1980").group("id").summarise(n="n()").describe()
    assert lines == [
        "input: id, year, g, rbi, lg",
        "filter: year > 1980",
        "summarise: n = n() by id",
    ]


def test_summary_named_like_group_key_is_noted(batting):
    plan = build_plan(batting.group("id").summarise(id="n()", total="sum(rbi)"))
    assert plan.final_schema == ("id", "total")
    assert plan.notes == (
        "summarise column 'id' has the name of a group key; the group key is kept",
    )
