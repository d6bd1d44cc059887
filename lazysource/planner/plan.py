"""Render plans derived from source descriptors.

A descriptor records what was asked for; the plan fixes the single order in
which every backend applies it: input, filter, mutate or summarise, arrange,
project.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from lazysource.errors import RenderError
from lazysource.ir.format import expr_to_string, sort_key_to_string
from lazysource.ir.graph import ColumnRef, Expr, LogicalExpr, SortKey, expr_columns

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lazysource.source.source import Source
else:
    from collections import abc as _abc

    Iterable = _abc.Iterable
    Source = object


@dataclass(frozen=True)
class InputStage:
    schema: tuple[str, ...]


@dataclass(frozen=True)
class FilterStage:
    predicate: Expr


@dataclass(frozen=True)
class MutateStage:
    entries: tuple[tuple[str, Expr], ...]
    partition_by: tuple[tuple[str, Expr], ...] = ()


@dataclass(frozen=True)
class SummariseStage:
    keys: tuple[tuple[str, Expr], ...]
    entries: tuple[tuple[str, Expr], ...]


@dataclass(frozen=True)
class ArrangeStage:
    keys: tuple[SortKey, ...]


@dataclass(frozen=True)
class ProjectStage:
    columns: tuple[str, ...]


_STAGE_KINDS = {
    InputStage: "input",
    FilterStage: "filter",
    MutateStage: "mutate",
    SummariseStage: "summarise",
    ArrangeStage: "arrange",
    ProjectStage: "project",
}


def stage_kind(stage: object) -> str:
    for stage_type, kind in _STAGE_KINDS.items():
        if isinstance(stage, stage_type):
            return kind
    return type(stage).__name__.lower()


def _describe_stage(stage: object) -> str:
    kind = stage_kind(stage)
    if isinstance(stage, InputStage):
        detail = ", ".join(stage.schema)
    elif isinstance(stage, FilterStage):
        detail = expr_to_string(stage.predicate)
    elif isinstance(stage, MutateStage):
        detail = ", ".join(f"{n} = {expr_to_string(e)}" for n, e in stage.entries)
        if stage.partition_by:
            detail += " over " + ", ".join(name for name, _ in stage.partition_by)
    elif isinstance(stage, SummariseStage):
        detail = ", ".join(f"{n} = {expr_to_string(e)}" for n, e in stage.entries)
        if stage.keys:
            detail += " by " + ", ".join(name for name, _ in stage.keys)
    elif isinstance(stage, ArrangeStage):
        detail = ", ".join(sort_key_to_string(key) for key in stage.keys)
    elif isinstance(stage, ProjectStage):
        detail = ", ".join(stage.columns)
    else:
        detail = ""
    return f"{kind}: {detail}" if detail else kind


@dataclass(frozen=True)
class RenderPlan:
    stages: tuple[object, ...]
    final_schema: tuple[str, ...]
    notes: tuple[str, ...] = ()

    def describe(self) -> list[str]:
        return [_describe_stage(stage) for stage in self.stages]

    def stage(self, kind: str) -> object | None:
        for stage in self.stages:
            if stage_kind(stage) == kind:
                return stage
        return None


def group_key_name(expr: Expr) -> str:
    if isinstance(expr, ColumnRef):
        return expr.name
    return expr_to_string(expr)


def combine_predicates(predicates: Iterable[Expr]) -> Expr | None:
    combined: Expr | None = None
    for predicate in predicates:
        combined = predicate if combined is None else LogicalExpr("and", combined, predicate)
    return combined


def _unique(names: Iterable[str]) -> tuple[tuple[str, ...], list[str]]:
    seen: list[str] = []
    duplicates: list[str] = []
    for name in names:
        if name in seen:
            if name not in duplicates:
                duplicates.append(name)
            continue
        seen.append(name)
    return tuple(seen), duplicates


def build_plan(source: Source) -> RenderPlan:
    base_schema = tuple(source.base.column_names())
    stages: list[object] = [InputStage(base_schema)]
    notes: list[str] = []
    schema = base_schema

    predicate = combine_predicates(source.filters)
    if predicate is not None:
        computed = sorted(expr_columns(predicate) - set(base_schema))
        if computed:
            raise RenderError(
                "Filters are applied to base rows and cannot reference computed "
                f"columns: {computed}"
            )
        stages.append(FilterStage(predicate))

    keys = tuple((group_key_name(expr), expr) for expr in source.groups)
    if source.summaries:
        names, shadowed = _unique(name for name, _ in source.summaries)
        for name in shadowed:
            notes.append(
                f"summarise column {name!r} is defined more than once; "
                "the last definition is used"
            )
        stages.append(SummariseStage(keys=keys, entries=source.summaries))
        key_names, _ = _unique(name for name, _ in keys)
        for name in names:
            if name in key_names:
                notes.append(
                    f"summarise column {name!r} has the name of a group key; "
                    "the group key is kept"
                )
        schema = key_names + tuple(name for name in names if name not in key_names)
    elif source.mutations:
        stages.append(MutateStage(entries=source.mutations, partition_by=keys))
        schema = schema + tuple(
            name for name in source.computation.names if name not in schema
        )
    elif keys:
        notes.append("group keys have no effect without summarise or mutate")

    if source.ordering:
        referenced: set[str] = set()
        for key in source.ordering:
            referenced |= expr_columns(key.expr)
        missing = sorted(referenced - set(schema))
        if missing:
            raise RenderError(f"Sort keys reference unavailable columns: {missing}")
        stages.append(ArrangeStage(tuple(source.ordering)))

    if source.selected:
        columns, duplicates = _unique(source.selected)
        if duplicates:
            notes.append(f"columns selected more than once: {duplicates}")
        missing = [name for name in columns if name not in schema]
        if missing:
            raise RenderError(f"Selected columns are not available: {missing}")
        stages.append(ProjectStage(columns))
        schema = columns

    return RenderPlan(stages=tuple(stages), final_schema=schema, notes=tuple(notes))


__all__ = [
    "ArrangeStage",
    "FilterStage",
    "InputStage",
    "MutateStage",
    "ProjectStage",
    "RenderPlan",
    "SummariseStage",
    "build_plan",
    "combine_predicates",
    "group_key_name",
    "stage_kind",
]
