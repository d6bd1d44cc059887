"""In-memory rendering of source pipelines with pandas."""

from __future__ import annotations

import operator
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

from lazysource.errors import RenderError
from lazysource.ir.functions import is_aggregate
from lazysource.ir.graph import (
    BinaryExpr,
    CallExpr,
    ColumnRef,
    ComparisonExpr,
    Expr,
    Literal,
    LogicalExpr,
    UnaryExpr,
)
from lazysource.planner.plan import (
    ArrangeStage,
    FilterStage,
    InputStage,
    MutateStage,
    ProjectStage,
    RenderPlan,
    SummariseStage,
    build_plan,
)
from lazysource.source.bases import DataFrameTable

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from lazysource.source.source import Source
else:
    from collections import abc as _abc

    Callable = _abc.Callable
    Mapping = _abc.Mapping
    Sequence = _abc.Sequence
    Source = Any

_BINARY_OPERATORS = {
    "add": operator.add,
    "sub": operator.sub,
    "mul": operator.mul,
    "truediv": operator.truediv,
    "floordiv": operator.floordiv,
    "mod": operator.mod,
    "pow": operator.pow,
}

_COMPARISON_OPERATORS = {
    "eq": operator.eq,
    "ne": operator.ne,
    "lt": operator.lt,
    "le": operator.le,
    "gt": operator.gt,
    "ge": operator.ge,
}


def _series(value: Any, frame: pd.DataFrame) -> pd.Series:
    if isinstance(value, pd.Series):
        return value
    if isinstance(value, (tuple, list)):
        return pd.Series([value] * len(frame), index=frame.index, dtype=object)
    # A scalar keeps its own dtype, so an empty frame still yields a bool mask.
    return pd.Series(value, index=frame.index)


def _first(values: pd.Series) -> Any:
    return values.iloc[0] if len(values) else np.nan


def _last(values: pd.Series) -> Any:
    return values.iloc[-1] if len(values) else np.nan


def _coalesce(first: Any, *rest: Any) -> Any:
    result = first
    for value in rest:
        if isinstance(result, pd.Series):
            result = result.where(result.notna(), value)
        elif result is None or (isinstance(result, float) and np.isnan(result)):
            result = value
    return result


_AGGREGATES: dict[str, Callable[[pd.Series], Any]] = {
    "mean": lambda s: s.mean(),
    "sum": lambda s: s.sum(),
    "min": lambda s: s.min(),
    "max": lambda s: s.max(),
    "count": lambda s: s.count(),
    "n_distinct": lambda s: s.nunique(dropna=False),
    "median": lambda s: s.median(),
    "sd": lambda s: s.std(),
    "var": lambda s: s.var(),
    "first": _first,
    "last": _last,
}

_SCALARS: dict[str, Callable[..., Any]] = {
    "abs": np.abs,
    "round": lambda x, digits=0: np.round(x, int(digits)),
    "sqrt": np.sqrt,
    "log": np.log,
    "exp": np.exp,
    "lower": lambda s: s.str.lower() if isinstance(s, pd.Series) else str(s).lower(),
    "upper": lambda s: s.str.upper() if isinstance(s, pd.Series) else str(s).upper(),
    "coalesce": _coalesce,
}


def evaluate(
    expr: Expr,
    frame: pd.DataFrame,
    scope: Mapping[str, Any] | None = None,
) -> Any:
    """Evaluate ``expr`` over ``frame``; literals stay scalars.

    ``scope`` holds values computed earlier in a summarise stage; they
    shadow columns of the same name.
    """

    if isinstance(expr, ColumnRef):
        if scope is not None and expr.name in scope:
            return scope[expr.name]
        if expr.name not in frame.columns:
            raise RenderError(f"Column {expr.name!r} is not available")
        return frame[expr.name]
    if isinstance(expr, Literal):
        return expr.value
    if isinstance(expr, BinaryExpr):
        op = _BINARY_OPERATORS.get(expr.op)
        if op is None:
            raise ValueError(f"Unsupported binary op {expr.op}")
        return op(evaluate(expr.left, frame, scope), evaluate(expr.right, frame, scope))
    if isinstance(expr, ComparisonExpr):
        left = evaluate(expr.left, frame, scope)
        right = evaluate(expr.right, frame, scope)
        if expr.op in {"in", "not_in"}:
            mask = _series(left, frame).isin(list(right))
            return ~mask if expr.op == "not_in" else mask
        op = _COMPARISON_OPERATORS.get(expr.op)
        if op is None:
            raise ValueError(f"Unsupported comparison op {expr.op}")
        return op(left, right)
    if isinstance(expr, LogicalExpr):
        left = evaluate(expr.left, frame, scope)
        right = evaluate(expr.right, frame, scope)
        if expr.op == "and":
            return np.logical_and(left, right)
        if expr.op == "or":
            return np.logical_or(left, right)
        raise ValueError(f"Unsupported logical op {expr.op}")
    if isinstance(expr, UnaryExpr):
        operand = evaluate(expr.operand, frame, scope)
        if expr.op == "neg":
            return -operand
        if expr.op == "pos":
            return operand
        if expr.op == "not":
            return np.logical_not(operand)
        raise ValueError(f"Unsupported unary op {expr.op}")
    if isinstance(expr, CallExpr):
        return _call(expr, frame, scope)
    raise TypeError(f"Unsupported expression type: {type(expr)!r}")


def _call(expr: CallExpr, frame: pd.DataFrame, scope: Mapping[str, Any] | None) -> Any:
    args = [evaluate(arg, frame, scope) for arg in expr.args]
    if expr.name in {"n", "count"} and not args:
        return len(frame)
    if expr.name in _AGGREGATES:
        if len(args) != 1:
            raise RenderError(f"{expr.name}() takes exactly one argument")
        return _AGGREGATES[expr.name](_series(args[0], frame))
    if expr.name in _SCALARS:
        return _SCALARS[expr.name](*args)
    raise RenderError(f"Function {expr.name!r} is not supported by the pandas backend")


def _apply_filter(frame: pd.DataFrame, stage: FilterStage) -> pd.DataFrame:
    mask = _series(evaluate(stage.predicate, frame), frame)
    if not pd.api.types.is_bool_dtype(mask):
        raise TypeError("Filter predicate must evaluate to booleans")
    return frame.loc[mask.fillna(False).astype(bool)]


def _partitions(
    frame: pd.DataFrame,
    keys: Sequence[tuple[str, Expr]],
):
    key_series = [
        _series(evaluate(expr, frame), frame).rename(name) for name, expr in keys
    ]
    return frame.groupby(key_series, sort=True, dropna=False)


def _apply_mutate(frame: pd.DataFrame, stage: MutateStage) -> pd.DataFrame:
    frame = frame.copy()
    for name, expr in stage.entries:
        if stage.partition_by and is_aggregate(expr) and len(frame):
            pieces = [
                _series(evaluate(expr, part), part)
                for _, part in _partitions(frame, stage.partition_by)
            ]
            frame[name] = pd.concat(pieces).reindex(frame.index)
        else:
            frame[name] = _series(evaluate(expr, frame), frame)
    return frame


def _scalar(value: Any, name: str) -> Any:
    if isinstance(value, pd.Series):
        if len(value) != 1:
            raise RenderError(
                f"summarise column {name!r} must reduce to a single value per group"
            )
        return value.iloc[0]
    return value


def _summarise_part(
    part: pd.DataFrame,
    entries: Sequence[tuple[str, Expr]],
) -> dict[str, Any]:
    scope: dict[str, Any] = {}
    for name, expr in entries:
        scope[name] = _scalar(evaluate(expr, part, scope), name)
    return scope


def _apply_summarise(frame: pd.DataFrame, stage: SummariseStage) -> pd.DataFrame:
    key_names = [name for name, _ in stage.keys]
    value_names: list[str] = []
    for name, _ in stage.entries:
        if name not in key_names and name not in value_names:
            value_names.append(name)
    if not stage.keys:
        row = _summarise_part(frame, stage.entries)
        return pd.DataFrame([[row[name] for name in value_names]], columns=value_names)

    rows: list[list[Any]] = []
    for key, part in _partitions(frame, stage.keys):
        key_values = key if isinstance(key, tuple) else (key,)
        summary = _summarise_part(part, stage.entries)
        rows.append(list(key_values) + [summary[name] for name in value_names])
    return pd.DataFrame(rows, columns=key_names + value_names)


def _apply_arrange(frame: pd.DataFrame, stage: ArrangeStage) -> pd.DataFrame:
    sort_columns = [f"__lazysource_key_{i}" for i in range(len(stage.keys))]
    keyed = frame.copy()
    for column, key in zip(sort_columns, stage.keys):
        keyed[column] = _series(evaluate(key.expr, frame), frame)
    ordered = keyed.sort_values(
        by=sort_columns,
        ascending=[not key.descending for key in stage.keys],
        kind="mergesort",
    )
    return ordered.drop(columns=sort_columns)


def execute_plan(plan: RenderPlan, data: pd.DataFrame) -> pd.DataFrame:
    current = data
    for stage in plan.stages:
        if isinstance(stage, InputStage):
            current = current.reset_index(drop=True).loc[:, list(stage.schema)]
        elif isinstance(stage, FilterStage):
            current = _apply_filter(current, stage)
        elif isinstance(stage, MutateStage):
            current = _apply_mutate(current, stage)
        elif isinstance(stage, SummariseStage):
            current = _apply_summarise(current, stage)
        elif isinstance(stage, ArrangeStage):
            current = _apply_arrange(current, stage)
        elif isinstance(stage, ProjectStage):
            current = current.loc[:, list(stage.columns)]
        else:
            raise NotImplementedError(f"Unsupported stage {type(stage).__name__}")
    return current.reset_index(drop=True)


class PandasBackend:
    name = "pandas"

    def supports(self, base: object) -> bool:
        return isinstance(base, DataFrameTable)

    def render(self, source: Source, plan: RenderPlan | None = None) -> pd.DataFrame:
        if not self.supports(source.base):
            raise RenderError(
                f"The pandas backend cannot render {type(source.base).__name__} sources"
            )
        plan = plan if plan is not None else build_plan(source)
        return execute_plan(plan, source.base.data)


__all__ = ["PandasBackend", "evaluate", "execute_plan"]
