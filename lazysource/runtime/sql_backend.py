"""Translate source pipelines to SQL with sqlglot and run them."""

from __future__ import annotations

import numbers
import os
from typing import TYPE_CHECKING, Any

import pandas as pd
from sqlglot import exp

from lazysource.errors import RenderError
from lazysource.ir.functions import AGGREGATES
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
from lazysource.source.bases import SQLTable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from lazysource.source.source import Source
else:
    from collections import abc as _abc

    Mapping = _abc.Mapping
    Sequence = _abc.Sequence
    Source = Any

DEFAULT_TABLE_NAME = "source"

_BINARY_NODES = {
    "add": exp.Add,
    "sub": exp.Sub,
    "mul": exp.Mul,
    "truediv": exp.Div,
    "floordiv": exp.IntDiv,
    "mod": exp.Mod,
    "pow": exp.Pow,
}

_COMPARISON_NODES = {
    "eq": exp.EQ,
    "ne": exp.NEQ,
    "lt": exp.LT,
    "le": exp.LTE,
    "gt": exp.GT,
    "ge": exp.GTE,
}

_LOGICAL_NODES = {
    "and": exp.And,
    "or": exp.Or,
}

_SQL_FUNCTIONS = {
    "mean": "AVG",
    "sum": "SUM",
    "min": "MIN",
    "max": "MAX",
    "count": "COUNT",
    "median": "MEDIAN",
    "sd": "STDDEV",
    "var": "VARIANCE",
    "abs": "ABS",
    "round": "ROUND",
    "sqrt": "SQRT",
    "log": "LN",
    "exp": "EXP",
    "lower": "LOWER",
    "upper": "UPPER",
    "coalesce": "COALESCE",
}


def default_dialect() -> str:
    return os.environ.get("LAZYSOURCE_SQL_DIALECT", "sqlite")


def _wrap(node: exp.Expression) -> exp.Expression:
    if isinstance(node, (exp.Binary, exp.Not, exp.Neg)):
        return exp.Paren(this=node)
    return node


def _literal(value: Any) -> exp.Expression:
    if value is None:
        return exp.Null()
    if isinstance(value, bool):
        return exp.Boolean(this=value)
    if isinstance(value, numbers.Number):
        return exp.Literal.number(value)
    if isinstance(value, str):
        return exp.Literal.string(value)
    raise RenderError(f"Cannot express literal {value!r} in SQL")


class _Translator:
    """Turn IR into sqlglot nodes, inlining names defined earlier."""

    def __init__(
        self,
        dialect: str,
        definitions: Mapping[str, exp.Expression] | None = None,
        window: Sequence[exp.Expression] | None = None,
    ) -> None:
        self.dialect = dialect
        self.definitions = dict(definitions or {})
        # When set, aggregates become window functions over these keys.
        self.window = window

    def __call__(self, expr: Expr) -> exp.Expression:
        if isinstance(expr, ColumnRef):
            if expr.name in self.definitions:
                return _wrap(self.definitions[expr.name].copy())
            return exp.column(expr.name, quoted=True)
        if isinstance(expr, Literal):
            return _literal(expr.value)
        if isinstance(expr, BinaryExpr):
            node_type = _BINARY_NODES.get(expr.op)
            if node_type is None:
                raise ValueError(f"Unsupported binary op {expr.op}")
            return node_type(this=_wrap(self(expr.left)), expression=_wrap(self(expr.right)))
        if isinstance(expr, ComparisonExpr):
            left = _wrap(self(expr.left))
            if expr.op in {"in", "not_in"}:
                values = [_literal(value) for value in expr.right.value]  # type: ignore[attr-defined]
                node: exp.Expression = exp.In(this=left, expressions=values)
                return exp.Not(this=exp.Paren(this=node)) if expr.op == "not_in" else node
            node_type = _COMPARISON_NODES.get(expr.op)
            if node_type is None:
                raise ValueError(f"Unsupported comparison op {expr.op}")
            return node_type(this=left, expression=_wrap(self(expr.right)))
        if isinstance(expr, LogicalExpr):
            node_type = _LOGICAL_NODES.get(expr.op)
            if node_type is None:
                raise ValueError(f"Unsupported logical op {expr.op}")
            return node_type(this=_wrap(self(expr.left)), expression=_wrap(self(expr.right)))
        if isinstance(expr, UnaryExpr):
            operand = _wrap(self(expr.operand))
            if expr.op == "neg":
                return exp.Neg(this=operand)
            if expr.op == "pos":
                return operand
            if expr.op == "not":
                return exp.Not(this=operand)
            raise ValueError(f"Unsupported unary op {expr.op}")
        if isinstance(expr, CallExpr):
            node = self._call(expr)
            if self.window is not None and expr.name in AGGREGATES:
                return exp.Window(
                    this=node,
                    partition_by=[key.copy() for key in self.window] or None,
                )
            return node
        raise TypeError(f"Unsupported expression type: {type(expr)!r}")

    def _call(self, expr: CallExpr) -> exp.Expression:
        args = [self(arg) for arg in expr.args]
        if expr.name in {"n", "count"} and not args:
            return exp.Count(this=exp.Star())
        if expr.name == "n_distinct":
            if len(args) != 1:
                raise RenderError("n_distinct() takes exactly one argument")
            return exp.Count(this=exp.Distinct(expressions=args))
        sql_name = _SQL_FUNCTIONS.get(expr.name)
        if sql_name is None:
            raise RenderError(f"Function {expr.name!r} has no SQL translation")
        return exp.func(sql_name, *args, dialect=self.dialect)


def _table_name(source: Source, table: str | None) -> str:
    if table is not None:
        return table
    if isinstance(source.base, SQLTable):
        return source.base.name
    return DEFAULT_TABLE_NAME


def _dialect_for(source: Source, dialect: str | None) -> str:
    if dialect is not None:
        return dialect
    if isinstance(source.base, SQLTable):
        return source.base.dialect
    return default_dialect()


def _output(node: exp.Expression, name: str) -> exp.Expression:
    if isinstance(node, exp.Column) and node.name == name:
        return node
    return exp.alias_(node, name, quoted=True)


def build_select(plan: RenderPlan, *, table: str, dialect: str) -> exp.Select:
    outputs: dict[str, exp.Expression] = {}
    definitions: dict[str, exp.Expression] = {}
    where: exp.Expression | None = None
    group_by: list[exp.Expression] = []
    order_by: list[exp.Expression] = []

    for stage in plan.stages:
        if isinstance(stage, InputStage):
            outputs = {name: exp.column(name, quoted=True) for name in stage.schema}
        elif isinstance(stage, FilterStage):
            where = _Translator(dialect)(stage.predicate)
        elif isinstance(stage, MutateStage):
            window = [_Translator(dialect)(key) for _, key in stage.partition_by]
            for name, expr in stage.entries:
                node = _Translator(dialect, definitions, window=window)(expr)
                definitions[name] = node
                outputs[name] = _output(node, name)
        elif isinstance(stage, SummariseStage):
            outputs = {}
            key_names = {name for name, _ in stage.keys}
            for name, key in stage.keys:
                node = _Translator(dialect)(key)
                group_by.append(node)
                outputs[name] = _output(node.copy(), name)
            for name, expr in stage.entries:
                node = _Translator(dialect, definitions)(expr)
                definitions[name] = node
                if name not in key_names:
                    outputs[name] = _output(node, name)
        elif isinstance(stage, ArrangeStage):
            translate = _Translator(dialect, definitions)
            order_by = [
                exp.Ordered(this=translate(key.expr), desc=key.descending)
                for key in stage.keys
            ]
        elif isinstance(stage, ProjectStage):
            outputs = {name: outputs[name] for name in stage.columns}
        else:
            raise NotImplementedError(f"Unsupported stage {type(stage).__name__}")

    query = exp.select(*outputs.values()).from_(exp.table_(table, quoted=True))
    if where is not None:
        query = query.where(where)
    if group_by:
        query = query.group_by(*group_by)
    if order_by:
        query = query.order_by(*order_by)
    return query


def to_sql(
    source: Source,
    *,
    dialect: str | None = None,
    table: str | None = None,
) -> str:
    """Return the SQL text a source pipeline renders to."""

    dialect = _dialect_for(source, dialect)
    query = build_select(build_plan(source), table=_table_name(source, table), dialect=dialect)
    return query.sql(dialect=dialect)


class SQLBackend:
    name = "sql"

    def supports(self, base: object) -> bool:
        return isinstance(base, SQLTable)

    def render(self, source: Source, plan: RenderPlan | None = None) -> pd.DataFrame:
        if not self.supports(source.base):
            raise RenderError(
                f"The sql backend cannot render {type(source.base).__name__} sources"
            )
        plan = plan if plan is not None else build_plan(source)
        base = source.base
        query = build_select(plan, table=base.name, dialect=base.dialect)
        result = pd.read_sql_query(query.sql(dialect=base.dialect), base.connection)
        return result.loc[:, list(plan.final_schema)]


__all__ = ["SQLBackend", "build_select", "default_dialect", "to_sql"]
