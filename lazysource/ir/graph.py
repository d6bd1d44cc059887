"""Lightweight IR primitives for lazy source pipelines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Expr:
    """Base class for scalar or columnar expressions."""


@dataclass(frozen=True)
class ColumnRef(Expr):
    name: str


@dataclass(frozen=True)
class Literal(Expr):
    value: Any


@dataclass(frozen=True)
class BinaryExpr(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class ComparisonExpr(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class LogicalExpr(Expr):
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class UnaryExpr(Expr):
    op: str
    operand: Expr


@dataclass(frozen=True)
class CallExpr(Expr):
    """A function call left for the backend to evaluate."""

    name: str
    args: tuple[Expr, ...] = ()


@dataclass(frozen=True)
class SourceText(Expr):
    """Expression source captured from the caller, not yet parsed.

    Resolvers replace it; it never survives into a built pipeline.
    """

    text: str


@dataclass(frozen=True)
class SortKey:
    expr: Expr
    descending: bool = False


@dataclass(frozen=True)
class Computation:
    """Row-wise or aggregating stage of a pipeline.

    A descriptor holds exactly one of the variants below, so a pipeline can
    never carry mutate and summarise entries at the same time.
    """

    entries: tuple[tuple[str, Expr], ...] = ()

    @property
    def names(self) -> tuple[str, ...]:
        seen: list[str] = []
        for name, _ in self.entries:
            if name not in seen:
                seen.append(name)
        return tuple(seen)


@dataclass(frozen=True)
class NoComputation(Computation):
    pass


@dataclass(frozen=True)
class Mutation(Computation):
    pass


@dataclass(frozen=True)
class Summary(Computation):
    pass


def children(expr: Expr) -> tuple[Expr, ...]:
    if isinstance(expr, (BinaryExpr, ComparisonExpr, LogicalExpr)):
        return (expr.left, expr.right)
    if isinstance(expr, UnaryExpr):
        return (expr.operand,)
    if isinstance(expr, CallExpr):
        return tuple(expr.args)
    return ()


def expr_columns(expr: Expr) -> set[str]:
    """Return the set of column names referenced by an expression."""

    if isinstance(expr, ColumnRef):
        return {expr.name}
    found: set[str] = set()
    for child in children(expr):
        found |= expr_columns(child)
    return found


__all__ = [
    "BinaryExpr",
    "CallExpr",
    "ColumnRef",
    "ComparisonExpr",
    "Computation",
    "Expr",
    "Literal",
    "LogicalExpr",
    "Mutation",
    "NoComputation",
    "SortKey",
    "SourceText",
    "Summary",
    "UnaryExpr",
    "children",
    "expr_columns",
]
