"""Operator-overloading helpers that build unevaluated expressions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from lazysource.ir.graph import (
    BinaryExpr,
    CallExpr,
    ColumnRef,
    ComparisonExpr,
    Expr,
    Literal,
    LogicalExpr,
    SortKey,
    SourceText,
    UnaryExpr,
)

ExprLike = Union["ColExpr", Expr, int, float, bool, str, None]


def to_expr(value: Any) -> Expr:
    """Wrap a builder value as an IR node; plain Python values become literals."""

    if isinstance(value, ColExpr):
        return value.expr
    if isinstance(value, Expr):
        return value
    if isinstance(value, SortKey):
        raise TypeError("desc() may only wrap a whole arrange() argument")
    return Literal(value)


@dataclass(frozen=True)
class ColExpr:
    expr: Expr

    def __bool__(self) -> bool:
        raise TypeError(
            "Column expressions have no truth value; use & and | instead of "
            "'and'/'or', and avoid chained comparisons"
        )

    def desc(self) -> SortKey:
        return SortKey(self.expr, descending=True)

    def isin(self, values: Any) -> ColExpr:
        return ColExpr(ComparisonExpr("in", self.expr, Literal(tuple(values))))

    def _binary(self, op: str, other: ExprLike) -> ColExpr:
        return ColExpr(BinaryExpr(op=op, left=self.expr, right=to_expr(other)))

    def _rbinary(self, op: str, other: ExprLike) -> ColExpr:
        return ColExpr(BinaryExpr(op=op, left=to_expr(other), right=self.expr))

    def __add__(self, other: ExprLike) -> ColExpr:
        return self._binary("add", other)

    def __radd__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("add", other)

    def __sub__(self, other: ExprLike) -> ColExpr:
        return self._binary("sub", other)

    def __rsub__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("sub", other)

    def __mul__(self, other: ExprLike) -> ColExpr:
        return self._binary("mul", other)

    def __rmul__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("mul", other)

    def __truediv__(self, other: ExprLike) -> ColExpr:
        return self._binary("truediv", other)

    def __rtruediv__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("truediv", other)

    def __floordiv__(self, other: ExprLike) -> ColExpr:
        return self._binary("floordiv", other)

    def __rfloordiv__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("floordiv", other)

    def __mod__(self, other: ExprLike) -> ColExpr:
        return self._binary("mod", other)

    def __rmod__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("mod", other)

    def __pow__(self, other: ExprLike) -> ColExpr:
        return self._binary("pow", other)

    def __rpow__(self, other: ExprLike) -> ColExpr:
        return self._rbinary("pow", other)

    def __neg__(self) -> ColExpr:
        return ColExpr(UnaryExpr("neg", self.expr))

    def __pos__(self) -> ColExpr:
        return ColExpr(UnaryExpr("pos", self.expr))

    def __invert__(self) -> ColExpr:
        return ColExpr(UnaryExpr("not", self.expr))

    def _compare(self, op: str, other: ExprLike) -> ColExpr:
        return ColExpr(ComparisonExpr(op=op, left=self.expr, right=to_expr(other)))

    def __eq__(self, other: ExprLike) -> ColExpr:  # type: ignore[override]
        return self._compare("eq", other)

    def __ne__(self, other: ExprLike) -> ColExpr:  # type: ignore[override]
        return self._compare("ne", other)

    def __lt__(self, other: ExprLike) -> ColExpr:
        return self._compare("lt", other)

    def __le__(self, other: ExprLike) -> ColExpr:
        return self._compare("le", other)

    def __gt__(self, other: ExprLike) -> ColExpr:
        return self._compare("gt", other)

    def __ge__(self, other: ExprLike) -> ColExpr:
        return self._compare("ge", other)

    def _logical(self, op: str, other: ExprLike) -> ColExpr:
        return ColExpr(LogicalExpr(op=op, left=self.expr, right=to_expr(other)))

    def __and__(self, other: ExprLike) -> ColExpr:
        return self._logical("and", other)

    def __rand__(self, other: ExprLike) -> ColExpr:
        return ColExpr(LogicalExpr(op="and", left=to_expr(other), right=self.expr))

    def __or__(self, other: ExprLike) -> ColExpr:
        return self._logical("or", other)

    def __ror__(self, other: ExprLike) -> ColExpr:
        return ColExpr(LogicalExpr(op="or", left=to_expr(other), right=self.expr))


def col(name: str) -> ColExpr:
    return ColExpr(ColumnRef(name))


def lit(value: Any) -> ColExpr:
    """Force ``value`` to be a literal, even when it is a string."""

    return ColExpr(Literal(value))


def desc(value: ExprLike) -> SortKey:
    if isinstance(value, str):
        # Text is parsed later, against the source it is arranged on.
        return SortKey(SourceText(value), descending=True)
    return SortKey(to_expr(value), descending=True)


class FunctionNamespace:
    """Factory for deferred function calls, e.g. ``fn.mean(src.g)``."""

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        def build(*args: ExprLike) -> ColExpr:
            return ColExpr(CallExpr(name, tuple(to_expr(arg) for arg in args)))

        build.__name__ = name
        return build


fn = FunctionNamespace()


__all__ = ["ColExpr", "ExprLike", "col", "desc", "fn", "lit", "to_expr"]
