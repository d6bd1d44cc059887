"""Partial evaluation of captured expressions.

Names that match a source column stay symbolic; every other name is looked
up in the caller's environment and folded into a literal. Calls are
evaluated eagerly when the function is bound locally and all arguments are
already constant, and kept symbolic when they name a backend function.
"""

from __future__ import annotations

import ast
import operator
from typing import TYPE_CHECKING, Any

from lazysource.errors import ResolutionError
from lazysource.expr.builder import ColExpr
from lazysource.ir.functions import SORT_MARKER, is_backend_function
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

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from lazysource.expr.capture import Captured
    from lazysource.source.source import Source
else:
    from collections import abc as _abc

    Mapping = _abc.Mapping
    Sequence = _abc.Sequence
    Captured = Source = Any

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
    "in": lambda left, right: left in right,
    "not_in": lambda left, right: left not in right,
}

_UNARY_OPERATORS = {
    "neg": operator.neg,
    "pos": operator.pos,
    "not": operator.not_,
}

_AST_BINARY = {
    ast.Add: "add",
    ast.Sub: "sub",
    ast.Mult: "mul",
    ast.Div: "truediv",
    ast.FloorDiv: "floordiv",
    ast.Mod: "mod",
    ast.Pow: "pow",
}

_AST_LOGICAL = {
    ast.BitAnd: "and",
    ast.BitOr: "or",
    ast.And: "and",
    ast.Or: "or",
}

_AST_COMPARISON = {
    ast.Eq: "eq",
    ast.NotEq: "ne",
    ast.Lt: "lt",
    ast.LtE: "le",
    ast.Gt: "gt",
    ast.GtE: "ge",
    ast.In: "in",
    ast.NotIn: "not_in",
}

_AST_UNARY = {
    ast.USub: "neg",
    ast.UAdd: "pos",
    ast.Not: "not",
    ast.Invert: "not",
}


def parse_text(text: str) -> ast.expr:
    """Parse expression source; a ``SyntaxError`` propagates unchanged."""

    return ast.parse(text.strip(), mode="eval").body


class _Resolver:
    def __init__(self, columns: Sequence[str], env: Mapping[str, Any]) -> None:
        self._columns = frozenset(columns)
        self._env = env

    # -- IR input -----------------------------------------------------------

    def resolve(self, expr: Expr) -> Expr:
        if isinstance(expr, SourceText):
            return self.visit(parse_text(expr.text))
        if isinstance(expr, ColumnRef):
            return self.name(expr.name)
        if isinstance(expr, Literal):
            return expr
        if isinstance(expr, BinaryExpr):
            return self.binary(expr.op, self.resolve(expr.left), self.resolve(expr.right))
        if isinstance(expr, ComparisonExpr):
            return self.compare(
                expr.op, self.resolve(expr.left), self.resolve(expr.right)
            )
        if isinstance(expr, LogicalExpr):
            return self.logical(
                expr.op, self.resolve(expr.left), self.resolve(expr.right)
            )
        if isinstance(expr, UnaryExpr):
            return self.unary(expr.op, self.resolve(expr.operand))
        if isinstance(expr, CallExpr):
            return self.call(expr.name, [self.resolve(arg) for arg in expr.args], {})
        raise TypeError(f"Unsupported expression type: {type(expr)!r}")

    # -- node builders with constant folding -------------------------------

    def name(self, name: str) -> Expr:
        if name in self._columns:
            return ColumnRef(name)
        if name in self._env:
            return self.lift(self._env[name])
        raise ResolutionError(
            f"Name {name!r} is neither a column nor bound in the calling scope",
            name=name,
        )

    def lift(self, value: Any) -> Expr:
        if isinstance(value, ColExpr):
            return self.resolve(value.expr)
        if isinstance(value, Expr):
            return self.resolve(value)
        if isinstance(value, SortKey):
            raise ResolutionError("desc() may only wrap a whole arrange() argument")
        return Literal(value)

    def binary(self, op: str, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Literal) and isinstance(right, Literal):
            return Literal(_BINARY_OPERATORS[op](left.value, right.value))
        return BinaryExpr(op, left, right)

    def compare(self, op: str, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Literal) and isinstance(right, Literal):
            return Literal(_COMPARISON_OPERATORS[op](left.value, right.value))
        if op in {"in", "not_in"}:
            if not isinstance(right, Literal) or isinstance(
                right.value, (str, bytes)
            ):
                raise ResolutionError(
                    "The right-hand side of 'in' must be a local collection"
                )
            right = Literal(tuple(right.value))
        return ComparisonExpr(op, left, right)

    def logical(self, op: str, left: Expr, right: Expr) -> Expr:
        if isinstance(left, Literal) and isinstance(right, Literal):
            if op == "and":
                return Literal(bool(left.value) and bool(right.value))
            return Literal(bool(left.value) or bool(right.value))
        return LogicalExpr(op, left, right)

    def unary(self, op: str, operand: Expr) -> Expr:
        if isinstance(operand, Literal):
            return Literal(_UNARY_OPERATORS[op](operand.value))
        return UnaryExpr(op, operand)

    def call(self, name: str, args: list[Expr], kwargs: dict[str, Expr]) -> Expr:
        if name == SORT_MARKER:
            raise ResolutionError("desc() is only valid as an arrange() argument")
        constant = all(isinstance(arg, Literal) for arg in args) and all(
            isinstance(value, Literal) for value in kwargs.values()
        )
        bound = (
            name not in self._columns
            and name in self._env
            and callable(self._env[name])
        )
        if constant and bound:
            func = self._env[name]
            values = [arg.value for arg in args]  # type: ignore[attr-defined]
            keywords = {k: v.value for k, v in kwargs.items()}  # type: ignore[attr-defined]
            return self.lift(func(*values, **keywords))
        if is_backend_function(name):
            if kwargs:
                raise ResolutionError(
                    f"Keyword arguments are not supported for {name}()", name=name
                )
            return CallExpr(name, tuple(args))
        if bound:
            raise ResolutionError(
                f"Local function {name}() cannot be applied to columns", name=name
            )
        raise ResolutionError(f"Unknown function {name!r}", name=name)

    # -- Python source input -----------------------------------------------

    def visit(self, node: ast.AST) -> Expr:
        if isinstance(node, ast.Constant):
            return Literal(node.value)
        if isinstance(node, ast.Name):
            return self.name(node.id)
        if isinstance(node, (ast.Tuple, ast.List, ast.Set)):
            items = [self.visit(item) for item in node.elts]
            if not all(isinstance(item, Literal) for item in items):
                raise ResolutionError("Collections may only hold local values")
            return Literal(tuple(item.value for item in items))  # type: ignore[attr-defined]
        if isinstance(node, ast.BinOp):
            left = self.visit(node.left)
            right = self.visit(node.right)
            op_type = type(node.op)
            if op_type in _AST_LOGICAL:
                return self.logical(_AST_LOGICAL[op_type], left, right)
            if op_type in _AST_BINARY:
                return self.binary(_AST_BINARY[op_type], left, right)
        if isinstance(node, ast.UnaryOp) and type(node.op) in _AST_UNARY:
            return self.unary(_AST_UNARY[type(node.op)], self.visit(node.operand))
        if isinstance(node, ast.BoolOp):
            op = _AST_LOGICAL[type(node.op)]
            result = self.visit(node.values[0])
            for value in node.values[1:]:
                result = self.logical(op, result, self.visit(value))
            return result
        if isinstance(node, ast.Compare):
            return self._visit_compare(node)
        if isinstance(node, ast.Call):
            return self._visit_call(node)
        if isinstance(node, ast.Attribute):
            base = self.visit(node.value)
            if not isinstance(base, Literal):
                raise ResolutionError(
                    f"Attribute access .{node.attr} is not supported on columns"
                )
            return self.lift(getattr(base.value, node.attr))
        if isinstance(node, ast.Subscript):
            base = self.visit(node.value)
            key = self.visit(node.slice)
            if not (isinstance(base, Literal) and isinstance(key, Literal)):
                raise ResolutionError("Indexing is only supported on local values")
            return self.lift(base.value[key.value])
        raise ResolutionError(f"Unsupported syntax: {type(node).__name__}")

    def _visit_compare(self, node: ast.Compare) -> Expr:
        result: Expr | None = None
        left = self.visit(node.left)
        for op_node, comparator in zip(node.ops, node.comparators):
            op_type = type(op_node)
            if op_type not in _AST_COMPARISON:
                raise ResolutionError(f"Unsupported comparison: {op_type.__name__}")
            right = self.visit(comparator)
            pair = self.compare(_AST_COMPARISON[op_type], left, right)
            result = pair if result is None else self.logical("and", result, pair)
            left = right
        assert result is not None
        return result

    def _visit_call(self, node: ast.Call) -> Expr:
        args = [self.visit(arg) for arg in node.args]
        kwargs: dict[str, Expr] = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                raise ResolutionError("**kwargs are not supported in expressions")
            kwargs[keyword.arg] = self.visit(keyword.value)
        if isinstance(node.func, ast.Name):
            return self.call(node.func.id, args, kwargs)
        func = self.visit(node.func)
        constant = all(isinstance(arg, Literal) for arg in args) and all(
            isinstance(value, Literal) for value in kwargs.values()
        )
        if not (isinstance(func, Literal) and callable(func.value) and constant):
            raise ResolutionError("Only named backend functions may take columns")
        values = [arg.value for arg in args]  # type: ignore[attr-defined]
        keywords = {k: v.value for k, v in kwargs.items()}  # type: ignore[attr-defined]
        return self.lift(func.value(*values, **keywords))

    def sort_key(self, captured: Captured) -> SortKey:
        if isinstance(captured, SortKey):
            return SortKey(self.resolve(captured.expr), captured.descending)
        if isinstance(captured, SourceText):
            node = parse_text(captured.text)
            if (
                isinstance(node, ast.Call)
                and isinstance(node.func, ast.Name)
                and node.func.id == SORT_MARKER
                and SORT_MARKER not in self._columns
            ):
                if len(node.args) != 1 or node.keywords:
                    raise ResolutionError("desc() takes exactly one argument")
                return SortKey(self.visit(node.args[0]), descending=True)
            return SortKey(self.visit(node))
        return SortKey(self.resolve(captured))


def _columns_for(source: Source | None, columns: Sequence[str] | None) -> Sequence[str]:
    if columns is not None:
        return columns
    if source is None:
        return ()
    return source.columns


def resolve(
    expr: Captured,
    source: Source | None,
    env: Mapping[str, Any],
    *,
    columns: Sequence[str] | None = None,
) -> Expr:
    """Resolve a captured expression against ``source`` and ``env``.

    ``columns`` overrides the names treated as columns; by default the
    source's current column list is used.
    """

    if isinstance(expr, SortKey):
        raise ResolutionError("desc() is only valid as an arrange() argument")
    return _Resolver(_columns_for(source, columns), env).resolve(expr)


def resolve_sort_key(
    expr: Captured,
    source: Source | None,
    env: Mapping[str, Any],
    *,
    columns: Sequence[str] | None = None,
) -> SortKey:
    return _Resolver(_columns_for(source, columns), env).sort_key(expr)


__all__ = ["parse_text", "resolve", "resolve_sort_key"]
