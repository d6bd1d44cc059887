"""Render IR expressions back to readable source text."""

from __future__ import annotations

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

_BINARY_SYMBOLS = {
    "add": "+",
    "sub": "-",
    "mul": "*",
    "truediv": "/",
    "floordiv": "//",
    "mod": "%",
    "pow": "**",
}

_COMPARISON_SYMBOLS = {
    "eq": "==",
    "ne": "!=",
    "lt": "<",
    "le": "<=",
    "gt": ">",
    "ge": ">=",
    "in": "in",
    "not_in": "not in",
}

_LOGICAL_SYMBOLS = {
    "and": "&",
    "or": "|",
}

_UNARY_SYMBOLS = {
    "neg": "-",
    "pos": "+",
    "not": "~",
}


def _operand(expr: Expr) -> str:
    text = expr_to_string(expr)
    if isinstance(expr, (BinaryExpr, ComparisonExpr, LogicalExpr)):
        return f"({text})"
    return text


def expr_to_string(expr: Expr) -> str:
    if isinstance(expr, ColumnRef):
        return expr.name
    if isinstance(expr, Literal):
        return repr(expr.value)
    if isinstance(expr, BinaryExpr):
        symbol = _BINARY_SYMBOLS.get(expr.op, expr.op)
        return f"{_operand(expr.left)} {symbol} {_operand(expr.right)}"
    if isinstance(expr, ComparisonExpr):
        symbol = _COMPARISON_SYMBOLS.get(expr.op, expr.op)
        return f"{_operand(expr.left)} {symbol} {_operand(expr.right)}"
    if isinstance(expr, LogicalExpr):
        symbol = _LOGICAL_SYMBOLS.get(expr.op, expr.op)
        return f"{_operand(expr.left)} {symbol} {_operand(expr.right)}"
    if isinstance(expr, UnaryExpr):
        symbol = _UNARY_SYMBOLS.get(expr.op, expr.op)
        return f"{symbol}{_operand(expr.operand)}"
    if isinstance(expr, CallExpr):
        args = ", ".join(expr_to_string(arg) for arg in expr.args)
        return f"{expr.name}({args})"
    if isinstance(expr, SourceText):
        return expr.text.strip()
    raise TypeError(f"Unsupported expression type: {type(expr)!r}")


def sort_key_to_string(key: SortKey) -> str:
    text = expr_to_string(key.expr)
    return f"desc({text})" if key.descending else text


__all__ = ["expr_to_string", "sort_key_to_string"]
