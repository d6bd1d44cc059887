"""Serialization helpers for lazysource IR expressions and pipelines.

These functions convert IR nodes to simple dictionaries suitable for JSON
payloads, and back again. Base tables are not embedded: a pipeline records
the base column list and callers rebind a base during deserialization.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from lazysource.ir.graph import (
    BinaryExpr,
    CallExpr,
    ColumnRef,
    ComparisonExpr,
    Computation,
    Expr,
    Literal,
    LogicalExpr,
    Mutation,
    NoComputation,
    SortKey,
    Summary,
    UnaryExpr,
)

if TYPE_CHECKING:  # pragma: no cover
    from collections.abc import Mapping

    from lazysource.source.bases import BaseSource
    from lazysource.source.source import Source
else:  # pragma: no cover
    from collections import abc as _abc

    Mapping = _abc.Mapping
    BaseSource = Source = Any

_COMPUTATIONS: dict[str, type[Computation]] = {
    "none": NoComputation,
    "mutate": Mutation,
    "summarise": Summary,
}


def expr_to_dict(expr: Expr) -> dict[str, Any]:
    if isinstance(expr, ColumnRef):
        return {"kind": "col", "name": expr.name}
    if isinstance(expr, Literal):
        value = list(expr.value) if isinstance(expr.value, tuple) else expr.value
        return {"kind": "lit", "value": value}
    if isinstance(expr, BinaryExpr):
        return {
            "kind": "bin",
            "op": expr.op,
            "left": expr_to_dict(expr.left),
            "right": expr_to_dict(expr.right),
        }
    if isinstance(expr, ComparisonExpr):
        return {
            "kind": "cmp",
            "op": expr.op,
            "left": expr_to_dict(expr.left),
            "right": expr_to_dict(expr.right),
        }
    if isinstance(expr, LogicalExpr):
        return {
            "kind": "logic",
            "op": expr.op,
            "left": expr_to_dict(expr.left),
            "right": expr_to_dict(expr.right),
        }
    if isinstance(expr, UnaryExpr):
        return {"kind": "unary", "op": expr.op, "operand": expr_to_dict(expr.operand)}
    if isinstance(expr, CallExpr):
        return {
            "kind": "call",
            "name": expr.name,
            "args": [expr_to_dict(arg) for arg in expr.args],
        }
    raise TypeError(f"Unsupported expr for serialization: {type(expr)!r}")


def expr_from_dict(data: Mapping[str, Any]) -> Expr:
    kind = data.get("kind")
    if kind == "col":
        return ColumnRef(str(data["name"]))
    if kind == "lit":
        value = data.get("value")
        # Membership tests are the only place list literals occur.
        return Literal(tuple(value) if isinstance(value, list) else value)
    if kind == "bin":
        return BinaryExpr(
            op=str(data["op"]),
            left=expr_from_dict(data["left"]),
            right=expr_from_dict(data["right"]),
        )
    if kind == "cmp":
        return ComparisonExpr(
            op=str(data["op"]),
            left=expr_from_dict(data["left"]),
            right=expr_from_dict(data["right"]),
        )
    if kind == "logic":
        return LogicalExpr(
            op=str(data["op"]),
            left=expr_from_dict(data["left"]),
            right=expr_from_dict(data["right"]),
        )
    if kind == "unary":
        return UnaryExpr(op=str(data["op"]), operand=expr_from_dict(data["operand"]))
    if kind == "call":
        return CallExpr(
            name=str(data["name"]),
            args=tuple(expr_from_dict(arg) for arg in data.get("args", ())),
        )
    raise ValueError(f"Unknown expr kind: {kind!r}")


def sort_key_to_dict(key: SortKey) -> dict[str, Any]:
    return {"expr": expr_to_dict(key.expr), "descending": key.descending}


def sort_key_from_dict(data: Mapping[str, Any]) -> SortKey:
    return SortKey(expr_from_dict(data["expr"]), bool(data.get("descending", False)))


def _computation_kind(computation: Computation) -> str:
    for kind, computation_type in _COMPUTATIONS.items():
        if type(computation) is computation_type:
            return kind
    raise TypeError(f"Unsupported computation: {type(computation)!r}")


def source_to_dict(source: Source) -> dict[str, Any]:
    return {
        "columns": list(source.base.column_names()),
        "filters": [expr_to_dict(expr) for expr in source.filters],
        "computation": {
            "kind": _computation_kind(source.computation),
            "entries": [
                {"name": name, "expr": expr_to_dict(expr)}
                for name, expr in source.computation.entries
            ],
        },
        "groups": [expr_to_dict(expr) for expr in source.groups],
        "ordering": [sort_key_to_dict(key) for key in source.ordering],
        "selected": list(source.selected),
    }


def source_from_dict(data: Mapping[str, Any], base: BaseSource) -> Source:
    """Rebuild a pipeline over ``base``.

    The base must expose the column list the pipeline was recorded against.
    """

    from lazysource.source.source import Source

    recorded = tuple(data.get("columns", ()))
    actual = tuple(base.column_names())
    if recorded and recorded != actual:
        raise ValueError(
            f"Pipeline was recorded against columns {list(recorded)}, "
            f"base has {list(actual)}"
        )
    computation_data = data.get("computation") or {}
    kind = computation_data.get("kind", "none")
    computation_type = _COMPUTATIONS.get(kind)
    if computation_type is None:
        raise ValueError(f"Unknown computation kind: {kind!r}")
    entries = tuple(
        (str(item["name"]), expr_from_dict(item["expr"]))
        for item in computation_data.get("entries", ())
    )
    return Source(
        base=base,
        filters=tuple(expr_from_dict(item) for item in data.get("filters", ())),
        selected=tuple(str(name) for name in data.get("selected", ())),
        computation=computation_type(entries),
        groups=tuple(expr_from_dict(item) for item in data.get("groups", ())),
        ordering=tuple(sort_key_from_dict(item) for item in data.get("ordering", ())),
    )


__all__ = [
    "expr_from_dict",
    "expr_to_dict",
    "sort_key_from_dict",
    "sort_key_to_dict",
    "source_from_dict",
    "source_to_dict",
]
