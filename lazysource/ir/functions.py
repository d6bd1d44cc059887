"""Functions that backends evaluate on their side of a pipeline."""

from __future__ import annotations

from lazysource.ir.graph import CallExpr, Expr, children

AGGREGATES = frozenset(
    {
        "mean",
        "sum",
        "min",
        "max",
        "n",
        "count",
        "n_distinct",
        "median",
        "sd",
        "var",
        "first",
        "last",
    }
)

SCALARS = frozenset(
    {
        "abs",
        "round",
        "sqrt",
        "log",
        "exp",
        "lower",
        "upper",
        "coalesce",
    }
)

# Only meaningful as the outermost call of a sort key.
SORT_MARKER = "desc"

BACKEND_FUNCTIONS = AGGREGATES | SCALARS


def is_backend_function(name: str) -> bool:
    return name in BACKEND_FUNCTIONS


def is_aggregate(expr: Expr) -> bool:
    """Return True when an aggregate call appears anywhere in ``expr``."""

    if isinstance(expr, CallExpr) and expr.name in AGGREGATES:
        return True
    return any(is_aggregate(child) for child in children(expr))


__all__ = [
    "AGGREGATES",
    "BACKEND_FUNCTIONS",
    "SCALARS",
    "SORT_MARKER",
    "is_aggregate",
    "is_backend_function",
]
