"""Top-level lazysource package exports."""

from lazysource.errors import (
    IncompatibleOperationError,
    RenderError,
    ResolutionError,
    SelectionIndexError,
)
from lazysource.expr import ColExpr, col, desc, fn, lit
from lazysource.runtime import render, to_sql
from lazysource.source import DataFrameTable, Source, SQLTable

__all__ = [
    "ColExpr",
    "DataFrameTable",
    "IncompatibleOperationError",
    "RenderError",
    "ResolutionError",
    "SQLTable",
    "SelectionIndexError",
    "Source",
    "col",
    "desc",
    "fn",
    "lit",
    "render",
    "to_sql",
]
