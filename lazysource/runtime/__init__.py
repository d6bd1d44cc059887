"""Runtime helpers for lazysource."""

from lazysource.runtime.executor import (
    RenderBackend,
    get_backend,
    register_backend,
    render,
    requested_backend,
    reset_backend,
)
from lazysource.runtime.pandas_backend import PandasBackend
from lazysource.runtime.sql_backend import SQLBackend, to_sql

__all__ = [
    "PandasBackend",
    "RenderBackend",
    "SQLBackend",
    "get_backend",
    "register_backend",
    "render",
    "requested_backend",
    "reset_backend",
    "to_sql",
]
