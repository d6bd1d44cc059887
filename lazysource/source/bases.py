"""Base tables a source descriptor can be built on."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import pandas as pd
from sqlglot import exp

if TYPE_CHECKING:
    from collections.abc import Sequence
else:
    from collections import abc as _abc

    Sequence = _abc.Sequence


class BaseSource(Protocol):
    def column_names(self) -> Sequence[str]:
        """Return the ordered column names of the underlying table."""


class DataFrameTable:
    """An in-memory table backed by a pandas DataFrame."""

    def __init__(self, data: pd.DataFrame) -> None:
        if not isinstance(data, pd.DataFrame):
            raise TypeError("DataFrameTable expects a pandas.DataFrame")
        self._data = data.copy()

    @property
    def data(self) -> pd.DataFrame:
        return self._data

    def column_names(self) -> tuple[str, ...]:
        return tuple(str(column) for column in self._data.columns)

    def __repr__(self) -> str:
        rows, cols = self._data.shape
        return f"DataFrameTable({rows} rows x {cols} columns)"


class SQLTable:
    """A table reachable through an open DB-API connection.

    Connecting is the caller's business; the connection is used as given.
    """

    def __init__(self, connection: Any, name: str, *, dialect: str = "sqlite") -> None:
        self.connection = connection
        self.name = name
        self.dialect = dialect
        self._columns: tuple[str, ...] | None = None

    def column_names(self) -> tuple[str, ...]:
        if self._columns is None:
            probe = (
                exp.select(exp.Star())
                .from_(exp.table_(self.name, quoted=True))
                .limit(0)
                .sql(dialect=self.dialect)
            )
            cursor = self.connection.cursor()
            try:
                cursor.execute(probe)
                self._columns = tuple(str(item[0]) for item in cursor.description)
            finally:
                cursor.close()
        return self._columns

    def __repr__(self) -> str:
        return f"SQLTable({self.name!r}, dialect={self.dialect!r})"


__all__ = ["BaseSource", "DataFrameTable", "SQLTable"]
