"""Source descriptors and their base tables."""

from lazysource.source.bases import BaseSource, DataFrameTable, SQLTable
from lazysource.source.source import Source

__all__ = ["BaseSource", "DataFrameTable", "SQLTable", "Source"]
