"""Lazy source descriptors and the verbs that extend them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

from lazysource.errors import IncompatibleOperationError
from lazysource.expr.builder import ColExpr, col
from lazysource.expr.capture import caller_env, dots, named_dots
from lazysource.expr.resolve import resolve, resolve_sort_key
from lazysource.ir.format import expr_to_string, sort_key_to_string
from lazysource.ir.graph import (
    Computation,
    Expr,
    Mutation,
    NoComputation,
    SortKey,
    Summary,
)
from lazysource.source.bases import DataFrameTable, SQLTable
from lazysource.source.select import resolve_selection

if TYPE_CHECKING:
    from collections.abc import Mapping

    import pandas as pd

    from lazysource.expr.capture import Captured
    from lazysource.source.bases import BaseSource
else:
    from collections import abc as _abc

    Mapping = _abc.Mapping
    BaseSource = Captured = Any


@dataclass(frozen=True)
class Source:
    """A base table plus the operations still waiting to be rendered.

    Every verb returns a new ``Source``; the receiver is never modified.
    """

    base: BaseSource
    filters: tuple[Expr, ...] = ()
    selected: tuple[str, ...] = ()
    computation: Computation = field(default_factory=NoComputation)
    groups: tuple[Expr, ...] = ()
    ordering: tuple[SortKey, ...] = ()

    @classmethod
    def from_pandas(cls, data: pd.DataFrame) -> Source:
        return cls(DataFrameTable(data))

    @classmethod
    def from_sql(cls, connection: Any, table: str, *, dialect: str = "sqlite") -> Source:
        return cls(SQLTable(connection, table, dialect=dialect))

    # -- views -------------------------------------------------------------

    @property
    def columns(self) -> tuple[str, ...]:
        """Base columns followed by names defined by mutate or summarise."""

        base = tuple(self.base.column_names())
        extra = tuple(name for name in self.computation.names if name not in base)
        return base + extra

    @property
    def mutations(self) -> tuple[tuple[str, Expr], ...]:
        if isinstance(self.computation, Mutation):
            return self.computation.entries
        return ()

    @property
    def summaries(self) -> tuple[tuple[str, Expr], ...]:
        if isinstance(self.computation, Summary):
            return self.computation.entries
        return ()

    def __getattr__(self, name: str) -> ColExpr:
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self.columns:
            return col(name)
        raise AttributeError(
            f"{type(self).__name__!r} object has no attribute or column {name!r}"
        )

    def __getitem__(self, name: str) -> ColExpr:
        if name not in self.columns:
            raise KeyError(name)
        return col(name)

    # -- verbs -------------------------------------------------------------

    def filter(self, *predicates: Any, _env: Mapping[str, Any] | None = None) -> Source:
        env = _env if _env is not None else caller_env()
        resolved = tuple(resolve(arg, self, env) for arg in dots(predicates))
        return replace(self, filters=self.filters + resolved)

    def summarise(
        self,
        *args: Any,
        _env: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Source:
        if self.mutations:
            raise IncompatibleOperationError()
        env = _env if _env is not None else caller_env()
        entries = self._resolve_named(args, kwargs, env)
        if not entries:
            return replace(self)
        return replace(self, computation=Summary(self.summaries + entries))

    summarize = summarise

    def mutate(
        self,
        *args: Any,
        _env: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Source:
        if self.summaries:
            raise IncompatibleOperationError()
        env = _env if _env is not None else caller_env()
        entries = self._resolve_named(args, kwargs, env)
        if not entries:
            return replace(self)
        return replace(self, computation=Mutation(self.mutations + entries))

    def arrange(self, *keys: Any, _env: Mapping[str, Any] | None = None) -> Source:
        env = _env if _env is not None else caller_env()
        resolved = tuple(resolve_sort_key(arg, self, env) for arg in dots(keys))
        return replace(self, ordering=self.ordering + resolved)

    def select(self, *columns: Any, _env: Mapping[str, Any] | None = None) -> Source:
        env = _env if _env is not None else caller_env()
        names = resolve_selection(columns, self.columns, env)
        return replace(self, selected=self.selected + names)

    def group(self, *keys: Any, _env: Mapping[str, Any] | None = None) -> Source:
        env = _env if _env is not None else caller_env()
        resolved = tuple(resolve(arg, self, env) for arg in dots(keys))
        return replace(self, groups=self.groups + resolved)

    group_by = group

    def _resolve_named(
        self,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        env: Mapping[str, Any],
    ) -> tuple[tuple[str, Expr], ...]:
        # Names defined earlier in the call are visible to later arguments.
        columns = list(self.columns)
        entries: list[tuple[str, Expr]] = []
        for name, captured in named_dots(args, kwargs):
            expr = resolve(captured, self, env, columns=columns)
            if name is None:
                name = _auto_name(captured)
            entries.append((name, expr))
            if name not in columns:
                columns.append(name)
        return tuple(entries)

    # -- rendering ---------------------------------------------------------

    def render(self, *, backend: str | None = None) -> pd.DataFrame:
        """Materialize the pipeline with the selected backend."""

        from lazysource.runtime.executor import render

        return render(self, backend=backend)

    def show_query(self, *, dialect: str | None = None) -> str:
        from lazysource.runtime.sql_backend import to_sql

        return to_sql(self, dialect=dialect)

    def describe(self) -> list[str]:
        from lazysource.planner.plan import build_plan

        return build_plan(self).describe()

    def __str__(self) -> str:
        lines = [f"Source({self.base!r})"]
        if self.filters:
            lines.append("  filter: " + ", ".join(expr_to_string(e) for e in self.filters))
        if self.mutations:
            lines.append(
                "  mutate: "
                + ", ".join(f"{n} = {expr_to_string(e)}" for n, e in self.mutations)
            )
        if self.summaries:
            lines.append(
                "  summarise: "
                + ", ".join(f"{n} = {expr_to_string(e)}" for n, e in self.summaries)
            )
        if self.groups:
            lines.append("  group: " + ", ".join(expr_to_string(e) for e in self.groups))
        if self.ordering:
            lines.append(
                "  arrange: " + ", ".join(sort_key_to_string(k) for k in self.ordering)
            )
        if self.selected:
            lines.append("  select: " + ", ".join(self.selected))
        return "\n".join(lines)


def _auto_name(captured: Captured) -> str:
    if isinstance(captured, SortKey):
        return sort_key_to_string(captured)
    return expr_to_string(captured)


__all__ = ["Source"]
