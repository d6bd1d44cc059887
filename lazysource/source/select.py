"""Column selection for ``Source.select``.

Selections are evaluated right away against the source's current column
list and stored as literal names. Arguments follow a small closed grammar
instead of going through the general expression resolver:

* a column name, ``"rbi"``
* an inclusive range, ``"id:lg"``, whose endpoints may be names, integers or
  ``+``/``-`` arithmetic over them (``"year:year+2"``)
* an exclusion, written with a leading ``-`` (``"-rbi"``, ``"-id:lg"``)
* an integer position (0-based, negative values count from the end)
* ``slice(start, stop)`` with names or integers, inclusive of both ends
* a column expression such as ``src.year`` or ``col("year")``

Names that are not columns are looked up in the calling scope, so local
integers can take part in index arithmetic.
"""

from __future__ import annotations

import ast
import numbers
import operator
from typing import TYPE_CHECKING, Any

from lazysource.errors import SelectionIndexError
from lazysource.expr.builder import ColExpr
from lazysource.ir.graph import ColumnRef

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
else:
    from collections import abc as _abc

    Mapping = _abc.Mapping
    Sequence = _abc.Sequence

_INDEX_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.FloorDiv: operator.floordiv,
}


class _Selector:
    def __init__(self, columns: Sequence[str], env: Mapping[str, Any]) -> None:
        self._columns = tuple(columns)
        self._positions = {name: i for i, name in enumerate(self._columns)}
        self._env = env

    def _check(self, index: int, *, wrap: bool = False) -> int:
        size = len(self._columns)
        if wrap and index < 0:
            index += size
        if not 0 <= index < size:
            raise SelectionIndexError(
                f"Column index {index} is out of range for {size} columns"
            )
        return index

    def _span(self, start: int, stop: int) -> list[int]:
        if start <= stop:
            return list(range(start, stop + 1))
        return list(range(start, stop - 1, -1))

    def evaluate(self, arg: Any) -> tuple[bool, list[int]]:
        """Return ``(excluded, positions)`` for one select argument."""

        if isinstance(arg, bool):
            raise SelectionIndexError(f"Cannot select by boolean value {arg!r}")
        if isinstance(arg, numbers.Integral):
            return False, [self._check(operator.index(arg), wrap=True)]
        if isinstance(arg, str):
            return self._evaluate_text(arg)
        if isinstance(arg, slice):
            if arg.step is not None:
                raise SelectionIndexError("Stepped slices are not supported")
            start = 0 if arg.start is None else self._endpoint(arg.start)
            stop = len(self._columns) - 1 if arg.stop is None else self._endpoint(arg.stop)
            return False, self._span(start, stop)
        if isinstance(arg, ColExpr):
            arg = arg.expr
        if isinstance(arg, ColumnRef):
            return False, [self._by_name(arg.name)]
        raise SelectionIndexError(
            f"Select arguments must be names, ranges or positions, got {type(arg).__name__}"
        )

    def _endpoint(self, value: Any) -> int:
        if isinstance(value, str):
            return self._by_name(value)
        if isinstance(value, numbers.Integral) and not isinstance(value, bool):
            return self._check(operator.index(value), wrap=True)
        raise SelectionIndexError(f"Invalid slice endpoint {value!r}")

    def _by_name(self, name: str) -> int:
        if name not in self._positions:
            raise SelectionIndexError(f"Unknown column {name!r}")
        return self._positions[name]

    def _evaluate_text(self, text: str) -> tuple[bool, list[int]]:
        if text in self._positions:
            return False, [self._positions[text]]
        body = text.strip()
        excluded = body.startswith("-")
        if excluded:
            body = body[1:].strip()
        if body in self._positions:
            return excluded, [self._positions[body]]
        try:
            node = ast.parse(f"_[{body}]", mode="eval").body
        except SyntaxError as exc:
            raise SelectionIndexError(f"Invalid selection {text!r}") from exc
        target = node.slice  # type: ignore[attr-defined]
        if isinstance(target, ast.Slice):
            if target.step is not None:
                raise SelectionIndexError(f"Stepped ranges are not supported: {text!r}")
            start = 0 if target.lower is None else self._check(self._index(target.lower))
            stop = (
                len(self._columns) - 1
                if target.upper is None
                else self._check(self._index(target.upper))
            )
            return excluded, self._span(start, stop)
        return excluded, [self._check(self._index(target))]

    def _index(self, node: ast.AST) -> int:
        if isinstance(node, ast.Constant):
            value = node.value
            # Quoted names allow columns that are not identifiers.
            if isinstance(value, str) and value in self._positions:
                return self._positions[value]
        elif isinstance(node, ast.Name):
            if node.id in self._positions:
                return self._positions[node.id]
            if node.id not in self._env:
                raise SelectionIndexError(f"Unknown column {node.id!r}")
            value = self._env[node.id]
        elif isinstance(node, ast.BinOp) and type(node.op) in _INDEX_OPERATORS:
            left = self._index(node.left)
            right = self._index(node.right)
            return _INDEX_OPERATORS[type(node.op)](left, right)
        elif isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.USub):
            return -self._index(node.operand)
        else:
            raise SelectionIndexError(
                f"Unsupported selection syntax: {type(node).__name__}"
            )
        if isinstance(value, bool) or not isinstance(value, numbers.Integral):
            raise SelectionIndexError(
                f"Selection evaluated to non-numeric value {value!r}"
            )
        return operator.index(value)


def resolve_selection(
    args: Sequence[Any],
    columns: Sequence[str],
    env: Mapping[str, Any],
) -> tuple[str, ...]:
    """Translate select arguments into literal column names."""

    selector = _Selector(columns, env)
    included: list[int] = []
    excluded: set[int] = set()
    for arg in args:
        is_exclusion, positions = selector.evaluate(arg)
        if is_exclusion:
            excluded.update(positions)
        else:
            included.extend(positions)
    if included and excluded:
        raise SelectionIndexError("Cannot mix column exclusions with inclusions")
    if excluded:
        return tuple(name for i, name in enumerate(columns) if i not in excluded)
    return tuple(columns[i] for i in included)


__all__ = ["resolve_selection"]
