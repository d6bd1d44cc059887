"""Capture verb arguments without evaluating them."""

from __future__ import annotations

import builtins
import inspect
from collections import ChainMap
from typing import TYPE_CHECKING, Any, Union

from lazysource.expr.builder import ColExpr
from lazysource.ir.graph import Expr, Literal, SortKey, SourceText

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
else:
    from collections import abc as _abc

    Mapping = _abc.Mapping
    Sequence = _abc.Sequence

Captured = Union[Expr, SortKey]


def caller_env(depth: int = 1) -> Mapping[str, Any]:
    """Return the lexical environment ``depth`` frames above the caller.

    Locals shadow globals, which shadow builtins. The locals are copied so
    later rebinding in the caller does not leak into captured pipelines.
    """

    frame = inspect.currentframe()
    try:
        target = frame
        for _ in range(depth + 1):
            if target is None:
                break
            target = target.f_back
        if target is None:
            return ChainMap({}, vars(builtins))
        return ChainMap(dict(target.f_locals), target.f_globals, vars(builtins))
    finally:
        del frame


def capture(value: Any) -> Captured:
    if isinstance(value, str):
        return SourceText(value)
    if isinstance(value, ColExpr):
        return value.expr
    if isinstance(value, (Expr, SortKey)):
        return value
    return Literal(value)


def dots(args: Sequence[Any]) -> tuple[Captured, ...]:
    return tuple(capture(arg) for arg in args)


def named_dots(
    args: Sequence[Any],
    kwargs: Mapping[str, Any],
) -> tuple[tuple[str | None, Captured], ...]:
    """Pair each argument with its keyword name; positional ones get ``None``."""

    unnamed = [(None, capture(arg)) for arg in args]
    named = [(name, capture(value)) for name, value in kwargs.items()]
    return tuple(unnamed + named)


__all__ = ["Captured", "capture", "caller_env", "dots", "named_dots"]
