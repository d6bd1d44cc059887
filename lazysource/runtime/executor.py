"""Backend selection and rendering of source pipelines."""

from __future__ import annotations

import os
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from lazysource.errors import RenderError
from lazysource.planner.plan import build_plan
from lazysource.runtime.pandas_backend import PandasBackend
from lazysource.runtime.sql_backend import SQLBackend

if TYPE_CHECKING:
    import pandas as pd

    from lazysource.planner.plan import RenderPlan
    from lazysource.source.source import Source
else:
    RenderPlan = Source = Any

_CHOICES = {"auto", "pandas", "sql"}


class RenderBackend(Protocol):
    name: str

    def supports(self, base: object) -> bool:
        """Return True when this backend can render sources over ``base``."""

    def render(self, source: Source, plan: RenderPlan | None = None) -> pd.DataFrame:
        """Materialize ``source`` as a DataFrame."""


_BACKENDS: dict[str, RenderBackend] = {
    "pandas": PandasBackend(),
    "sql": SQLBackend(),
}


@dataclass
class BackendChoice:
    requested: str


_ACTIVE_CHOICE: BackendChoice | None = None


def _choose_backend() -> BackendChoice:
    requested = os.environ.get("LAZYSOURCE_BACKEND", "auto").lower()
    if requested not in _CHOICES:
        warnings.warn(
            f"Unknown LAZYSOURCE_BACKEND={requested!r}; defaulting to auto",
            stacklevel=2,
        )
        return BackendChoice(requested="auto")
    return BackendChoice(requested=requested)


def requested_backend() -> str:
    global _ACTIVE_CHOICE
    if _ACTIVE_CHOICE is None:
        _ACTIVE_CHOICE = _choose_backend()
    return _ACTIVE_CHOICE.requested


def reset_backend() -> None:
    global _ACTIVE_CHOICE
    _ACTIVE_CHOICE = None


def register_backend(backend: RenderBackend) -> None:
    _BACKENDS[backend.name] = backend
    _CHOICES.add(backend.name)


def get_backend(base: object, name: str | None = None) -> RenderBackend:
    """Return the backend that renders sources over ``base``.

    ``auto`` picks the first registered backend that supports the base; a
    named backend must support it or a ``RenderError`` is raised.
    """

    requested = (name or requested_backend()).lower()
    if requested == "auto":
        for backend in _BACKENDS.values():
            if backend.supports(base):
                return backend
        raise RenderError(f"No backend can render {type(base).__name__} sources")
    backend = _BACKENDS.get(requested)
    if backend is None:
        raise ValueError(f"Unknown backend {requested!r}; expected one of {sorted(_CHOICES)}")
    if not backend.supports(base):
        raise RenderError(
            f"The {backend.name} backend cannot render {type(base).__name__} sources"
        )
    return backend


def render(source: Source, backend: str | None = None) -> pd.DataFrame:
    """Build the render plan for ``source`` and run it.

    Plan notes (ignored group keys, duplicate selections, redefined summary
    columns) are reported as ``RuntimeWarning``.
    """

    plan = build_plan(source)
    for note in plan.notes:
        warnings.warn(note, category=RuntimeWarning, stacklevel=3)
    return get_backend(source.base, backend).render(source, plan)


__all__ = [
    "RenderBackend",
    "get_backend",
    "register_backend",
    "render",
    "requested_backend",
    "reset_backend",
]
