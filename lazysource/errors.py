"""Exceptions raised while building or rendering source pipelines."""

from __future__ import annotations


class IncompatibleOperationError(ValueError):
    """Raised when mutate and summarise are combined on one pipeline."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(
            message
            or "only one of summarise and mutate may be used on a given pipeline"
        )


class ResolutionError(NameError):
    """A captured expression referenced a name that cannot be resolved."""

    def __init__(self, message: str, *, name: str | None = None) -> None:
        super().__init__(message)
        self.name = name


class SelectionIndexError(IndexError):
    """A select argument did not evaluate to a valid column position."""


class RenderError(RuntimeError):
    """A backend cannot express the pipeline it was given."""


__all__ = [
    "IncompatibleOperationError",
    "RenderError",
    "ResolutionError",
    "SelectionIndexError",
]
