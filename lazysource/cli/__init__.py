"""Command-line entry points for lazysource tooling."""

from __future__ import annotations

from lazysource.cli import render_pipeline

__all__ = ["render_pipeline"]
