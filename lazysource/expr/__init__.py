"""Expression capture, building and resolution."""

from lazysource.expr.builder import ColExpr, col, desc, fn, lit

__all__ = ["ColExpr", "col", "desc", "fn", "lit"]
