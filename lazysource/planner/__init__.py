"""Planner utilities."""

from lazysource.planner.plan import RenderPlan, build_plan

__all__ = ["RenderPlan", "build_plan"]
