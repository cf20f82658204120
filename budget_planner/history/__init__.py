"""Undo/redo history package."""

from budget_planner.history.action_log import ActionLog

__all__ = ["ActionLog"]
