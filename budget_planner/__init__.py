"""
Budget Planner - Source Package

A personal finance tracker core: transactions, budgets, undo/redo and
local/remote synchronization, without any user interface.

DESIGN PRINCIPLES:
1. The record store is the single source every view reads from
2. Remote is authoritative while signed in; snapshots replace, never merge
3. Every user action is reversible through the action log
4. Storage failures degrade to a message, never a crash
5. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Budget Planner Team"
