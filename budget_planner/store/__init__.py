"""In-memory record store package."""

from budget_planner.store.record_store import (
    ChangeSource,
    RecordStore,
    StoreChange,
    StoreSection,
)

__all__ = ["ChangeSource", "RecordStore", "StoreChange", "StoreSection"]
