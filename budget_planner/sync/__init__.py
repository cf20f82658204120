"""Local/remote synchronization package."""

from budget_planner.sync.backend import BackendMode, PersistenceBackend
from budget_planner.sync.coordinator import (
    IdentityState,
    SyncCoordinator,
    SyncUnavailableError,
)

__all__ = [
    "BackendMode",
    "IdentityState",
    "PersistenceBackend",
    "SyncCoordinator",
    "SyncUnavailableError",
]
