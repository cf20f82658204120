"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the local
mirror (key-value) and the remote per-identity document store.
"""

from budget_planner.services.storage.interface import (
    ConnectionError,
    KeyValueStore,
    NotFoundError,
    PersistenceError,
    RemoteDocument,
    RemoteStore,
    RemoteSyncError,
    StorageError,
    Subscription,
    sort_documents,
)
from budget_planner.services.storage.memory import (
    InMemoryKeyValueStore,
    InMemoryRemoteStore,
    MemoryStorageArea,
)
from budget_planner.services.storage.files import FileKeyValueStore
from budget_planner.services.storage.local_mirror import LocalMirror, MirrorKey
from budget_planner.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "KeyValueStore",
    "RemoteDocument",
    "RemoteStore",
    "Subscription",
    "sort_documents",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "PersistenceError",
    "RemoteSyncError",
    "StorageError",
    # Local mirror
    "FileKeyValueStore",
    "InMemoryKeyValueStore",
    "LocalMirror",
    "MemoryStorageArea",
    "MirrorKey",
    # Remote stores
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryRemoteStore",
]
