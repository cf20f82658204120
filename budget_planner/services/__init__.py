"""Services package."""

from budget_planner.services.notifications import (
    IdentityProvider,
    LoggingNotifier,
    Notifier,
    Severity,
)
from budget_planner.services.storage import (
    ConnectionError,
    FileKeyValueStore,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryKeyValueStore,
    InMemoryRemoteStore,
    KeyValueStore,
    LocalMirror,
    MemoryStorageArea,
    MirrorKey,
    NotFoundError,
    PersistenceError,
    RemoteDocument,
    RemoteStore,
    RemoteSyncError,
    StorageError,
    Subscription,
)

__all__ = [
    # Collaborators
    "IdentityProvider",
    "LoggingNotifier",
    "Notifier",
    "Severity",
    # Storage services
    "ConnectionError",
    "FileKeyValueStore",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryKeyValueStore",
    "InMemoryRemoteStore",
    "KeyValueStore",
    "LocalMirror",
    "MemoryStorageArea",
    "MirrorKey",
    "NotFoundError",
    "PersistenceError",
    "RemoteDocument",
    "RemoteStore",
    "RemoteSyncError",
    "StorageError",
    "Subscription",
]
