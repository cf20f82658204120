"""
Abstract Storage Interfaces

DESIGN DECISION: The planner talks to two kinds of storage through
abstract interfaces:
1. KeyValueStore - the durable per-device mirror (three JSON keys)
2. RemoteStore - the per-identity document store with live subscriptions

Concrete backends (in-memory, files, Google Sheets) are swappable
without touching the sync or undo logic.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from budget_planner.models.records import Identity


ChangeListener = Callable[[str, Optional[str]], None]
SnapshotCallback = Callable[[list["RemoteDocument"]], None]
ErrorCallback = Callable[[Exception], None]


class KeyValueStore(ABC):
    """
    Abstract durable key-value mirror.

    Values are opaque text. Listeners registered with subscribe() are
    told about changes made by *other* contexts sharing the same
    storage, never about this handle's own writes.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a key.

        Returns:
            The stored text, or None if the key was never written

        Raises:
            PersistenceError: If the storage cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Replace the value of a key.

        Raises:
            PersistenceError: If the storage cannot be written
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key if present."""
        pass

    @abstractmethod
    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """
        Register a listener for external changes.

        Args:
            listener: Called with (key, new_value); new_value is None on removal

        Returns:
            A callable that unregisters the listener
        """
        pass


class RemoteDocument(BaseModel):
    """One document of a remote collection."""

    id: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)


class Subscription:
    """
    Handle for a live remote subscription.

    cancel() is idempotent; once cancelled the owning store must not
    deliver any further snapshots through it.
    """

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None):
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel()


class RemoteStore(ABC):
    """
    Abstract interface for the remote per-identity document store.

    Each identity owns the collections "transactions" and "budgets".
    """

    @abstractmethod
    async def create(
        self,
        identity: Identity,
        collection: str,
        data: dict[str, Any],
    ) -> str:
        """
        Create a document with a store-assigned id.

        Returns:
            The new document id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def set(
        self,
        identity: Identity,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
    ) -> None:
        """
        Create or fully replace the document with this id.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(
        self,
        identity: Identity,
        collection: str,
        doc_id: str,
    ) -> None:
        """
        Delete a document. Deleting a missing document is not an error.

        Raises:
            StorageError: If the delete fails
        """
        pass

    @abstractmethod
    async def get_all(
        self,
        identity: Identity,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[RemoteDocument]:
        """
        Read the whole collection.

        Args:
            order_by: Optional data field to sort on
            descending: Sort direction when order_by is given
        """
        pass

    @abstractmethod
    def subscribe(
        self,
        identity: Identity,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        """
        Open a live subscription.

        The callback receives the full current collection once shortly
        after subscribing and again after every change. Must be called
        from inside a running event loop.
        """
        pass


def sort_documents(
    documents: list[RemoteDocument],
    order_by: Optional[str],
    descending: bool = False,
) -> list[RemoteDocument]:
    """Order documents by a data field; documents missing the field sort last."""
    if not order_by:
        return list(documents)

    present = [doc for doc in documents if doc.data.get(order_by) is not None]
    missing = [doc for doc in documents if doc.data.get(order_by) is None]
    present.sort(key=lambda doc: str(doc.data[order_by]), reverse=descending)
    return present + missing


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PersistenceError(StorageError):
    """The local mirror could not be read or written."""
    pass


class RemoteSyncError(StorageError):
    """A remote write, delete or subscription failed."""

    def __init__(self, operation: str, collection: str, message: str):
        super().__init__(f"Remote {operation} on {collection} failed: {message}")
        self.operation = operation
        self.collection = collection
