"""
In-Memory Storage Backends

Two process-local implementations of the storage interfaces:

- InMemoryKeyValueStore: a handle onto a shared MemoryStorageArea.
  Several handles on one area behave like browser tabs on one origin:
  a write through one handle raises a change event on every other handle.
- InMemoryRemoteStore: a document store partitioned by identity whose
  live subscriptions re-deliver the full collection on the event loop
  after every change, never synchronously inside the write.
"""

import asyncio
import copy
from typing import Any, Callable, Optional
from uuid import uuid4

from budget_planner.audit import get_logger
from budget_planner.models.records import Identity
from budget_planner.services.storage.interface import (
    ChangeListener,
    ErrorCallback,
    KeyValueStore,
    RemoteDocument,
    RemoteStore,
    SnapshotCallback,
    Subscription,
    sort_documents,
)


logger = get_logger(__name__)


class MemoryStorageArea:
    """Backing data shared by every InMemoryKeyValueStore handle attached to it."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})
        self._handles: list["InMemoryKeyValueStore"] = []

    def attach(self, handle: "InMemoryKeyValueStore") -> None:
        self._handles.append(handle)

    def broadcast(
        self,
        origin: "InMemoryKeyValueStore",
        key: str,
        value: Optional[str],
    ) -> None:
        for handle in list(self._handles):
            if handle is not origin:
                handle._dispatch(key, value)


class InMemoryKeyValueStore(KeyValueStore):
    """
    Key-value mirror held in memory.

    Writes that leave a value unchanged raise no change event.
    """

    def __init__(self, area: Optional[MemoryStorageArea] = None):
        self._area = area or MemoryStorageArea()
        self._area.attach(self)
        self._listeners: list[ChangeListener] = []

    @property
    def area(self) -> MemoryStorageArea:
        return self._area

    def get(self, key: str) -> Optional[str]:
        return self._area.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self._area.data.get(key) == value:
            return
        self._area.data[key] = value
        self._area.broadcast(self, key, value)

    def remove(self, key: str) -> None:
        if key not in self._area.data:
            return
        del self._area.data[key]
        self._area.broadcast(self, key, None)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, key: str, value: Optional[str]) -> None:
        for listener in list(self._listeners):
            listener(key, value)


class _Watcher:
    """One live subscription of the in-memory remote store."""

    def __init__(
        self,
        partition: tuple[str, str],
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback],
        order_by: Optional[str],
        descending: bool,
    ):
        self.partition = partition
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.order_by = order_by
        self.descending = descending
        self.subscription: Optional[Subscription] = None


class InMemoryRemoteStore(RemoteStore):
    """
    Document store kept in process memory.

    Documents are partitioned by (identity uid, collection). Stored data
    is deep-copied on the way in and on the way out.
    """

    def __init__(self):
        self._documents: dict[tuple[str, str], dict[str, dict[str, Any]]] = {}
        self._watchers: list[_Watcher] = []

    def _partition(self, identity: Identity, collection: str) -> dict[str, dict[str, Any]]:
        return self._documents.setdefault((identity.uid, collection), {})

    def _snapshot(
        self,
        partition: tuple[str, str],
        order_by: Optional[str],
        descending: bool,
    ) -> list[RemoteDocument]:
        documents = [
            RemoteDocument(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._documents.get(partition, {}).items()
        ]
        return sort_documents(documents, order_by, descending)

    async def create(
        self,
        identity: Identity,
        collection: str,
        data: dict[str, Any],
    ) -> str:
        doc_id = uuid4().hex
        self._partition(identity, collection)[doc_id] = copy.deepcopy(data)
        self._notify((identity.uid, collection))
        return doc_id

    async def set(
        self,
        identity: Identity,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
    ) -> None:
        self._partition(identity, collection)[doc_id] = copy.deepcopy(data)
        self._notify((identity.uid, collection))

    async def delete(
        self,
        identity: Identity,
        collection: str,
        doc_id: str,
    ) -> None:
        documents = self._partition(identity, collection)
        if documents.pop(doc_id, None) is not None:
            self._notify((identity.uid, collection))

    async def get_all(
        self,
        identity: Identity,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[RemoteDocument]:
        return self._snapshot((identity.uid, collection), order_by, descending)

    def subscribe(
        self,
        identity: Identity,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Subscription:
        watcher = _Watcher(
            partition=(identity.uid, collection),
            on_snapshot=on_snapshot,
            on_error=on_error,
            order_by=order_by,
            descending=descending,
        )

        def remove() -> None:
            if watcher in self._watchers:
                self._watchers.remove(watcher)

        watcher.subscription = Subscription(on_cancel=remove)
        self._watchers.append(watcher)
        asyncio.get_running_loop().call_soon(self._deliver, watcher)
        return watcher.subscription

    def watcher_count(self, identity: Optional[Identity] = None) -> int:
        """Number of live subscriptions, optionally for one identity."""
        if identity is None:
            return len(self._watchers)
        return sum(1 for w in self._watchers if w.partition[0] == identity.uid)

    def _notify(self, partition: tuple[str, str]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        for watcher in list(self._watchers):
            if watcher.partition == partition:
                loop.call_soon(self._deliver, watcher)

    def _deliver(self, watcher: _Watcher) -> None:
        if watcher.subscription is None or not watcher.subscription.active:
            return
        snapshot = self._snapshot(watcher.partition, watcher.order_by, watcher.descending)
        try:
            watcher.on_snapshot(snapshot)
        except Exception as e:
            logger.error(
                "snapshot_callback_failed",
                collection=watcher.partition[1],
                error=str(e),
            )
            if watcher.on_error is not None:
                watcher.on_error(e)
