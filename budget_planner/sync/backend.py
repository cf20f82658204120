"""
Persistence Backend (dual mode)

DESIGN DECISION: One write/delete/clear surface over two modes:

LOCAL MODE:
- Mutations go straight into the record store
- Every store change re-serializes the three mirror keys
- Another context rewriting a mirror key triggers a full re-load

REMOTE MODE:
- Writes go to the remote store under the active identity
- The record store only changes when a snapshot arrives
- Before every remote call the mirror receives a "shadow": the store
  contents with the optimistic change applied. A reload before the
  snapshot arrives keeps the data; a failed call leaves the shadow as is.

Mirror failures never abort anything: they are logged and shown as a
warning. Remote failures are wrapped in RemoteSyncError and re-raised.
"""

from enum import Enum
from typing import Callable, Optional

from budget_planner.audit import AuditLogger, get_logger
from budget_planner.models.records import (
    Budget,
    Collection,
    Identity,
    Record,
    RecordId,
    RemoteId,
    Transaction,
    collection_of,
    record_payload,
)
from budget_planner.services.notifications import Notifier, Severity
from budget_planner.services.storage import (
    LocalMirror,
    MirrorKey,
    PersistenceError,
    RemoteStore,
    RemoteSyncError,
)
from budget_planner.store import ChangeSource, RecordStore, StoreChange


logger = get_logger(__name__)

SAVE_FAILED_MESSAGE = "Warning: unable to save data locally (storage may be disabled)"
LOAD_FAILED_MESSAGE = "Warning: failed to read local data (corrupt or unsupported)"


class BackendMode(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class PersistenceBackend:
    """
    Routes record mutations to the local mirror or the remote store.

    Args:
        store: The session's record store
        mirror: Local mirror over a key-value store
        remote: Remote document store; None disables remote mode
        notifier: Receives persistence warnings and sync notices
        audit_logger: Optional audit trail
    """

    def __init__(
        self,
        store: RecordStore,
        mirror: LocalMirror,
        remote: Optional[RemoteStore] = None,
        notifier: Optional[Notifier] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._mirror = mirror
        self._remote = remote
        self._notifier = notifier
        self._audit_logger = audit_logger
        self._mode = BackendMode.LOCAL
        self._identity: Optional[Identity] = None
        self._detachers: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    @property
    def mode(self) -> BackendMode:
        return self._mode

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_remote(self) -> bool:
        return self._mode == BackendMode.REMOTE

    @property
    def remote(self) -> Optional[RemoteStore]:
        return self._remote

    @property
    def mirror(self) -> LocalMirror:
        return self._mirror

    def use_local(self) -> None:
        self._mode = BackendMode.LOCAL
        self._identity = None

    def use_remote(self, identity: Identity) -> None:
        if self._remote is None:
            raise RemoteSyncError("sign_in", "all", "no remote store configured")
        self._mode = BackendMode.REMOTE
        self._identity = identity

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach(self) -> None:
        """Start persisting store changes and listening for external mirror changes."""
        if self._detachers:
            return
        self._detachers.append(self._store.subscribe(self._on_store_change))
        self._detachers.append(self._mirror.on_external_change(self._on_external_change))

    def detach(self) -> None:
        for detach in self._detachers:
            detach()
        self._detachers = []

    def _on_store_change(self, change: StoreChange) -> None:
        if change.source == ChangeSource.MIRROR:
            return
        self.persist_mirror()

    # ------------------------------------------------------------------
    # Local mirror
    # ------------------------------------------------------------------

    def persist_mirror(self) -> bool:
        """Serialize the whole store into the mirror. Returns False on failure."""
        return self._save_mirror(
            self._store.transactions,
            self._store.budgets,
            self._store.categories,
            operation="save",
        )

    def load_local(self) -> None:
        """
        Re-hydrate the store from the mirror.

        A key that cannot be read loads as empty; one warning is shown.
        """
        failed = False
        loaders = (
            (Collection.TRANSACTIONS, self._mirror.load_transactions),
            (Collection.BUDGETS, self._mirror.load_budgets),
        )
        for collection, load in loaders:
            try:
                items = load()
            except PersistenceError as e:
                failed = True
                self._report_persistence_failure(f"load_{collection.value}", e, warn=False)
                items = []
            self._store.replace_all(collection, items, ChangeSource.MIRROR)

        try:
            categories = self._mirror.load_categories()
        except PersistenceError as e:
            failed = True
            self._report_persistence_failure("load_categories", e, warn=False)
            categories = []
        self._store.replace_categories(categories, ChangeSource.MIRROR)

        if failed and self._notifier:
            self._notifier.notify(LOAD_FAILED_MESSAGE, Severity.WARNING)
        if self._audit_logger:
            self._audit_logger.log_local_state_loaded(
                len(self._store.transactions),
                len(self._store.budgets),
                len(self._store.categories),
            )

    def _save_mirror(
        self,
        transactions: list[Transaction],
        budgets: list[Budget],
        categories: list[str],
        operation: str,
    ) -> bool:
        try:
            self._mirror.save(transactions, budgets, categories)
        except PersistenceError as e:
            self._report_persistence_failure(operation, e)
            return False
        return True

    def _write_shadow(self, collection: Collection, items: list[Record]) -> None:
        transactions = self._store.transactions
        budgets = self._store.budgets
        if collection == Collection.TRANSACTIONS:
            transactions = items
        else:
            budgets = items
        self._save_mirror(transactions, budgets, self._store.categories, operation="shadow")

    def _report_persistence_failure(
        self,
        operation: str,
        error: Exception,
        warn: bool = True,
    ) -> None:
        logger.error("mirror_operation_failed", operation=operation, error=str(error))
        if self._audit_logger:
            self._audit_logger.log_persistence_failed(operation, str(error))
        if warn and self._notifier:
            self._notifier.notify(SAVE_FAILED_MESSAGE, Severity.WARNING)

    def _on_external_change(self, key: MirrorKey) -> None:
        # Remote is authoritative for records while signed in
        if key.collection is not None and self.is_remote:
            if self._audit_logger:
                self._audit_logger.log_external_change(key.value, applied=False)
            return

        try:
            if key == MirrorKey.TRANSACTIONS:
                self._store.replace_all(
                    Collection.TRANSACTIONS,
                    self._mirror.load_transactions(),
                    ChangeSource.MIRROR,
                )
            elif key == MirrorKey.BUDGETS:
                self._store.replace_all(
                    Collection.BUDGETS,
                    self._mirror.load_budgets(),
                    ChangeSource.MIRROR,
                )
            else:
                self._store.replace_categories(
                    self._mirror.load_categories(),
                    ChangeSource.MIRROR,
                )
        except PersistenceError as e:
            self._report_persistence_failure(f"reload_{key.value}", e, warn=False)
            if self._notifier:
                self._notifier.notify(LOAD_FAILED_MESSAGE, Severity.WARNING)
            return

        if self._audit_logger:
            self._audit_logger.log_external_change(key.value, applied=True)
        if key.collection is not None and self._notifier:
            self._notifier.notify(f"Sync: {key.value} updated (local)")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write(self, item: Record) -> Record:
        """
        Add a record, or re-add a previously deleted one.

        In remote mode a record with a LocalId is created with a
        store-assigned id; a record with a RemoteId is upserted by id.

        Returns:
            The record as stored, carrying its final id

        Raises:
            RemoteSyncError: If the remote call fails
        """
        if not self.is_remote:
            self._store.upsert_local(item)
            return item

        collection = collection_of(item)
        self._write_shadow(collection, _with_item(self._store.items(collection), item))

        if item.id.is_remote:
            await self._remote_call("set", collection, item.id, record_payload(item))
            return item

        doc_id = await self._remote_call("create", collection, None, record_payload(item))
        return item.model_copy(update={"id": RemoteId(value=doc_id)})

    async def replace(self, item: Record) -> Record:
        """
        Store an edited record under its existing id.

        A record that has never reached the remote store is edited
        locally even in remote mode.
        """
        if not (self.is_remote and item.id.is_remote):
            self._store.upsert_local(item)
            return item

        collection = collection_of(item)
        self._write_shadow(collection, _with_item(self._store.items(collection), item))
        await self._remote_call("set", collection, item.id, record_payload(item))
        return item

    async def delete(self, collection: Collection, record_id: RecordId) -> Optional[Record]:
        """
        Delete a record by id; deleting an absent local record is a no-op.

        Returns:
            The record as it was in the store, if it was there
        """
        if not (self.is_remote and record_id.is_remote):
            return self._store.remove_local(collection, record_id)

        existing = self._store.get(collection, record_id)
        remaining = [i for i in self._store.items(collection) if i.id != record_id]
        self._write_shadow(collection, remaining)
        await self._remote_call("delete", collection, record_id, None)
        return existing

    async def clear(self, collection: Collection) -> None:
        """Remove every record of a collection."""
        if not self.is_remote:
            self._store.replace_all(collection, [], ChangeSource.USER)
            return

        self._write_shadow(collection, [])
        try:
            documents = await self._remote.get_all(self._identity, collection.value)
        except Exception as e:
            raise self._remote_failure("clear", collection, e)
        for document in documents:
            await self._remote_call("delete", collection, RemoteId(value=document.id), None)

    async def _remote_call(
        self,
        operation: str,
        collection: Collection,
        record_id: Optional[RecordId],
        payload: Optional[dict],
    ):
        try:
            if operation == "create":
                return await self._remote.create(self._identity, collection.value, payload)
            if operation == "set":
                return await self._remote.set(
                    self._identity, collection.value, record_id.value, payload
                )
            return await self._remote.delete(self._identity, collection.value, record_id.value)
        except RemoteSyncError:
            raise
        except Exception as e:
            raise self._remote_failure(operation, collection, e)

    def _remote_failure(
        self,
        operation: str,
        collection: Collection,
        error: Exception,
    ) -> RemoteSyncError:
        message = str(error) or type(error).__name__
        logger.error(
            "remote_operation_failed",
            operation=operation,
            collection=collection.value,
            error=message,
        )
        if self._audit_logger:
            self._audit_logger.log_remote_error(operation, collection.value, message)
        return RemoteSyncError(operation, collection.value, message)


def _with_item(items: list[Record], item: Record) -> list[Record]:
    """items with item replacing the entry of the same id, or appended."""
    result = list(items)
    for idx, existing in enumerate(result):
        if existing.id == item.id:
            result[idx] = item
            return result
    result.append(item)
    return result
