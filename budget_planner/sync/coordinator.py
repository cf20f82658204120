"""
Sync Coordinator

Identity state machine: SIGNED_OUT <-> SIGNED_IN.

Signing in switches the backend to remote mode and opens two live
subscriptions (transactions ordered by date descending, budgets
unordered). Each delivery replaces the matching store collection.
Signing out cancels both and re-hydrates the store from the mirror.

Every sign-in or sign-out bumps a generation counter. A delivery tagged
with an older generation comes from a torn-down subscription and is
dropped, so a slow snapshot can never overwrite a newer session.
"""

from enum import Enum
from typing import Optional

from pydantic import ValidationError

from budget_planner.audit import AuditLogger, get_logger
from budget_planner.models.records import Collection, Identity, record_from_document
from budget_planner.services.notifications import IdentityProvider, Notifier, Severity
from budget_planner.services.storage import RemoteDocument, RemoteStore, Subscription
from budget_planner.store import ChangeSource, RecordStore
from budget_planner.sync.backend import PersistenceBackend


logger = get_logger(__name__)


class IdentityState(str, Enum):
    SIGNED_OUT = "signed_out"
    SIGNED_IN = "signed_in"


class SyncUnavailableError(Exception):
    """Sign-in was requested but no remote store is configured."""
    pass


class SyncCoordinator:
    """Owns the remote subscription lifecycle for one planner session."""

    def __init__(
        self,
        store: RecordStore,
        backend: PersistenceBackend,
        notifier: Optional[Notifier] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._backend = backend
        self._notifier = notifier
        self._audit_logger = audit_logger
        self._state = IdentityState.SIGNED_OUT
        self._identity: Optional[Identity] = None
        self._subscriptions: list[Subscription] = []
        self._generation = 0

    @property
    def state(self) -> IdentityState:
        return self._state

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_signed_in(self) -> bool:
        return self._state == IdentityState.SIGNED_IN

    @property
    def remote(self) -> Optional[RemoteStore]:
        return self._backend.remote

    @property
    def active_subscriptions(self) -> int:
        return sum(1 for s in self._subscriptions if s.active)

    def sign_in(self, identity: Identity) -> None:
        """
        Switch to remote mode for this identity.

        Signing in again as the same identity is a no-op; signing in as
        another identity replaces the current subscriptions.

        Raises:
            SyncUnavailableError: If no remote store is configured
        """
        if self.remote is None:
            raise SyncUnavailableError("Remote sync is not configured")
        if self.is_signed_in and self._identity and self._identity.uid == identity.uid:
            return

        self._stop_subscriptions()
        self._backend.use_remote(identity)
        self._identity = identity
        self._state = IdentityState.SIGNED_IN
        self._start_subscriptions(identity)

        logger.info("signed_in", uid=identity.uid)
        if self._audit_logger:
            self._audit_logger.log_signed_in(identity.uid)

    def sign_out(self) -> None:
        """Return to local mode and reload the store from the mirror."""
        if not self.is_signed_in:
            return

        uid = self._identity.uid if self._identity else None
        self._stop_subscriptions()
        self._backend.use_local()
        self._identity = None
        self._state = IdentityState.SIGNED_OUT
        self._backend.load_local()

        logger.info("signed_out", uid=uid)
        if self._audit_logger:
            self._audit_logger.log_signed_out(uid)

    async def request_sign_in(self, provider: IdentityProvider) -> Optional[Identity]:
        """
        Ask the identity provider for credentials and sign in with them.

        Returns:
            The signed-in identity, or None if the user cancelled
        """
        if self.remote is None:
            raise SyncUnavailableError("Remote sync is not configured")
        identity = await provider.prompt_identity()
        if identity is None:
            return None
        self.sign_in(identity)
        return identity

    def close(self) -> None:
        """Cancel subscriptions without touching the store."""
        self._stop_subscriptions()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def _start_subscriptions(self, identity: Identity) -> None:
        self._generation += 1
        generation = self._generation

        self._subscriptions = [
            self.remote.subscribe(
                identity,
                Collection.TRANSACTIONS.value,
                on_snapshot=lambda docs: self._apply_snapshot(
                    Collection.TRANSACTIONS, generation, docs
                ),
                on_error=lambda e: self._subscription_failed(
                    Collection.TRANSACTIONS, generation, e
                ),
                order_by="date",
                descending=True,
            ),
            self.remote.subscribe(
                identity,
                Collection.BUDGETS.value,
                on_snapshot=lambda docs: self._apply_snapshot(
                    Collection.BUDGETS, generation, docs
                ),
                on_error=lambda e: self._subscription_failed(
                    Collection.BUDGETS, generation, e
                ),
            ),
        ]

    def _stop_subscriptions(self) -> None:
        self._generation += 1
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions = []

    def _apply_snapshot(
        self,
        collection: Collection,
        generation: int,
        documents: list[RemoteDocument],
    ) -> None:
        if generation != self._generation or not self.is_signed_in:
            logger.debug("stale_snapshot_dropped", collection=collection.value)
            if self._audit_logger:
                self._audit_logger.log_snapshot_dropped(collection.value)
            return

        records = []
        for document in documents:
            try:
                records.append(record_from_document(collection, document.id, document.data))
            except ValidationError as e:
                logger.warning(
                    "invalid_remote_document",
                    collection=collection.value,
                    doc_id=document.id,
                    errors=e.error_count(),
                )

        self._store.replace_all(collection, records, ChangeSource.SNAPSHOT)
        if self._audit_logger:
            self._audit_logger.log_snapshot_applied(collection.value, len(records))

    def _subscription_failed(
        self,
        collection: Collection,
        generation: int,
        error: Exception,
    ) -> None:
        if generation != self._generation:
            return
        logger.error("subscription_failed", collection=collection.value, error=str(error))
        if self._audit_logger:
            self._audit_logger.log_remote_error("subscribe", collection.value, str(error))
        if self._notifier:
            self._notifier.notify(
                f"Sync error ({collection.value}): {error}",
                Severity.WARNING,
            )
