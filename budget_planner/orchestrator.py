"""
Planner Session

This module ties together all the components and defines the
end-to-end flows for:
1. Record actions (draft → validate → persist → record in history → notify)
2. Undo/redo (history → replay through the active backend → notify)
3. Identity changes (sign in → remote snapshots; sign out → local mirror)
4. Dashboard reads (filters, totals, budget statuses, CSV export)

DESIGN DECISION: The session object enforces the boundaries:
- Nothing is persisted from a draft that failed validation
- Only actions the backend accepted enter the history
- Storage failures become notices, never crashes
- Every step is audited

Views never mutate state; they read the store and receive
notify_changed() after every change.
"""

from datetime import date
from typing import Optional

from budget_planner.audit import AuditLogger, configure_logging, get_logger
from budget_planner.config import AppSettings, get_settings, is_remote_configured
from budget_planner.history import ActionLog
from budget_planner.models.actions import (
    ActionEntry,
    BudgetAdded,
    BudgetDeleted,
    BudgetEdited,
    TransactionAdded,
    TransactionDeleted,
    TransactionEdited,
)
from budget_planner.models.audit import AuditEventType
from budget_planner.models.forms import BudgetDraft, TransactionDraft, ValidationResult
from budget_planner.models.records import (
    Budget,
    Collection,
    Identity,
    LocalId,
    RecordId,
    Transaction,
    TransactionType,
    utc_now,
)
from budget_planner.queries import (
    BudgetAlerts,
    BudgetStatus,
    CsvExport,
    MonthlyPoint,
    Summary,
    TransactionFilter,
    budget_categories,
    build_export,
    evaluate_budgets,
    expense_by_category,
    filter_categories,
    filter_transactions,
    monthly_series,
    summarize,
    transaction_categories,
    truncate_note,
)
from budget_planner.services.notifications import (
    IdentityProvider,
    LoggingNotifier,
    Notifier,
    Severity,
)
from budget_planner.services.storage import (
    FileKeyValueStore,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryKeyValueStore,
    KeyValueStore,
    LocalMirror,
    RemoteStore,
    RemoteSyncError,
)
from budget_planner.store import RecordStore, StoreChange, StoreSection
from budget_planner.sync import PersistenceBackend, SyncCoordinator, SyncUnavailableError
from budget_planner.validation import RecordValidator


logger = get_logger(__name__)


class BudgetPlanner:
    """
    One planner session.

    Owns the record store, the persistence backend, the sync
    coordinator, the action log and the alert policy.

    Args:
        mirror: Local mirror the session loads from and persists to
        remote: Remote store used while signed in; None keeps the session local-only
        notifier: Receives view refreshes and user notices
        audit_logger: Audit trail
        app_settings: Currency, history and alerting settings
        watch_interval: Poll interval for a file-backed mirror
    """

    def __init__(
        self,
        mirror: LocalMirror,
        remote: Optional[RemoteStore] = None,
        notifier: Optional[Notifier] = None,
        audit_logger: Optional[AuditLogger] = None,
        app_settings: Optional[AppSettings] = None,
        watch_interval: float = 2.0,
    ):
        self._settings = app_settings or get_settings().app
        self._notifier = notifier or LoggingNotifier()
        self._audit_logger = audit_logger or AuditLogger()
        self._watch_interval = watch_interval

        self._store = RecordStore()
        self._backend = PersistenceBackend(
            self._store,
            mirror,
            remote=remote,
            notifier=self._notifier,
            audit_logger=self._audit_logger,
        )
        self._sync = SyncCoordinator(
            self._store,
            self._backend,
            notifier=self._notifier,
            audit_logger=self._audit_logger,
        )
        self._history = ActionLog(
            self._backend,
            limit=self._settings.undo_history_limit,
            audit_logger=self._audit_logger,
        )
        self._alerts = BudgetAlerts(
            self._notifier,
            currency=self._settings.base_currency,
            audit_logger=self._audit_logger,
        )
        self._validator = RecordValidator(self._settings.base_currency)

        self.month_filter: Optional[str] = None
        self._unsubscribe = None

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def backend(self) -> PersistenceBackend:
        return self._backend

    @property
    def sync(self) -> SyncCoordinator:
        return self._sync

    @property
    def history(self) -> ActionLog:
        return self._history

    @property
    def alerts(self) -> BudgetAlerts:
        return self._alerts

    @property
    def settings(self) -> AppSettings:
        return self._settings

    @property
    def identity(self) -> Optional[Identity]:
        return self._sync.identity

    @property
    def is_signed_in(self) -> bool:
        return self._sync.is_signed_in

    @property
    def can_undo(self) -> bool:
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        return self._history.can_redo

    @property
    def transactions(self) -> list[Transaction]:
        return self._store.transactions

    @property
    def budgets(self) -> list[Budget]:
        return self._store.budgets

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the local mirror and start reacting to changes."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.subscribe(self._on_store_change)
        self._backend.attach()
        self._backend.load_local()

        kv_store = self._backend.mirror.store
        if isinstance(kv_store, FileKeyValueStore):
            kv_store.start_watching(self._watch_interval)
        logger.info("planner_started", mode=self._backend.mode.value)

    async def close(self) -> None:
        self._sync.close()
        self._backend.detach()
        kv_store = self._backend.mirror.store
        if isinstance(kv_store, FileKeyValueStore):
            kv_store.stop_watching()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info("planner_closed")

    def _on_store_change(self, change: StoreChange) -> None:
        self._notifier.notify_changed()
        if change.section != StoreSection.CATEGORIES:
            self.check_budgets()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def add_transaction(self, draft: TransactionDraft) -> Optional[Transaction]:
        """
        Validate and add a transaction.

        Returns:
            The stored transaction (with its remote id in remote mode),
            or None if the draft was invalid or the write failed
        """
        result = self._check(self._validator.validate_transaction(draft), "transaction")
        if result is None:
            return None

        now = utc_now()
        transaction = Transaction(id=LocalId.mint(), created_at=now, updated_at=now, **result.values)
        try:
            stored = await self._backend.write(transaction)
        except RemoteSyncError:
            self._notifier.notify("Failed to add transaction", Severity.ERROR)
            return None
        if result.new_category:
            self.register_category(result.new_category)

        self._record(
            TransactionAdded(transaction=stored),
            AuditEventType.TRANSACTION_ADDED,
            "transaction",
            stored.id,
        )
        self._notifier.notify("Transaction added")
        return stored

    async def edit_transaction(
        self,
        record_id: RecordId,
        draft: TransactionDraft,
    ) -> Optional[Transaction]:
        before = self._store.get_transaction(record_id)
        if before is None:
            self._notifier.notify("Editing item not found", Severity.ERROR)
            return None

        result = self._check(self._validator.validate_transaction(draft), "transaction")
        if result is None:
            return None

        after = Transaction(
            id=before.id,
            created_at=before.created_at,
            updated_at=utc_now(),
            **result.values,
        )
        try:
            await self._backend.replace(after)
        except RemoteSyncError:
            self._notifier.notify("Failed to update transaction", Severity.ERROR)
            return None
        if result.new_category:
            self.register_category(result.new_category)

        self._record(
            TransactionEdited(before=before, after=after),
            AuditEventType.TRANSACTION_UPDATED,
            "transaction",
            after.id,
        )
        self._notifier.notify("Transaction updated")
        return after

    async def delete_transaction(self, record_id: RecordId) -> bool:
        existing = self._store.get_transaction(record_id)
        if existing is None:
            logger.warning("delete_missing_record", collection="transactions", record_id=str(record_id))
            return False
        try:
            await self._backend.delete(Collection.TRANSACTIONS, record_id)
        except RemoteSyncError:
            self._notifier.notify("Failed to delete transaction", Severity.ERROR)
            return False

        self._record(
            TransactionDeleted(transaction=existing),
            AuditEventType.TRANSACTION_DELETED,
            "transaction",
            existing.id,
        )
        self._notifier.notify("Transaction deleted")
        return True

    # ------------------------------------------------------------------
    # Budgets
    # ------------------------------------------------------------------

    async def add_budget(self, draft: BudgetDraft) -> Optional[Budget]:
        result = self._check(self._validator.validate_budget(draft), "budget")
        if result is None:
            return None

        budget = Budget(id=LocalId.mint(), created_at=utc_now(), **result.values)
        try:
            stored = await self._backend.write(budget)
        except RemoteSyncError:
            self._notifier.notify("Failed to save budget", Severity.ERROR)
            return None

        self._record(BudgetAdded(budget=stored), AuditEventType.BUDGET_ADDED, "budget", stored.id)
        self._notifier.notify("Budget saved")
        return stored

    async def edit_budget(self, record_id: RecordId, draft: BudgetDraft) -> Optional[Budget]:
        before = self._store.get_budget(record_id)
        if before is None:
            self._notifier.notify("Editing item not found", Severity.ERROR)
            return None

        result = self._check(self._validator.validate_budget(draft), "budget")
        if result is None:
            return None

        # created_at survives edits
        after = Budget(id=before.id, created_at=before.created_at, **result.values)
        try:
            await self._backend.replace(after)
        except RemoteSyncError:
            self._notifier.notify("Failed to update budget", Severity.ERROR)
            return None

        self._record(
            BudgetEdited(before=before, after=after),
            AuditEventType.BUDGET_UPDATED,
            "budget",
            after.id,
        )
        self._notifier.notify("Budget updated")
        return after

    async def delete_budget(self, record_id: RecordId) -> bool:
        existing = self._store.get_budget(record_id)
        if existing is None:
            logger.warning("delete_missing_record", collection="budgets", record_id=str(record_id))
            return False
        try:
            await self._backend.delete(Collection.BUDGETS, record_id)
        except RemoteSyncError:
            self._notifier.notify("Failed to remove budget", Severity.ERROR)
            return False

        self._record(BudgetDeleted(budget=existing), AuditEventType.BUDGET_DELETED, "budget", existing.id)
        self._notifier.notify("Budget removed")
        return True

    async def clear_budgets(self) -> bool:
        """Delete every budget. Not undoable."""
        try:
            await self._backend.clear(Collection.BUDGETS)
        except RemoteSyncError:
            self._notifier.notify("Failed to clear budgets", Severity.ERROR)
            return False

        self._audit_logger.log_record_changed(
            event_type=AuditEventType.BUDGETS_CLEARED,
            entity_type="budget",
            entity_id="*",
            mode=self._backend.mode.value,
        )
        self._notifier.notify("All budgets cleared")
        return True

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def undo(self) -> Optional[ActionEntry]:
        try:
            entry = await self._history.undo()
        except RemoteSyncError as e:
            self._notifier.notify(f"Undo failed: {e}", Severity.ERROR)
            return None
        if entry is not None:
            self._notifier.notify("Undo performed")
        return entry

    async def redo(self) -> Optional[ActionEntry]:
        try:
            entry = await self._history.redo()
        except RemoteSyncError as e:
            self._notifier.notify(f"Redo failed: {e}", Severity.ERROR)
            return None
        if entry is not None:
            self._notifier.notify("Redo performed")
        return entry

    def _record(
        self,
        entry: ActionEntry,
        event_type: AuditEventType,
        entity_type: str,
        record_id: RecordId,
    ) -> None:
        self._history.record(entry)
        self._audit_logger.log_record_changed(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=str(record_id),
            mode=self._backend.mode.value,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def sign_in(self, identity: Identity) -> bool:
        previous = self._sync.identity
        try:
            self._sync.sign_in(identity)
        except SyncUnavailableError:
            self._notifier.notify("Remote sync is not configured", Severity.ERROR)
            return False
        if previous != identity:
            # alerts belong to the data of one identity
            self._alerts.reset()
        self._notifier.notify(f"Signed in as {identity.label}")
        return True

    async def sign_out(self) -> None:
        if not self._sync.is_signed_in:
            return
        self._alerts.reset()
        self._sync.sign_out()
        self._notifier.notify("Signed out")

    async def request_sign_in(self, provider: IdentityProvider) -> Optional[Identity]:
        previous = self._sync.identity
        try:
            identity = await self._sync.request_sign_in(provider)
        except SyncUnavailableError:
            self._notifier.notify("Remote sync is not configured", Severity.ERROR)
            return None
        if identity is not None:
            if previous != identity:
                self._alerts.reset()
            self._notifier.notify(f"Signed in as {identity.label}")
        return identity

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def register_category(self, name: str) -> bool:
        added = self._store.add_category(name)
        if added:
            self._audit_logger.log_record_changed(
                event_type=AuditEventType.CATEGORY_REGISTERED,
                entity_type="category",
                entity_id=name.strip(),
                mode=self._backend.mode.value,
            )
        return added

    def transaction_category_choices(self, tx_type: TransactionType) -> list[str]:
        return transaction_categories(
            tx_type, self._settings.default_categories, self._store.categories
        )

    def budget_category_choices(self) -> list[str]:
        return budget_categories(self._settings.default_categories, self._store.categories)

    def filter_category_choices(self) -> list[str]:
        return filter_categories(
            self._settings.default_categories,
            self._store.categories,
            self._store.transactions,
        )

    # ------------------------------------------------------------------
    # Budgets and reports
    # ------------------------------------------------------------------

    def budget_statuses(self, month_filter: Optional[str] = None) -> list[BudgetStatus]:
        return evaluate_budgets(
            self._store.transactions,
            self._store.budgets,
            month_filter=month_filter or self.month_filter,
            near_limit_ratio=self._settings.near_limit_ratio,
        )

    def check_budgets(self) -> list[str]:
        """Run the alert policy; returns keys of newly raised exceeded alerts."""
        return self._alerts.process(self.budget_statuses())

    def dismiss_alert(self, key: str) -> None:
        self._alerts.dismiss(key)

    def list_transactions(self, criteria: Optional[TransactionFilter] = None) -> list[Transaction]:
        return filter_transactions(self._store.transactions, criteria)

    def summary(self, criteria: Optional[TransactionFilter] = None) -> Summary:
        return summarize(self.list_transactions(criteria))

    def category_breakdown(self, criteria: Optional[TransactionFilter] = None) -> dict:
        return expense_by_category(self.list_transactions(criteria))

    def monthly_series(self, today: Optional[date] = None) -> list[MonthlyPoint]:
        return monthly_series(self._store.transactions, self._settings.chart_months, today)

    def note_preview(self, transaction: Transaction) -> str:
        return truncate_note(transaction.note, self._settings.note_display_length)

    def export_csv(self, today: Optional[date] = None) -> Optional[CsvExport]:
        export = build_export(self._store.transactions, today)
        if export is None:
            self._notifier.notify("No transactions to export")
            return None
        self._notifier.notify("CSV exported")
        return export

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _check(self, result: ValidationResult, entity_type: str) -> Optional[ValidationResult]:
        if result.is_valid:
            return result
        self._audit_logger.log_validation_failed(
            entity_type,
            [issue.model_dump() for issue in result.issues],
        )
        self._notifier.notify(result.first_error or "Invalid input", Severity.ERROR)
        return None


def create_planner(
    notifier: Optional[Notifier] = None,
    key_value_store: Optional[KeyValueStore] = None,
    remote: Optional[RemoteStore] = None,
    use_remote_store: bool = True,
) -> BudgetPlanner:
    """
    Factory function to create a planner session from settings.

    Args:
        notifier: Receives notices; defaults to the structured log
        key_value_store: Mirror backend; defaults to the configured one
        remote: Remote store; defaults to Google Sheets when configured
        use_remote_store: Set to False to build a local-only session

    Returns:
        A planner that still needs start()
    """
    settings = get_settings()
    storage = settings.storage
    configure_logging(settings.app.log_level)

    if key_value_store is None:
        if storage.backend == "memory":
            key_value_store = InMemoryKeyValueStore()
        else:
            key_value_store = FileKeyValueStore(storage.data_dir)

    if remote is None and use_remote_store and is_remote_configured():
        remote = GoogleSheetsRemoteStore(GoogleSheetsClient(settings.google_sheets))
    elif remote is None:
        logger.info("remote_store_disabled")

    return BudgetPlanner(
        LocalMirror.from_settings(key_value_store, storage),
        remote=remote if use_remote_store else None,
        notifier=notifier,
        app_settings=settings.app,
        watch_interval=storage.watch_interval_seconds,
    )
