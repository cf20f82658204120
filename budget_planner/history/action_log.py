"""
Action Log (undo/redo)

DESIGN DECISION: Two LIFO stacks of immutable entries.
1. record() pushes onto the undo stack and clears the redo stack
2. The undo stack is bounded; the oldest entry is evicted first
3. undo() applies the inverse of the newest entry, redo() re-applies it
4. Replays go through the persistence backend in whatever mode it is
   in at replay time, not the mode the action was recorded in

Undo and redo are serialized: a second gesture waits for the first
replay to finish. A replay that fails puts its entry back where it
came from and re-raises.
"""

import asyncio
from typing import Optional

from budget_planner.audit import AuditLogger, get_logger
from budget_planner.models.actions import (
    ActionEntry,
    BudgetAdded,
    BudgetDeleted,
    BudgetEdited,
    TransactionAdded,
    TransactionDeleted,
    TransactionEdited,
    describe_entry,
    entry_record_id,
)
from budget_planner.models.records import Collection
from budget_planner.sync.backend import PersistenceBackend


logger = get_logger(__name__)


class ActionLog:
    """
    Bounded undo/redo history.

    Args:
        backend: Persistence backend replays are routed through
        limit: Maximum undo depth
        audit_logger: Optional audit trail
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        limit: int = 50,
        audit_logger: Optional[AuditLogger] = None,
    ):
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self._backend = backend
        self._limit = limit
        self._audit_logger = audit_logger
        self._undo: list[ActionEntry] = []
        self._redo: list[ActionEntry] = []
        self._lock = asyncio.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def record(self, entry: ActionEntry) -> None:
        """Push a new user action; any redo history is discarded."""
        self._undo.append(entry.model_copy(deep=True))
        if len(self._undo) > self._limit:
            del self._undo[0]
        self._redo.clear()

    def clear(self) -> None:
        self._undo.clear()
        self._redo.clear()

    async def undo(self) -> Optional[ActionEntry]:
        """
        Revert the newest action.

        Returns:
            The entry now on top of the redo stack, or None if there was nothing to undo

        Raises:
            RemoteSyncError: If the replay fails (the entry stays on the undo stack)
        """
        async with self._lock:
            if not self._undo:
                return None
            entry = self._undo.pop()
            try:
                replayed = await self._revert(entry)
            except Exception as e:
                self._undo.append(entry)
                self._replay_failed("undo", entry, e)
                raise
            self._redo.append(replayed)
            self._replayed("undo", replayed)
            return replayed

    async def redo(self) -> Optional[ActionEntry]:
        """
        Re-apply the newest undone action.

        Raises:
            RemoteSyncError: If the replay fails (the entry stays on the redo stack)
        """
        async with self._lock:
            if not self._redo:
                return None
            entry = self._redo.pop()
            try:
                replayed = await self._apply(entry)
            except Exception as e:
                self._redo.append(entry)
                self._replay_failed("redo", entry, e)
                raise
            self._undo.append(replayed)
            self._replayed("redo", replayed)
            return replayed

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    async def _revert(self, entry: ActionEntry) -> ActionEntry:
        if isinstance(entry, TransactionAdded):
            await self._backend.delete(Collection.TRANSACTIONS, entry.transaction.id)
            return entry
        if isinstance(entry, TransactionDeleted):
            restored = await self._backend.write(entry.transaction)
            return _rebind(entry, "transaction", restored)
        if isinstance(entry, TransactionEdited):
            await self._backend.replace(entry.before)
            return entry
        if isinstance(entry, BudgetAdded):
            await self._backend.delete(Collection.BUDGETS, entry.budget.id)
            return entry
        if isinstance(entry, BudgetDeleted):
            restored = await self._backend.write(entry.budget)
            return _rebind(entry, "budget", restored)
        if isinstance(entry, BudgetEdited):
            await self._backend.replace(entry.before)
            return entry
        raise TypeError(f"Unknown action entry: {entry!r}")

    async def _apply(self, entry: ActionEntry) -> ActionEntry:
        if isinstance(entry, TransactionAdded):
            written = await self._backend.write(entry.transaction)
            return _rebind(entry, "transaction", written)
        if isinstance(entry, TransactionDeleted):
            await self._backend.delete(Collection.TRANSACTIONS, entry.transaction.id)
            return entry
        if isinstance(entry, TransactionEdited):
            await self._backend.replace(entry.after)
            return entry
        if isinstance(entry, BudgetAdded):
            written = await self._backend.write(entry.budget)
            return _rebind(entry, "budget", written)
        if isinstance(entry, BudgetDeleted):
            await self._backend.delete(Collection.BUDGETS, entry.budget.id)
            return entry
        if isinstance(entry, BudgetEdited):
            await self._backend.replace(entry.after)
            return entry
        raise TypeError(f"Unknown action entry: {entry!r}")

    def _replayed(self, direction: str, entry: ActionEntry) -> None:
        logger.info(
            "history_replayed",
            direction=direction,
            kind=entry.kind,
            mode=self._backend.mode.value,
        )
        if self._audit_logger:
            self._audit_logger.log_history_replayed(
                direction=direction,
                entry_kind=describe_entry(entry),
                entity_id=str(entry_record_id(entry)),
                mode=self._backend.mode.value,
            )

    def _replay_failed(self, direction: str, entry: ActionEntry, error: Exception) -> None:
        logger.error("history_replay_failed", direction=direction, kind=entry.kind, error=str(error))
        if self._audit_logger:
            self._audit_logger.log_replay_failed(direction, describe_entry(entry), str(error))


def _rebind(entry: ActionEntry, field: str, record) -> ActionEntry:
    """Point an entry at the record id the backend actually used."""
    if getattr(entry, field).id == record.id:
        return entry
    return entry.model_copy(update={field: record})
