"""
Local Mirror

Serializes the planner state into three keys of a KeyValueStore:
transactions, budgets and the user-registered categories. Every save
replaces all three values; nothing is ever appended or patched.
"""

from enum import Enum
from typing import Callable, Optional, Sequence

from pydantic import ValidationError

from budget_planner.models.records import (
    Budget,
    BudgetList,
    CategoryList,
    Collection,
    Transaction,
    TransactionList,
)
from budget_planner.services.storage.interface import (
    KeyValueStore,
    PersistenceError,
    StorageError,
)


class MirrorKey(str, Enum):
    """Logical names of the three mirror entries."""
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"
    CATEGORIES = "categories"

    @property
    def collection(self) -> Optional[Collection]:
        if self == MirrorKey.TRANSACTIONS:
            return Collection.TRANSACTIONS
        if self == MirrorKey.BUDGETS:
            return Collection.BUDGETS
        return None


class LocalMirror:
    """
    JSON mirror of the record store.

    Args:
        store: Key-value backend
        transactions_key, budgets_key, categories_key: Storage key names
    """

    def __init__(
        self,
        store: KeyValueStore,
        transactions_key: str = "bp_transactions_v1",
        budgets_key: str = "bp_budgets_v1",
        categories_key: str = "bp_categories_v1",
    ):
        self._store = store
        self._keys = {
            MirrorKey.TRANSACTIONS: transactions_key,
            MirrorKey.BUDGETS: budgets_key,
            MirrorKey.CATEGORIES: categories_key,
        }

    @classmethod
    def from_settings(cls, store: KeyValueStore, settings) -> "LocalMirror":
        """Build a mirror using the key names from StorageSettings."""
        return cls(
            store,
            transactions_key=settings.transactions_key,
            budgets_key=settings.budgets_key,
            categories_key=settings.categories_key,
        )

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def key_name(self, key: MirrorKey) -> str:
        return self._keys[key]

    def resolve_key(self, raw_key: str) -> Optional[MirrorKey]:
        """Map a storage key back to its logical name; None for foreign keys."""
        for logical, name in self._keys.items():
            if name == raw_key:
                return logical
        return None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(
        self,
        transactions: Sequence[Transaction],
        budgets: Sequence[Budget],
        categories: Sequence[str],
    ) -> None:
        """
        Replace all three keys.

        Raises:
            PersistenceError: If any key cannot be written
        """
        self._write(MirrorKey.TRANSACTIONS, TransactionList.dump_json(list(transactions)))
        self._write(MirrorKey.BUDGETS, BudgetList.dump_json(list(budgets)))
        self._write(MirrorKey.CATEGORIES, CategoryList.dump_json(list(categories)))

    def _write(self, key: MirrorKey, payload: bytes) -> None:
        try:
            self._store.set(self._keys[key], payload.decode("utf-8"))
        except PersistenceError:
            raise
        except (StorageError, OSError) as e:
            raise PersistenceError(f"Failed to save {key.value}: {e}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_transactions(self) -> list[Transaction]:
        """
        Read the stored transactions; an absent key reads as empty.

        Raises:
            PersistenceError: If the key holds corrupt or unsupported data
        """
        raw = self._read(MirrorKey.TRANSACTIONS)
        if not raw:
            return []
        try:
            return TransactionList.validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt transactions mirror: {e.error_count()} errors")

    def load_budgets(self) -> list[Budget]:
        raw = self._read(MirrorKey.BUDGETS)
        if not raw:
            return []
        try:
            return BudgetList.validate_json(raw)
        except ValidationError as e:
            raise PersistenceError(f"Corrupt budgets mirror: {e.error_count()} errors")

    def load_categories(self) -> list[str]:
        raw = self._read(MirrorKey.CATEGORIES)
        if not raw:
            return []
        try:
            return [c for c in CategoryList.validate_json(raw) if c]
        except ValidationError as e:
            raise PersistenceError(f"Corrupt categories mirror: {e.error_count()} errors")

    def _read(self, key: MirrorKey) -> Optional[str]:
        try:
            return self._store.get(self._keys[key])
        except PersistenceError:
            raise
        except (StorageError, OSError) as e:
            raise PersistenceError(f"Failed to read {key.value}: {e}")

    # ------------------------------------------------------------------
    # External changes
    # ------------------------------------------------------------------

    def on_external_change(self, listener: Callable[[MirrorKey], None]) -> Callable[[], None]:
        """
        Call listener with the logical key whenever another context
        rewrites one of the three mirror keys.

        Returns:
            A callable that unregisters the listener
        """
        def relay(raw_key: str, _value: Optional[str]) -> None:
            logical = self.resolve_key(raw_key)
            if logical is not None:
                listener(logical)

        return self._store.subscribe(relay)
