"""
Record Store

DESIGN DECISION: One in-memory cache is the only thing views read.
1. Two ordered collections (transactions, budgets) keyed by RecordId
2. The user-registered category set, append-only within a session
3. Every mutation emits a StoreChange naming the section and the source

Whoever persists the store (the persistence backend) and whoever
refreshes views (the planner session) both listen here; neither reaches
into the other.
"""

from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from budget_planner.models.records import (
    Budget,
    Collection,
    Record,
    RecordId,
    Transaction,
    collection_of,
)


class StoreSection(str, Enum):
    """Parts of the store a change can touch."""
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"
    CATEGORIES = "categories"

    @classmethod
    def of(cls, collection: Collection) -> "StoreSection":
        return cls(collection.value)


class ChangeSource(str, Enum):
    """
    Where a store mutation came from.

    USER: a local-mode write or a user action applied directly
    SNAPSHOT: a remote replace-all delivery
    MIRROR: a re-load from the local mirror (must not be written back)
    """
    USER = "user"
    SNAPSHOT = "snapshot"
    MIRROR = "mirror"


class StoreChange(BaseModel):
    """Notification emitted after every store mutation."""
    model_config = ConfigDict(frozen=True)

    section: StoreSection
    source: ChangeSource


StoreListener = Callable[[StoreChange], None]


class RecordStore:
    """
    Authoritative in-memory cache for the active session.

    Read accessors return copies of the internal lists; the records
    themselves are immutable.
    """

    def __init__(self):
        self._transactions: list[Transaction] = []
        self._budgets: list[Budget] = []
        self._categories: list[str] = []
        self._listeners: list[StoreListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def budgets(self) -> list[Budget]:
        return list(self._budgets)

    @property
    def categories(self) -> list[str]:
        """User-registered categories, in registration order."""
        return list(self._categories)

    def items(self, collection: Collection) -> list[Record]:
        return list(self._items(collection))

    def get(self, collection: Collection, record_id: RecordId) -> Optional[Record]:
        for item in self._items(collection):
            if item.id == record_id:
                return item
        return None

    def get_transaction(self, record_id: RecordId) -> Optional[Transaction]:
        return self.get(Collection.TRANSACTIONS, record_id)

    def get_budget(self, record_id: RecordId) -> Optional[Budget]:
        return self.get(Collection.BUDGETS, record_id)

    def _items(self, collection: Collection) -> list:
        if collection == Collection.TRANSACTIONS:
            return self._transactions
        return self._budgets

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def replace_all(
        self,
        collection: Collection,
        items: Iterable[Record],
        source: ChangeSource,
    ) -> None:
        """Exact replacement: the collection afterwards holds these items and nothing else."""
        new_items = list(items)
        for item in new_items:
            if collection_of(item) != collection:
                raise TypeError(
                    f"Cannot store {type(item).__name__} in {collection.value}"
                )
        if collection == Collection.TRANSACTIONS:
            self._transactions = new_items
        else:
            self._budgets = new_items
        self._emit(StoreSection.of(collection), source)

    def upsert_local(self, item: Record, source: ChangeSource = ChangeSource.USER) -> None:
        """Replace the record with the same id in place, or append it."""
        collection = collection_of(item)
        items = self._items(collection)
        for idx, existing in enumerate(items):
            if existing.id == item.id:
                items[idx] = item
                break
        else:
            items.append(item)
        self._emit(StoreSection.of(collection), source)

    def remove_local(
        self,
        collection: Collection,
        record_id: RecordId,
        source: ChangeSource = ChangeSource.USER,
    ) -> Optional[Record]:
        """
        Remove a record by id.

        Returns:
            The removed record, or None (and no change event) if absent
        """
        items = self._items(collection)
        for idx, existing in enumerate(items):
            if existing.id == record_id:
                del items[idx]
                self._emit(StoreSection.of(collection), source)
                return existing
        return None

    def replace_categories(self, categories: Sequence[str], source: ChangeSource) -> None:
        cleaned: list[str] = []
        for name in categories:
            name = name.strip()
            if name and name not in cleaned:
                cleaned.append(name)
        self._categories = cleaned
        self._emit(StoreSection.CATEGORIES, source)

    def add_category(self, name: str) -> bool:
        """
        Register a user category.

        Returns:
            True if the category was new
        """
        name = name.strip()
        if not name or name in self._categories:
            return False
        self._categories.append(name)
        self._emit(StoreSection.CATEGORIES, ChangeSource.USER)
        return True

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, section: StoreSection, source: ChangeSource) -> None:
        change = StoreChange(section=section, source=source)
        for listener in list(self._listeners):
            listener(change)
