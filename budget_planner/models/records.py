"""
Core Data Models for Budget Planner

These models define the strict schemas for every record the planner keeps:
transactions, budgets and the identifiers that tie them to a backend.

DESIGN DECISION: Records are frozen Pydantic v2 models.
An edit never mutates a record in place; it builds a new instance.
Snapshots captured for undo/redo therefore cannot drift when the live
record changes later.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
CATEGORY_MAX_LENGTH = 100
CURRENCY_MAX_LENGTH = 10


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def month_of(day: date) -> str:
    """Month bucket (YYYY-MM) a date falls in."""
    return day.isoformat()[:7]


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class BudgetScope(str, Enum):
    """
    What a budget limit applies to.

    The two scopes are mutually exclusive: a monthly budget caps all
    expenses in one calendar month, a category budget caps one category.
    """
    MONTHLY = "monthly"
    CATEGORY = "category"


class Collection(str, Enum):
    """The two record collections kept per identity."""
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"


# =============================================================================
# IDENTIFIERS
# =============================================================================

class LocalId(BaseModel):
    """
    Identifier minted on this device.

    A record carrying a LocalId has never been written to the remote
    store; creating it remotely strips the id and lets the backend
    assign a RemoteId.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    value: str = Field(..., min_length=1)

    @classmethod
    def mint(cls) -> "LocalId":
        return cls(value=uuid4().hex[:12])

    @property
    def is_remote(self) -> bool:
        return False

    def __str__(self) -> str:
        return self.value


class RemoteId(BaseModel):
    """Identifier assigned by the remote document store."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    value: str = Field(..., min_length=1)

    @property
    def is_remote(self) -> bool:
        return True

    def __str__(self) -> str:
        return self.value


RecordId = Annotated[Union[LocalId, RemoteId], Field(discriminator="kind")]


# =============================================================================
# RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    A single income or expense entry.

    Amounts are always positive; the type says which way the money moved.
    Timestamps are owned by the planner and never come from user input.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: RecordId
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        max_length=CATEGORY_MAX_LENGTH,
        description="Default, registered or free-text category"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Positive amount in the transaction currency"
    )
    currency: str = Field(
        default="INR",
        min_length=1,
        max_length=CURRENCY_MAX_LENGTH,
        description="Currency code"
    )
    date: date
    note: str = Field(
        default="",
        description="Free text; stored in full"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()

    @property
    def month(self) -> str:
        return month_of(self.date)

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE


class Budget(BaseModel):
    """
    A spending ceiling.

    month is set only for monthly budgets, category only for
    category budgets.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: RecordId
    scope: BudgetScope
    month: Optional[str] = Field(
        default=None,
        pattern=MONTH_PATTERN,
        description="YYYY-MM, monthly scope only"
    )
    category: Optional[str] = Field(
        default=None,
        min_length=1,
        max_length=CATEGORY_MAX_LENGTH,
        description="Category name, category scope only"
    )
    limit: Decimal = Field(
        ...,
        gt=0,
        allow_inf_nan=False,
        description="Spending ceiling"
    )
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_scope(self) -> 'Budget':
        """A budget names exactly the target its scope requires."""
        if self.scope == BudgetScope.MONTHLY:
            if not self.month:
                raise ValueError("Monthly budget requires a month")
            if self.category is not None:
                raise ValueError("Monthly budget cannot name a category")
        else:
            if not self.category:
                raise ValueError("Category budget requires a category")
            if self.month is not None:
                raise ValueError("Category budget cannot name a month")
        return self

    @property
    def target(self) -> str:
        """The month or category this budget applies to."""
        return self.month if self.scope == BudgetScope.MONTHLY else self.category


Record = Union[Transaction, Budget]


def collection_of(record: Record) -> Collection:
    if isinstance(record, Transaction):
        return Collection.TRANSACTIONS
    if isinstance(record, Budget):
        return Collection.BUDGETS
    raise TypeError(f"Not a planner record: {type(record).__name__}")


def record_payload(record: Record) -> dict:
    """JSON-ready document body for the remote store (id excluded)."""
    return record.model_dump(mode="json", exclude={"id"})


def record_from_document(
    collection: Collection,
    doc_id: str,
    data: dict,
) -> Record:
    """Rebuild a record from a remote document; the document key wins over any stored id."""
    fields = {key: value for key, value in data.items() if key != "id"}
    fields["id"] = RemoteId(value=doc_id)
    if collection == Collection.TRANSACTIONS:
        return Transaction.model_validate(fields)
    return Budget.model_validate(fields)


TransactionList = TypeAdapter(list[Transaction])
BudgetList = TypeAdapter(list[Budget])
CategoryList = TypeAdapter(list[str])


# =============================================================================
# IDENTITY
# =============================================================================

class Identity(BaseModel):
    """The signed-in user, if any. Selects the remote store partition."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    uid: str = Field(..., min_length=1)
    email: Optional[str] = None
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.email or self.display_name or self.uid
