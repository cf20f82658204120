"""
Action Log Entries

Each undoable user action is one of six closed variants, discriminated
on ``kind``. Every variant carries full value snapshots of the records it
touched, never references to live store entries.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from budget_planner.models.records import Budget, Collection, RecordId, Transaction


class _Entry(BaseModel):
    model_config = ConfigDict(frozen=True)


class TransactionAdded(_Entry):
    """User added a transaction."""
    kind: Literal["transaction_added"] = "transaction_added"
    transaction: Transaction


class TransactionDeleted(_Entry):
    """User deleted a transaction; holds the record as it was before deletion."""
    kind: Literal["transaction_deleted"] = "transaction_deleted"
    transaction: Transaction


class TransactionEdited(_Entry):
    """User edited a transaction."""
    kind: Literal["transaction_edited"] = "transaction_edited"
    before: Transaction
    after: Transaction


class BudgetAdded(_Entry):
    kind: Literal["budget_added"] = "budget_added"
    budget: Budget


class BudgetDeleted(_Entry):
    kind: Literal["budget_deleted"] = "budget_deleted"
    budget: Budget


class BudgetEdited(_Entry):
    kind: Literal["budget_edited"] = "budget_edited"
    before: Budget
    after: Budget


ActionEntry = Annotated[
    Union[
        TransactionAdded,
        TransactionDeleted,
        TransactionEdited,
        BudgetAdded,
        BudgetDeleted,
        BudgetEdited,
    ],
    Field(discriminator="kind"),
]

ActionEntryAdapter = TypeAdapter(ActionEntry)


def entry_collection(entry: ActionEntry) -> Collection:
    if isinstance(entry, (TransactionAdded, TransactionDeleted, TransactionEdited)):
        return Collection.TRANSACTIONS
    return Collection.BUDGETS


def entry_record_id(entry: ActionEntry) -> RecordId:
    """Id of the record an entry is about (the "after" side for edits)."""
    if isinstance(entry, (TransactionAdded, TransactionDeleted)):
        return entry.transaction.id
    if isinstance(entry, (BudgetAdded, BudgetDeleted)):
        return entry.budget.id
    return entry.after.id


def describe_entry(entry: ActionEntry) -> str:
    """Short human label, used in notices and logs."""
    labels = {
        "transaction_added": "add transaction",
        "transaction_deleted": "delete transaction",
        "transaction_edited": "edit transaction",
        "budget_added": "add budget",
        "budget_deleted": "delete budget",
        "budget_edited": "edit budget",
    }
    return labels[entry.kind]
