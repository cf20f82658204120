"""
Data Models Package

This package contains all Pydantic models used in the Budget Planner.
Every record, action log entry and form draft conforms to these schemas.
"""

from budget_planner.models.records import (
    Budget,
    BudgetList,
    BudgetScope,
    CategoryList,
    Collection,
    Identity,
    LocalId,
    Record,
    RecordId,
    RemoteId,
    Transaction,
    TransactionList,
    TransactionType,
    collection_of,
    month_of,
    record_from_document,
    record_payload,
    utc_now,
)
from budget_planner.models.actions import (
    ActionEntry,
    ActionEntryAdapter,
    BudgetAdded,
    BudgetDeleted,
    BudgetEdited,
    TransactionAdded,
    TransactionDeleted,
    TransactionEdited,
    describe_entry,
    entry_collection,
    entry_record_id,
)
from budget_planner.models.forms import (
    BudgetDraft,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
)
from budget_planner.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "Budget",
    "BudgetList",
    "BudgetScope",
    "CategoryList",
    "Collection",
    "Identity",
    "LocalId",
    "Record",
    "RecordId",
    "RemoteId",
    "Transaction",
    "TransactionList",
    "TransactionType",
    "collection_of",
    "month_of",
    "record_from_document",
    "record_payload",
    "utc_now",
    # Action log
    "ActionEntry",
    "ActionEntryAdapter",
    "BudgetAdded",
    "BudgetDeleted",
    "BudgetEdited",
    "TransactionAdded",
    "TransactionDeleted",
    "TransactionEdited",
    "describe_entry",
    "entry_collection",
    "entry_record_id",
    # Forms
    "BudgetDraft",
    "TransactionDraft",
    "ValidationIssue",
    "ValidationResult",
    # Audit
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
