"""
Tests for Budget Planner

Test strategy:
1. Unit tests for individual components (models, validators, evaluator)
2. Integration tests for flows (planner session over in-memory stores)
3. No real API calls in tests (fake worksheets for Google Sheets)
"""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from budget_planner.models.records import (
    Budget,
    BudgetList,
    BudgetScope,
    Collection,
    Identity,
    LocalId,
    RemoteId,
    Transaction,
    TransactionList,
    TransactionType,
    collection_of,
    month_of,
    record_from_document,
    record_payload,
)
from budget_planner.models.actions import (
    ActionEntryAdapter,
    BudgetEdited,
    TransactionAdded,
    TransactionDeleted,
    describe_entry,
    entry_collection,
    entry_record_id,
)
from budget_planner.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from budget_planner.models.forms import ValidationIssue, ValidationResult
from tests.factories import make_budget, make_transaction


class TestRecordIds:
    """Tests for the two identifier kinds."""

    def test_minted_local_ids_are_unique(self):
        assert LocalId.mint() != LocalId.mint()

    def test_local_and_remote_ids_never_compare_equal(self):
        assert LocalId(value="abc") != RemoteId(value="abc")

    def test_is_remote(self):
        assert RemoteId(value="doc-1").is_remote is True
        assert LocalId(value="tok").is_remote is False

    def test_id_serializes_as_tagged_object(self):
        tx = make_transaction(record_id=LocalId(value="tok1"))
        dumped = tx.model_dump(mode="json")
        assert dumped["id"] == {"kind": "local", "value": "tok1"}

    def test_tagged_id_round_trips_through_json_list(self):
        tx = make_transaction()
        restored = TransactionList.validate_json(TransactionList.dump_json([tx]))
        assert restored[0].id == tx.id
        assert isinstance(restored[0].id, LocalId)


class TestTransactionModel:
    """Tests for the Transaction model."""

    def test_transaction_creation(self):
        tx = make_transaction(amount="250.50", note="Groceries")
        assert tx.amount == Decimal("250.50")
        assert tx.currency == "INR"
        assert tx.month == "2024-03"
        assert tx.is_expense is True

    def test_transaction_rejects_zero_amount(self):
        with pytest.raises(ValidationError):
            make_transaction(amount="0")

    def test_transaction_rejects_negative_amount(self):
        with pytest.raises(ValidationError):
            make_transaction(amount="-5")

    def test_transaction_rejects_empty_category(self):
        with pytest.raises(ValidationError):
            make_transaction(category="   ")

    def test_currency_is_upper_cased(self):
        tx = Transaction(
            id=LocalId.mint(),
            type=TransactionType.INCOME,
            category="Salary",
            amount=Decimal("10"),
            currency="usd",
            date=date(2024, 1, 1),
        )
        assert tx.currency == "USD"

    def test_transaction_is_frozen(self):
        tx = make_transaction()
        with pytest.raises(ValidationError):
            tx.amount = Decimal("5")

    def test_month_of(self):
        assert month_of(date(2024, 12, 31)) == "2024-12"


class TestBudgetModel:
    """Tests for the Budget model."""

    def test_monthly_budget(self):
        budget = make_budget(limit="5000", month="2024-03")
        assert budget.target == "2024-03"
        assert budget.category is None

    def test_category_budget(self):
        budget = make_budget(scope=BudgetScope.CATEGORY, category="Food")
        assert budget.target == "Food"
        assert budget.month is None

    def test_monthly_budget_requires_month(self):
        with pytest.raises(ValueError, match="Monthly budget requires a month"):
            Budget(id=LocalId.mint(), scope=BudgetScope.MONTHLY, limit=Decimal("10"))

    def test_category_budget_requires_category(self):
        with pytest.raises(ValueError, match="Category budget requires a category"):
            Budget(id=LocalId.mint(), scope=BudgetScope.CATEGORY, limit=Decimal("10"))

    def test_monthly_budget_cannot_name_category(self):
        with pytest.raises(ValueError, match="cannot name a category"):
            Budget(
                id=LocalId.mint(),
                scope=BudgetScope.MONTHLY,
                month="2024-03",
                category="Food",
                limit=Decimal("10"),
            )

    def test_limit_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_budget(limit="0")

    def test_month_format_enforced(self):
        with pytest.raises(ValidationError):
            make_budget(month="2024-13")


class TestRemoteDocuments:
    """Tests for conversion to and from remote documents."""

    def test_payload_excludes_id(self):
        tx = make_transaction()
        payload = record_payload(tx)
        assert "id" not in payload
        assert payload["amount"] == "100"
        assert payload["date"] == "2024-03-10"

    def test_document_key_becomes_remote_id(self):
        tx = make_transaction()
        data = record_payload(tx)
        data["id"] = {"kind": "local", "value": "stale"}
        rebuilt = record_from_document(Collection.TRANSACTIONS, "doc-9", data)
        assert rebuilt.id == RemoteId(value="doc-9")
        assert rebuilt.amount == tx.amount

    def test_budget_document(self):
        budget = make_budget()
        rebuilt = record_from_document(Collection.BUDGETS, "b-1", record_payload(budget))
        assert isinstance(rebuilt, Budget)
        assert rebuilt.created_at == budget.created_at

    def test_collection_of(self):
        assert collection_of(make_transaction()) == Collection.TRANSACTIONS
        assert collection_of(make_budget()) == Collection.BUDGETS

    def test_budget_list_round_trip(self):
        budgets = [make_budget(), make_budget(scope=BudgetScope.CATEGORY, category="Rent")]
        assert BudgetList.validate_json(BudgetList.dump_json(budgets)) == budgets


class TestActionEntries:
    """Tests for action log entries."""

    def test_entry_discriminated_by_kind(self):
        tx = make_transaction()
        entry = ActionEntryAdapter.validate_python(
            {"kind": "transaction_deleted", "transaction": tx.model_dump()}
        )
        assert isinstance(entry, TransactionDeleted)
        assert entry.transaction == tx

    def test_entry_helpers(self):
        before = make_budget(limit="100")
        after = before.model_copy(update={"limit": Decimal("200")})
        entry = BudgetEdited(before=before, after=after)
        assert entry_collection(entry) == Collection.BUDGETS
        assert entry_record_id(entry) == after.id
        assert describe_entry(entry) == "edit budget"

    def test_entry_is_frozen(self):
        entry = TransactionAdded(transaction=make_transaction())
        with pytest.raises(ValidationError):
            entry.transaction = make_transaction()


class TestIdentity:
    def test_label_prefers_email(self):
        assert Identity(uid="u1", email="a@b.c", display_name="A").label == "a@b.c"
        assert Identity(uid="u1", display_name="A").label == "A"
        assert Identity(uid="u1").label == "u1"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            description="Transaction added",
        )
        assert event.event_type == AuditEventType.TRANSACTION_ADDED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_ADDED,
            description="Budget saved",
            details={"mode": "local", "limit": "1000"},
        )
        log_dict = event.to_log_dict()
        assert "timestamp" in log_dict
        assert log_dict["event_type"] == "budget_added"
        assert log_dict["details"]["limit"] == "1000"

    def test_builder_record_changed(self):
        event = AuditEventBuilder.record_changed(
            AuditEventType.TRANSACTION_DELETED,
            "transaction",
            "doc-1",
            mode="remote",
        )
        assert event.entity_id == "doc-1"
        assert event.details["mode"] == "remote"
        assert event.is_user_action is True

    def test_builder_remote_error_is_error_severity(self):
        event = AuditEventBuilder.remote_error("create", "transactions", "boom")
        assert event.event_type == AuditEventType.REMOTE_ERROR
        assert event.severity == AuditSeverity.ERROR

    def test_builder_budget_alert(self):
        exceeded = AuditEventBuilder.budget_alert(True, "monthly:2024-03:limit:100", "120", "100")
        near = AuditEventBuilder.budget_alert(False, "monthly:2024-03:limit:100", "95", "100")
        assert exceeded.event_type == AuditEventType.BUDGET_EXCEEDED
        assert near.event_type == AuditEventType.BUDGET_NEAR_LIMIT


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Please enter valid amount and date",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.is_valid is False
        assert result.error_count == 1
        assert result.first_error == "Please enter valid amount and date"

    def test_validation_result_warnings_only(self):
        result = ValidationResult(
            issues=[
                ValidationIssue(
                    field="note",
                    issue_type="long",
                    message="Note is long",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.first_error is None


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
