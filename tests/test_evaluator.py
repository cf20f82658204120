"""Tests for budget evaluation and the alert policy."""

from datetime import date
from decimal import Decimal

import pytest

from budget_planner.models.records import BudgetScope, TransactionType
from budget_planner.queries import BudgetAlerts, alert_key, evaluate_budgets, spent_against
from budget_planner.services.notifications import Severity
from tests.factories import RecordingNotifier, make_budget, make_transaction


@pytest.fixture
def march_expenses():
    return [
        make_transaction(amount="400", category="Food", day=date(2024, 3, 1)),
        make_transaction(amount="300", category="Rent", day=date(2024, 3, 15)),
        make_transaction(amount="999", category="Food", day=date(2024, 4, 2)),
        make_transaction(amount="5000", category="Salary", tx_type=TransactionType.INCOME,
                         day=date(2024, 3, 1)),
    ]


class TestSpend:

    def test_monthly_spend_counts_expenses_in_month_only(self, march_expenses):
        budget = make_budget(limit="1000", month="2024-03")
        assert spent_against(budget, march_expenses) == Decimal("700")

    def test_category_spend_spans_all_months(self, march_expenses):
        budget = make_budget(scope=BudgetScope.CATEGORY, category="Food")
        assert spent_against(budget, march_expenses) == Decimal("1399")

    def test_category_spend_with_month_filter(self, march_expenses):
        budget = make_budget(scope=BudgetScope.CATEGORY, category="Food")
        assert spent_against(budget, march_expenses, month_filter="2024-04") == Decimal("999")

    def test_month_filter_does_not_move_monthly_budgets(self, march_expenses):
        budget = make_budget(limit="1000", month="2024-03")
        assert spent_against(budget, march_expenses, month_filter="2024-04") == Decimal("700")


class TestEvaluate:

    def test_spent_equal_to_limit_is_exceeded(self):
        budget = make_budget(limit="500")
        [status] = evaluate_budgets([make_transaction(amount="500")], [budget])
        assert status.exceeded is True
        assert status.near_limit is False
        assert status.remaining == Decimal("0")

    def test_near_limit(self):
        budget = make_budget(limit="1000")
        [status] = evaluate_budgets([make_transaction(amount="900")], [budget])
        assert status.exceeded is False
        assert status.near_limit is True

    def test_under_ratio(self):
        [status] = evaluate_budgets([make_transaction(amount="899")], [make_budget(limit="1000")])
        assert not status.exceeded and not status.near_limit

    def test_custom_ratio(self):
        [status] = evaluate_budgets(
            [make_transaction(amount="500")],
            [make_budget(limit="1000")],
            near_limit_ratio=0.5,
        )
        assert status.near_limit is True

    def test_alert_keys(self):
        assert alert_key(make_budget(limit="5000.00", month="2024-03")) == "monthly:2024-03:limit:5000"
        assert alert_key(
            make_budget(limit="12.50", scope=BudgetScope.CATEGORY, category="Food")
        ) == "category:Food:limit:12.5"


class TestBudgetAlerts:

    @pytest.fixture
    def notifier(self):
        return RecordingNotifier()

    @pytest.fixture
    def alerts(self, notifier):
        return BudgetAlerts(notifier)

    def test_exceeded_alert_shown_once_until_dismissed(self, alerts, notifier):
        statuses = evaluate_budgets([make_transaction(amount="1200")], [make_budget(limit="1000")])
        key = statuses[0].alert_key

        assert alerts.process(statuses) == [key]
        assert alerts.process(statuses) == []
        assert len(notifier.persistent) == 1
        assert notifier.persistent[0] == (
            "Monthly budget exceeded for 2024-03: spent ₹1,200.00 (limit ₹1,000.00).",
            key,
        )

        alerts.dismiss(key)
        assert alerts.process(statuses) == [key]
        assert len(notifier.persistent) == 2

    def test_category_exceeded_message(self, alerts, notifier):
        budget = make_budget(limit="100", scope=BudgetScope.CATEGORY, category="Food")
        alerts.process(evaluate_budgets([make_transaction(amount="150")], [budget]))
        assert notifier.persistent[0][0] == (
            'Budget exceeded for category "Food": spent ₹150.00 (limit ₹100.00).'
        )

    def test_near_limit_warns_every_run(self, alerts, notifier):
        statuses = evaluate_budgets([make_transaction(amount="950")], [make_budget(limit="1000")])
        alerts.process(statuses)
        alerts.process(statuses)

        assert notifier.notices == [
            ("Monthly spend near budget (₹950.00 / ₹1,000.00)", Severity.WARNING),
        ] * 2
        assert notifier.persistent == []

    def test_changed_limit_is_a_new_alert(self, alerts):
        spend = [make_transaction(amount="1200")]
        alerts.process(evaluate_budgets(spend, [make_budget(limit="1000")]))
        raised = alerts.process(evaluate_budgets(spend, [make_budget(limit="1100")]))
        assert raised == ["monthly:2024-03:limit:1100"]
