"""Tests for dashboard reports, category choices and CSV export."""

from datetime import date
from decimal import Decimal

import pytest

from budget_planner.config import DEFAULT_CATEGORIES
from budget_planner.models.records import LocalId, TransactionType
from budget_planner.queries import (
    TransactionFilter,
    budget_categories,
    build_export,
    expense_by_category,
    expense_categories,
    export_filename,
    filter_categories,
    filter_transactions,
    format_money,
    income_categories,
    monthly_series,
    recent_months,
    summarize,
    transactions_to_csv,
    truncate_note,
)
from tests.factories import make_transaction


@pytest.fixture
def ledger():
    return [
        make_transaction(amount="50000", category="Salary", tx_type=TransactionType.INCOME,
                         day=date(2024, 3, 1), note="March salary"),
        make_transaction(amount="1200", category="Food", day=date(2024, 3, 5), note="Weekly groceries"),
        make_transaction(amount="15000", category="Rent", day=date(2024, 3, 2)),
        make_transaction(amount="800", category="Food", day=date(2024, 2, 20), note="Dinner out"),
    ]


class TestFilters:

    def test_month_filter_and_ordering(self, ledger):
        rows = filter_transactions(ledger, TransactionFilter(month="2024-03"))
        assert [r.date for r in rows] == [date(2024, 3, 5), date(2024, 3, 2), date(2024, 3, 1)]

    def test_category_filter(self, ledger):
        rows = filter_transactions(ledger, TransactionFilter(category="Food"))
        assert {r.amount for r in rows} == {Decimal("1200"), Decimal("800")}

    def test_search_matches_note_case_insensitively(self, ledger):
        rows = filter_transactions(ledger, TransactionFilter(search="GROCERIES"))
        assert [r.amount for r in rows] == [Decimal("1200")]

    def test_search_matches_amount_text(self, ledger):
        rows = filter_transactions(ledger, TransactionFilter(search="150"))
        assert [r.category for r in rows] == ["Rent"]

    def test_no_filter_returns_everything(self, ledger):
        assert len(filter_transactions(ledger)) == 4


class TestAggregates:

    def test_summary(self, ledger):
        summary = summarize(filter_transactions(ledger, TransactionFilter(month="2024-03")))
        assert summary.total_income == Decimal("50000")
        assert summary.total_expense == Decimal("16200")
        assert summary.balance == Decimal("33800")
        assert summary.savings_rate == 68

    def test_summary_without_income(self):
        summary = summarize([make_transaction(amount="10")])
        assert summary.savings_rate == 0
        assert summary.balance == Decimal("-10")

    def test_expense_by_category(self, ledger):
        assert expense_by_category(ledger) == {
            "Food": Decimal("2000"),
            "Rent": Decimal("15000"),
        }

    def test_recent_months_crosses_year(self):
        assert recent_months(3, today=date(2024, 2, 10)) == ["2023-12", "2024-01", "2024-02"]

    def test_monthly_series(self, ledger):
        series = monthly_series(ledger, months=2, today=date(2024, 3, 31))
        assert [p.month for p in series] == ["2024-02", "2024-03"]
        assert series[0].expense == Decimal("800")
        assert series[1].income == Decimal("50000")
        assert series[1].expense == Decimal("16200")


class TestCategoryChoices:

    def test_income_choices(self):
        assert income_categories() == ["Salary", "Other"]

    def test_expense_choices_drop_salary_and_keep_other(self):
        choices = expense_categories(DEFAULT_CATEGORIES, ["Pets"])
        assert "Salary" not in choices
        assert choices[-2:] == ["Other", "Pets"]

    def test_expense_choices_add_other_when_missing(self):
        assert expense_categories(["Food"], []) == ["Food", "Other"]

    def test_budget_choices(self):
        assert budget_categories(["Food", "Rent"], ["Pets", "Food"]) == ["Food", "Rent", "Pets"]

    def test_filter_choices_include_categories_in_use(self):
        choices = filter_categories(["Food"], ["Pets"], [make_transaction(category="Gym")])
        assert choices == ["Food", "Pets", "Gym", "Other"]


class TestExport:

    def test_csv_layout_and_quoting(self):
        tx = make_transaction(
            amount="99.50",
            record_id=LocalId(value="tok1"),
            note='Said "hi", left',
        )
        csv = transactions_to_csv([tx])
        lines = csv.split("\n")
        assert lines[0] == "id,type,category,amount,currency,date,note"
        assert lines[1] == 'tok1,expense,Food,99.5,INR,2024-03-10,"Said ""hi"", left"'

    def test_amounts_are_plain_numbers(self):
        rows = transactions_to_csv([
            make_transaction(amount="1e2", record_id=LocalId(value="a")),
            make_transaction(amount="12.50", record_id=LocalId(value="b")),
        ]).split("\n")[1:]
        assert [row.split(",")[3] for row in rows] == ["100", "12.5"]

    def test_one_line_per_transaction(self, ledger):
        export = build_export(ledger, today=date(2024, 3, 31))
        assert export.filename == "budget_export_2024-03-31.csv"
        assert len(export.content.split("\n")) == len(ledger) + 1
        assert export.row_count == 4

    def test_empty_export(self):
        assert build_export([]) is None

    def test_export_filename(self):
        assert export_filename(date(2025, 1, 2)) == "budget_export_2025-01-02.csv"


class TestFormatting:

    def test_format_money(self):
        assert format_money(Decimal("1234")) == "₹1,234.00"
        assert format_money(Decimal("5"), "usd") == "$5.00"
        assert format_money(Decimal("5"), "CHF") == "CHF 5.00"

    def test_truncate_note(self):
        assert truncate_note("x" * 80) == "x" * 60
        assert truncate_note("short") == "short"
