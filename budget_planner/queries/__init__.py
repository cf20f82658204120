"""Budget evaluation, reports and export package."""

from budget_planner.queries.evaluator import (
    BudgetAlerts,
    BudgetStatus,
    alert_key,
    evaluate_budgets,
    exceeded_message,
    near_limit_message,
    spent_against,
)
from budget_planner.queries.export import (
    EXPORT_COLUMNS,
    CsvExport,
    build_export,
    export_filename,
    transactions_to_csv,
)
from budget_planner.queries.formatting import format_money, plain_decimal, truncate_note
from budget_planner.queries.reports import (
    MonthlyPoint,
    Summary,
    TransactionFilter,
    budget_categories,
    expense_by_category,
    expense_categories,
    filter_categories,
    filter_transactions,
    income_categories,
    monthly_series,
    recent_months,
    summarize,
    transaction_categories,
)

__all__ = [
    # Evaluation
    "BudgetAlerts",
    "BudgetStatus",
    "alert_key",
    "evaluate_budgets",
    "exceeded_message",
    "near_limit_message",
    "spent_against",
    # Export
    "EXPORT_COLUMNS",
    "CsvExport",
    "build_export",
    "export_filename",
    "transactions_to_csv",
    # Formatting
    "format_money",
    "plain_decimal",
    "truncate_note",
    # Reports
    "MonthlyPoint",
    "Summary",
    "TransactionFilter",
    "budget_categories",
    "expense_by_category",
    "expense_categories",
    "filter_categories",
    "filter_transactions",
    "income_categories",
    "monthly_series",
    "recent_months",
    "summarize",
    "transaction_categories",
]
