"""
Dashboard Reports

Deterministic aggregations over the transactions in the record store:
filtered listings, totals, the per-category expense breakdown and the
monthly income/expense series. Also the category choice lists a form
or filter should offer.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from budget_planner.models.records import MONTH_PATTERN, Transaction, TransactionType


class TransactionFilter(BaseModel):
    """Dashboard filter; empty fields do not filter."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    month: Optional[str] = Field(default=None, pattern=MONTH_PATTERN)
    category: Optional[str] = None
    search: Optional[str] = None


class Summary(BaseModel):
    """Totals over a set of transactions."""
    model_config = ConfigDict(frozen=True)

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")
    savings_rate: int = Field(
        default=0,
        description="Balance as a rounded percentage of income; 0 without income"
    )
    count: int = 0


class MonthlyPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: str
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


def filter_transactions(
    transactions: Iterable[Transaction],
    criteria: Optional[TransactionFilter] = None,
) -> list[Transaction]:
    """Matching transactions, newest date first."""
    criteria = criteria or TransactionFilter()
    query = (criteria.search or "").lower()

    rows = []
    for tx in transactions:
        if criteria.month and tx.month != criteria.month:
            continue
        if criteria.category and tx.category != criteria.category:
            continue
        if query and query not in tx.note.lower() and query not in str(tx.amount):
            continue
        rows.append(tx)

    rows.sort(key=lambda tx: tx.date, reverse=True)
    return rows


def summarize(rows: Iterable[Transaction]) -> Summary:
    total_income = Decimal("0")
    total_expense = Decimal("0")
    count = 0
    for tx in rows:
        count += 1
        if tx.type == TransactionType.INCOME:
            total_income += tx.amount
        else:
            total_expense += tx.amount

    balance = total_income - total_expense
    savings_rate = 0
    if total_income > 0:
        rate = balance / total_income * 100
        savings_rate = int(rate.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    return Summary(
        total_income=total_income,
        total_expense=total_expense,
        balance=balance,
        savings_rate=savings_rate,
        count=count,
    )


def expense_by_category(rows: Iterable[Transaction]) -> dict[str, Decimal]:
    """Expense totals per category, in first-seen order."""
    totals: dict[str, Decimal] = {}
    for tx in rows:
        if not tx.is_expense:
            continue
        totals[tx.category] = totals.get(tx.category, Decimal("0")) + tx.amount
    return totals


def recent_months(count: int = 12, today: Optional[date] = None) -> list[str]:
    """The last `count` months ending with the current one, oldest first."""
    today = today or date.today()
    months = []
    year, month = today.year, today.month
    for _ in range(count):
        months.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    months.reverse()
    return months


def monthly_series(
    transactions: Iterable[Transaction],
    months: int = 6,
    today: Optional[date] = None,
) -> list[MonthlyPoint]:
    """Income and expense totals for the last `months` months, oldest first."""
    labels = recent_months(months, today)
    income = {label: Decimal("0") for label in labels}
    expense = {label: Decimal("0") for label in labels}
    for tx in transactions:
        if tx.month not in income:
            continue
        if tx.type == TransactionType.INCOME:
            income[tx.month] += tx.amount
        else:
            expense[tx.month] += tx.amount
    return [
        MonthlyPoint(month=label, income=income[label], expense=expense[label])
        for label in labels
    ]


# =============================================================================
# CATEGORY CHOICES
# =============================================================================

INCOME_CATEGORIES = ["Salary", "Other"]


def _merge(*groups: Iterable[str]) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for name in group:
            if name and name not in merged:
                merged.append(name)
    return merged


def income_categories() -> list[str]:
    return list(INCOME_CATEGORIES)


def expense_categories(defaults: Sequence[str], dynamic: Sequence[str]) -> list[str]:
    """Defaults without Salary, then user categories; Other is always offered."""
    choices = _merge([c for c in defaults if c != "Salary"], dynamic)
    if "Other" not in choices:
        choices.append("Other")
    return choices


def transaction_categories(
    tx_type: TransactionType,
    defaults: Sequence[str],
    dynamic: Sequence[str],
) -> list[str]:
    if tx_type == TransactionType.INCOME:
        return income_categories()
    return expense_categories(defaults, dynamic)


def budget_categories(defaults: Sequence[str], dynamic: Sequence[str]) -> list[str]:
    return _merge(defaults, dynamic)


def filter_categories(
    defaults: Sequence[str],
    dynamic: Sequence[str],
    transactions: Iterable[Transaction],
) -> list[str]:
    """Every category a filter could match, including ones only seen on records."""
    choices = _merge(defaults, dynamic, (tx.category for tx in transactions))
    if "Other" not in choices:
        choices.append("Other")
    return choices
