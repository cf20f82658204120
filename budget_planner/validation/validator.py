"""
Form Validation

DESIGN DECISION: Drafts are validated before anything is built from them.

TRANSACTION DRAFTS:
- Type must be income or expense
- A category is required; "Other" requires a custom name, which becomes
  the category and is reported back so it can be registered
- The amount is parsed after stripping separators and currency symbols
  and must be a finite number greater than zero
- A date is required
- The currency falls back to the base currency
- Category names and currency codes must fit the record length limits

BUDGET DRAFTS:
- Scope must be monthly or category
- Monthly budgets need a month (a date inside it, or YYYY-MM)
- Category budgets need a category
- The limit is parsed like an amount and must be greater than zero

IMPORTANT: Validation never fixes input beyond the normalization above.
Invalid drafts produce issues and no values.
"""

import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from budget_planner.config import get_settings
from budget_planner.models.forms import (
    BudgetDraft,
    RawAmount,
    RawDate,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
)
from budget_planner.models.records import (
    CATEGORY_MAX_LENGTH,
    CURRENCY_MAX_LENGTH,
    MONTH_PATTERN,
    BudgetScope,
    TransactionType,
    month_of,
)


OTHER_CATEGORY = "Other"

_AMOUNT_NOISE = re.compile(r"[,\s₹$€]")
_MONTH_RE = re.compile(MONTH_PATTERN)


def parse_amount(raw: RawAmount) -> Optional[Decimal]:
    """
    Parse a user-entered amount.

    Returns:
        The amount, or None if it is missing, not a number, or not finite
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float)):
        value = Decimal(str(raw))
    else:
        cleaned = _AMOUNT_NOISE.sub("", raw)
        if not cleaned:
            return None
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return None
    if not value.is_finite():
        return None
    return value


def parse_date(raw: RawDate) -> Optional[date]:
    if raw is None:
        return None
    if isinstance(raw, date):
        return raw
    raw = raw.strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def parse_month(raw: RawDate) -> Optional[str]:
    """Month bucket from a date inside the month or a YYYY-MM string."""
    if raw is None:
        return None
    if isinstance(raw, date):
        return month_of(raw)
    month = raw.strip()[:7]
    if not _MONTH_RE.match(month):
        return None
    return month


def _category_too_long(field: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="invalid_value",
        message=f"Category names must be at most {CATEGORY_MAX_LENGTH} characters",
    )


class RecordValidator:
    """
    Validates transaction and budget drafts.

    Args:
        base_currency: Currency used when a draft does not name one
    """

    def __init__(self, base_currency: Optional[str] = None):
        self._base_currency = (base_currency or get_settings().app.base_currency).upper()

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def validate_transaction(self, draft: TransactionDraft) -> ValidationResult:
        """
        Validate a transaction draft.

        On success values holds: type, category, amount, currency, date, note.
        """
        issues = []
        new_category = None

        tx_type = draft.type.strip().lower()
        if tx_type not in (t.value for t in TransactionType):
            issues.append(ValidationIssue(
                field="type",
                issue_type="invalid_value",
                message="Type must be income or expense",
            ))

        category = draft.category.strip()
        if not category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Please choose a category",
            ))
        elif category == OTHER_CATEGORY:
            custom = draft.custom_category.strip()
            if not custom:
                issues.append(ValidationIssue(
                    field="custom_category",
                    issue_type="missing",
                    message="Please enter a custom category name",
                ))
            else:
                category = custom
                new_category = custom

        if len(category) > CATEGORY_MAX_LENGTH:
            issues.append(_category_too_long("category"))

        amount = parse_amount(draft.amount)
        tx_date = parse_date(draft.date)
        if amount is None or amount <= 0 or tx_date is None:
            issues.append(ValidationIssue(
                field="amount" if tx_date is not None else "date",
                issue_type="invalid_value",
                message="Please enter valid amount and date",
            ))

        currency = draft.currency.strip().upper() or self._base_currency
        if len(currency) > CURRENCY_MAX_LENGTH:
            issues.append(ValidationIssue(
                field="currency",
                issue_type="invalid_value",
                message=f"Currency code must be at most {CURRENCY_MAX_LENGTH} characters",
            ))

        if any(issue.severity == "error" for issue in issues):
            return ValidationResult(issues=issues)

        return ValidationResult(
            issues=issues,
            new_category=new_category,
            values={
                "type": TransactionType(tx_type),
                "category": category,
                "amount": amount,
                "currency": currency,
                "date": tx_date,
                "note": draft.note,
            },
        )

    def validate_budget(self, draft: BudgetDraft) -> ValidationResult:
        """
        Validate a budget draft.

        On success values holds: scope, month, category, limit.
        """
        issues = []

        scope = draft.scope.strip().lower()
        month = None
        category = None

        if scope == BudgetScope.MONTHLY.value:
            month = parse_month(draft.month)
            if month is None:
                issues.append(ValidationIssue(
                    field="month",
                    issue_type="missing",
                    message="Pick a date within the month for the budget",
                ))
        elif scope == BudgetScope.CATEGORY.value:
            category = draft.category.strip()
            if not category:
                issues.append(ValidationIssue(
                    field="category",
                    issue_type="missing",
                    message="Pick a category for the budget",
                ))
            elif len(category) > CATEGORY_MAX_LENGTH:
                issues.append(_category_too_long("category"))
        else:
            issues.append(ValidationIssue(
                field="scope",
                issue_type="invalid_value",
                message="Budget scope must be monthly or category",
            ))

        limit = parse_amount(draft.limit)
        if limit is None or limit <= 0:
            issues.append(ValidationIssue(
                field="limit",
                issue_type="invalid_value",
                message="Enter a valid numeric budget limit (> 0)",
            ))

        if any(issue.severity == "error" for issue in issues):
            return ValidationResult(issues=issues)

        return ValidationResult(
            issues=issues,
            values={
                "scope": BudgetScope(scope),
                "month": month,
                "category": category,
                "limit": limit,
            },
        )
