"""
Input Drafts and Validation Results

Drafts carry raw, unvalidated values exactly as a form collected them.
They only become records after RecordValidator accepts them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


RawAmount = Union[str, int, float, Decimal, None]
RawDate = Union[str, date, None]


class TransactionDraft(BaseModel):
    """Raw transaction form values."""

    type: str = "expense"
    category: str = ""
    custom_category: str = Field(
        default="",
        description="Free-text category typed when category is 'Other'"
    )
    amount: RawAmount = None
    currency: str = ""
    date: RawDate = None
    note: str = ""


class BudgetDraft(BaseModel):
    """
    Raw budget form values.

    month accepts a full date inside the month (YYYY-MM-DD) or YYYY-MM.
    """

    scope: str = "monthly"
    month: RawDate = None
    category: str = ""
    limit: RawAmount = None


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """
    Outcome of validating one draft.

    values holds the cleaned field values when the draft is valid.
    """

    validated_at: datetime = Field(default_factory=datetime.now)
    issues: list[ValidationIssue] = Field(default_factory=list)
    values: dict[str, Any] = Field(default_factory=dict)
    new_category: Optional[str] = Field(
        default=None,
        description="Custom category the draft introduced, to be registered"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def first_error(self) -> Optional[str]:
        for issue in self.issues:
            if issue.severity == "error":
                return issue.message
        return None
