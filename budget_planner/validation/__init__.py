"""Form validation package."""

from budget_planner.validation.validator import (
    OTHER_CATEGORY,
    RecordValidator,
    parse_amount,
    parse_date,
    parse_month,
)

__all__ = [
    "OTHER_CATEGORY",
    "RecordValidator",
    "parse_amount",
    "parse_date",
    "parse_month",
]
