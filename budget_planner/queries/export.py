"""
CSV Export

One header line, then one line per transaction in store order. Only the
note column is quoted (internal quotes doubled); the other columns never
contain commas. Amounts are written as plain numbers (100, 12.5).
Lines are joined with a bare newline.
"""

from datetime import date
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict

from budget_planner.models.records import Transaction
from budget_planner.queries.formatting import plain_decimal


EXPORT_COLUMNS = ["id", "type", "category", "amount", "currency", "date", "note"]


class CsvExport(BaseModel):
    """A rendered export ready to be saved or downloaded."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content: str
    row_count: int


def quote_note(note: str) -> str:
    return '"' + note.replace('"', '""') + '"'


def transaction_row(tx: Transaction) -> str:
    return ",".join([
        str(tx.id),
        tx.type.value,
        tx.category,
        plain_decimal(tx.amount),
        tx.currency,
        tx.date.isoformat(),
        quote_note(tx.note),
    ])


def transactions_to_csv(transactions: Sequence[Transaction]) -> str:
    lines = [",".join(EXPORT_COLUMNS)]
    lines.extend(transaction_row(tx) for tx in transactions)
    return "\n".join(lines)


def export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"budget_export_{today.isoformat()}.csv"


def build_export(
    transactions: Sequence[Transaction],
    today: Optional[date] = None,
) -> Optional[CsvExport]:
    """
    Render the export file.

    Returns:
        None when there is nothing to export
    """
    if not transactions:
        return None
    return CsvExport(
        filename=export_filename(today),
        content=transactions_to_csv(transactions),
        row_count=len(transactions),
    )
