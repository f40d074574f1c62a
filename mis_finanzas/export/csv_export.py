"""
CSV Export

Transactions as a spreadsheet that Spanish-locale Excel opens without
an import wizard:
- ";" as separator, "," as decimal separator
- UTF-8 with a byte order mark so accents survive
- dd/mm/yyyy dates and HH:MM times in separate columns
"""

import csv
import io
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Iterable, Optional, Union

from mis_finanzas.models.finance import Transaction, TransactionType


CSV_COLUMNS = ["Date", "Time", "Description", "Amount", "Type", "Category", "Currency"]
SEPARATOR = ";"
BOM = "\ufeff"
UNCATEGORIZED = "Uncategorized"


class EmptyExportError(Exception):
    """There are no transactions to export."""

    def __init__(self, message: str = "No data to export"):
        super().__init__(message)


def export_filename(on: Optional[date] = None) -> str:
    """Download name, e.g. Mis_Finanzas_Bizum_2024-03-01.csv"""
    on = on or date.today()
    return f"Mis_Finanzas_Bizum_{on.isoformat()}.csv"


def _row(transaction: Transaction) -> list[str]:
    description = " ".join(transaction.description.splitlines())
    amount = f"{transaction.amount:.2f}".replace(".", ",")
    kind = "Income" if transaction.type == TransactionType.INCOME else "Expense"
    category = transaction.category.name if transaction.category else UNCATEGORIZED
    return [
        transaction.date.strftime("%d/%m/%Y"),
        transaction.date.strftime("%H:%M"),
        description,
        amount,
        kind,
        category,
        transaction.currency or "EUR",
    ]


def export_transactions_csv(transactions: Iterable[Transaction]) -> str:
    """
    Render transactions as CSV text, BOM included.

    Raises:
        EmptyExportError: If there is nothing to export
    """
    transactions = list(transactions)
    if not transactions:
        raise EmptyExportError()

    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=SEPARATOR, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    writer.writerows(_row(t) for t in transactions)
    return BOM + buffer.getvalue()


def write_transactions_csv(
    transactions: Iterable[Transaction],
    directory: Union[str, Path],
    on: Optional[date] = None,
) -> Path:
    """
    Write the export into directory under its dated file name.

    Returns:
        Path of the written file

    Raises:
        EmptyExportError: If there is nothing to export
    """
    content = export_transactions_csv(transactions)
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    target = directory / export_filename(on)

    with tempfile.NamedTemporaryFile(
        "w", newline="", delete=False, dir=directory, encoding="utf-8"
    ) as tmp:
        try:
            tmp.write(content)
            tmp.flush()
        except BaseException:
            tmp.close()
            os.unlink(tmp.name)
            raise

    os.replace(tmp.name, target)
    return target
