"""Spreadsheet export of transactions."""

from mis_finanzas.export.csv_export import (
    CSV_COLUMNS,
    EmptyExportError,
    export_filename,
    export_transactions_csv,
    write_transactions_csv,
)

__all__ = [
    "CSV_COLUMNS",
    "EmptyExportError",
    "export_filename",
    "export_transactions_csv",
    "write_transactions_csv",
]
