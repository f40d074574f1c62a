"""Tests for the CSV export format."""

import tempfile
from datetime import date, datetime
from decimal import Decimal

import pytest

from mis_finanzas.export import (
    CSV_COLUMNS,
    EmptyExportError,
    export_filename,
    export_transactions_csv,
    write_transactions_csv,
)
from mis_finanzas.models.finance import Category, Transaction, TransactionType


def _transaction(amount="12.50", description="Café", category=None, currency="EUR"):
    return Transaction(
        id="t-1",
        user_id="user-1",
        amount=Decimal(amount),
        description=description,
        date=datetime(2024, 3, 1, 18, 45),
        category=category,
        currency=currency,
    )


INCOME = Category(id="c-1", name="Nómina", type=TransactionType.INCOME)
EXPENSE = Category(id="c-2", name="Restaurantes", type=TransactionType.EXPENSE)


class TestCsvExport:
    """Tests for export_transactions_csv."""

    def test_header_and_bom(self):
        content = export_transactions_csv([_transaction(category=EXPENSE)])

        assert content.startswith("\ufeff")
        header = content[1:].splitlines()[0]
        assert header == "Date;Time;Description;Amount;Type;Category;Currency"
        assert header.split(";") == CSV_COLUMNS

    def test_row_format(self):
        content = export_transactions_csv([_transaction(category=EXPENSE)])

        row = content.splitlines()[1]
        assert row == "01/03/2024;18:45;Café;12,50;Expense;Restaurantes;EUR"

    def test_income_row(self):
        content = export_transactions_csv([_transaction("1500", "Marzo", INCOME)])
        assert content.splitlines()[1].endswith("1500,00;Income;Nómina;EUR")

    def test_uncategorized(self):
        content = export_transactions_csv([_transaction()])
        assert ";Expense;Uncategorized;" in content.splitlines()[1]

    def test_newlines_flattened(self):
        content = export_transactions_csv([_transaction(description="Cena\ncon\r\namigos", category=EXPENSE)])
        lines = content.splitlines()
        assert len(lines) == 2
        assert ";Cena con amigos;" in lines[1]

    def test_separator_in_description_is_quoted(self):
        content = export_transactions_csv([_transaction(description="Pan; leche", category=EXPENSE)])
        assert '"Pan; leche"' in content

    def test_empty_export_raises(self):
        with pytest.raises(EmptyExportError):
            export_transactions_csv([])

    def test_filename(self):
        assert export_filename(date(2024, 3, 1)) == "Mis_Finanzas_Bizum_2024-03-01.csv"

    def test_write_to_directory(self, tmp_path):
        path = write_transactions_csv([_transaction(category=INCOME)], tmp_path, on=date(2024, 3, 1))

        assert path == tmp_path / "Mis_Finanzas_Bizum_2024-03-01.csv"
        raw = path.read_bytes()
        assert raw.startswith(b"\xef\xbb\xbf")
        assert "Nómina" in raw.decode("utf-8")

    def test_failed_write_leaves_no_temp_file(self, tmp_path, monkeypatch):
        """Test that a write error removes the half-written temp file."""
        real_temp_file = tempfile.NamedTemporaryFile

        def failing_temp_file(*args, **kwargs):
            tmp = real_temp_file(*args, **kwargs)

            def disk_full(content):
                raise OSError("No space left on device")

            tmp.write = disk_full
            return tmp

        monkeypatch.setattr(tempfile, "NamedTemporaryFile", failing_temp_file)

        with pytest.raises(OSError):
            write_transactions_csv([_transaction(category=INCOME)], tmp_path, on=date(2024, 3, 1))

        assert list(tmp_path.iterdir()) == []
