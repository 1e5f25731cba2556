"""
Tests for bank statement ingestion.

Covers:
- Amount cells in Indonesian, English and plain notation
- Date cells as date objects, ISO and day-first strings
- Header aliases, defaults for missing date and sender
- Row-numbered failures
- Reading .csv and .xlsx files
"""

from datetime import date, datetime
from decimal import Decimal

import openpyxl
import pytest

from fincalc_engines.reconciliation import TransactionStatus
from fincalc_ingestion import (
    normalize_statement_rows,
    parse_statement_amount,
    parse_statement_date,
    read_statement,
)
from fincalc_kernel.exceptions import StatementFormatError


class TestParseAmount:

    @pytest.mark.parametrize("raw, expected", [
        ("1.234.567,00", Decimal("1234567.00")),
        ("Rp 1.500.000", Decimal("1500000")),
        ("IDR 367461", Decimal("367461")),
        ("1,234,567.00", Decimal("1234567.00")),
        ("1,5", Decimal("1.5")),
        ("1.234", Decimal("1234")),
        ("250000", Decimal("250000")),
    ])
    def test_text_notations(self, raw, expected):
        assert parse_statement_amount(raw) == expected

    def test_numeric_cells(self):
        assert parse_statement_amount(367461) == Decimal("367461")
        assert parse_statement_amount(0.1) == Decimal("0.1")
        assert parse_statement_amount(Decimal("5")) == Decimal("5")

    @pytest.mark.parametrize("raw", ["", None, "abc", "Rp", True])
    def test_rejects_non_amounts(self, raw):
        with pytest.raises(ValueError):
            parse_statement_amount(raw)


class TestParseDate:

    @pytest.mark.parametrize("raw", [
        "2025-02-03",
        "2025-02-03 10:15:00",
        "03/02/2025",
        "03-02-2025",
        "03/02/25",
        date(2025, 2, 3),
        datetime(2025, 2, 3, 14, 30),
    ])
    def test_formats(self, raw):
        assert parse_statement_date(raw) == date(2025, 2, 3)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_statement_date("next tuesday")


class TestNormalizeRows:

    def test_indonesian_headers(self, deterministic_clock):
        [txn] = normalize_statement_rows([{
            "Tanggal": "03/02/2025",
            "Nama Pengirim": "PT Shell Lenteng",
            "Rekening": "1234567890",
            "Nominal": "367.461",
            "Keterangan": "Pembayaran INV/2025/001",
        }], clock=deterministic_clock)
        assert txn.amount.amount == Decimal("367461")
        assert txn.amount.currency.code == "IDR"
        assert txn.sender_name == "PT Shell Lenteng"
        assert txn.sender_account == "1234567890"
        assert txn.transaction_date == date(2025, 2, 3)
        assert txn.description == "Pembayaran INV/2025/001"
        assert txn.status == TransactionStatus.PENDING

    def test_english_headers(self, deterministic_clock):
        [txn] = normalize_statement_rows(
            [{"Date": "2025-02-10", "Sender Name": "Budi", "Amount": "1,500,000.00"}],
            clock=deterministic_clock,
        )
        assert txn.amount.amount == Decimal("1500000.00")
        assert txn.sender_name == "Budi"

    def test_defaults_for_missing_date_and_sender(self, deterministic_clock):
        [txn] = normalize_statement_rows([{"Nominal": 5000}], clock=deterministic_clock)
        assert txn.transaction_date == date(2025, 3, 1)
        assert txn.sender_name == "Unknown"

    def test_ids_are_unique(self, deterministic_clock):
        rows = [{"Nominal": 1}, {"Nominal": 2}]
        first, second = normalize_statement_rows(rows, clock=deterministic_clock)
        assert first.transaction_id != second.transaction_id

    @pytest.mark.parametrize("amount", ["0", "-10.000", "n/a", None])
    def test_bad_amount_reports_row(self, amount, deterministic_clock):
        rows = [{"Nominal": "1.000"}, {"Nominal": amount}]
        with pytest.raises(StatementFormatError) as exc_info:
            normalize_statement_rows(rows, clock=deterministic_clock)
        assert exc_info.value.row_number == 2

    def test_bad_date_reports_row(self, deterministic_clock):
        with pytest.raises(StatementFormatError) as exc_info:
            normalize_statement_rows(
                [{"Nominal": "1", "Tanggal": "31/31/2025"}], clock=deterministic_clock,
            )
        assert exc_info.value.row_number == 1
        assert "31/31/2025" in exc_info.value.detail


class TestReadStatement:

    def test_csv(self, tmp_path, deterministic_clock):
        path = tmp_path / "mutasi.csv"
        path.write_text(
            "\ufeffTanggal,Nama Pengirim,Nominal\n"
            "03/02/2025,PT Shell Lenteng,\"367.461\"\n"
            ",,\n"
            "04/02/2025,Budi,\"1.500.000\"\n",
            encoding="utf-8",
        )
        rows = list(read_statement(path))
        assert len(rows) == 2
        assert rows[0]["Tanggal"] == "03/02/2025"

        txns = normalize_statement_rows(rows, clock=deterministic_clock)
        assert [t.amount.amount for t in txns] == [Decimal("367461"), Decimal("1500000")]

    def test_xlsx(self, tmp_path, deterministic_clock):
        path = tmp_path / "statement.xlsx"
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.append(["Date", "Sender Name", "Amount"])
        ws.append([datetime(2025, 2, 3), "PT Shell Lenteng", 367461])
        ws.append([None, None, None])
        ws.append(["2025-02-05", "Budi", "1.500.000"])
        wb.save(path)

        rows = list(read_statement(path))
        assert len(rows) == 2

        first, second = normalize_statement_rows(rows, clock=deterministic_clock)
        assert first.transaction_date == date(2025, 2, 3)
        assert first.amount.amount == Decimal("367461")
        assert second.transaction_date == date(2025, 2, 5)

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "statement.pdf"
        path.write_bytes(b"%PDF")
        with pytest.raises(ValueError):
            list(read_statement(path))
