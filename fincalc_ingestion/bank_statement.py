"""
Bank statement reader and row normalizer.

Reads the first sheet of an .xlsx export (openpyxl, read-only) or a .csv
file as one dict per row, then maps the bank's column headers onto
``BankTransaction`` fields. Indonesian and English headers are both
recognised:

    transaction_date  Tanggal | Date
    sender_name       Nama Pengirim | Sender Name | Description
    sender_account    Rekening | Account
    amount            Nominal | Amount | Credit
    description       Keterangan | Description | Remarks

The first alias present in a row wins. Amounts may be written the
Indonesian way (``1.234.567,00``), the English way (``1,234,567.00``) or as
plain numbers, with an optional ``Rp`` prefix.

Missing dates default to today and missing sender names to ``Unknown``.
A missing, unparseable or non-positive amount fails the row.
"""

from __future__ import annotations

import csv
import re
from collections.abc import Iterable, Iterator, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import uuid4

from fincalc_engines.reconciliation import BankTransaction, TransactionStatus
from fincalc_kernel.domain.clock import Clock, SystemClock
from fincalc_kernel.domain.values import Money
from fincalc_kernel.exceptions import StatementFormatError
from fincalc_kernel.logging_config import get_logger

logger = get_logger("ingestion.bank_statement")

DATE_HEADERS = ("Tanggal", "Date")
SENDER_HEADERS = ("Nama Pengirim", "Sender Name", "Description")
ACCOUNT_HEADERS = ("Rekening", "Account")
AMOUNT_HEADERS = ("Nominal", "Amount", "Credit")
DESCRIPTION_HEADERS = ("Keterangan", "Description", "Remarks")

_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d/%m/%y")
_THOUSANDS_DOT = re.compile(r"^\d{1,3}(\.\d{3})+$")
_THOUSANDS_COMMA = re.compile(r"^\d{1,3}(,\d{3})+$")


# ---------------------------------------------------------------------------
# File readers
# ---------------------------------------------------------------------------


def read_statement(source_path: Path | str) -> Iterator[dict[str, Any]]:
    """Yield one dict per non-blank row, keyed by the header row."""
    path = Path(source_path)
    suffix = path.suffix.lower()
    if suffix == ".csv":
        yield from _read_csv(path)
    elif suffix in (".xlsx", ".xlsm"):
        yield from _read_xlsx(path)
    else:
        raise ValueError(f"Unsupported statement format: {path.suffix or path.name}")


def _read_csv(path: Path) -> Iterator[dict[str, Any]]:
    # utf-8-sig strips the BOM banks like to prepend
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        for row in csv.DictReader(f):
            if any((value or "").strip() for value in row.values() if isinstance(value, str)):
                yield {(key or "").strip(): value for key, value in row.items()}


def _read_xlsx(path: Path) -> Iterator[dict[str, Any]]:
    import openpyxl

    wb = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = wb.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return
        headers = [str(cell).strip() if cell is not None else "" for cell in header]
        for values in rows:
            if not any(v not in (None, "") for v in values):
                continue
            yield {h: v for h, v in zip(headers, values) if h}
    finally:
        wb.close()


# ---------------------------------------------------------------------------
# Cell parsing
# ---------------------------------------------------------------------------


def parse_statement_amount(value: Any) -> Decimal:
    """
    Parse a statement amount cell.

    Raises:
        ValueError: If the value is blank or not a number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not an amount: {value!r}")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))

    text = str(value or "").strip()
    text = re.sub(r"^(rp\.?|idr)\s*", "", text, flags=re.IGNORECASE).replace(" ", "")
    if not text:
        raise ValueError("Amount is blank")

    if "." in text and "," in text:
        # The right-most separator is the decimal point
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif _THOUSANDS_DOT.match(text.lstrip("-")):
        text = text.replace(".", "")
    elif _THOUSANDS_COMMA.match(text.lstrip("-")):
        text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")

    try:
        amount = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"Not an amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not an amount: {value!r}")
    return amount


def parse_statement_date(value: Any) -> date:
    """
    Parse a statement date cell (date, datetime, ISO or day-first string).

    Raises:
        ValueError: If the value is not a recognisable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value or "").strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text[:10] if fmt == "%Y-%m-%d" else text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Not a date: {value!r}")


def _first(row: Mapping[str, Any], headers: tuple[str, ...]) -> Any:
    for header in headers:
        value = row.get(header)
        if value not in (None, ""):
            return value
    return None


# ---------------------------------------------------------------------------
# Row normalization
# ---------------------------------------------------------------------------


def normalize_statement_rows(
    rows: Iterable[Mapping[str, Any]],
    currency: str = "IDR",
    clock: Clock | None = None,
) -> list[BankTransaction]:
    """
    Map raw statement rows to PENDING bank transactions.

    Args:
        rows: Dicts keyed by statement header, e.g. from ``read_statement``.
        currency: Currency of the statement.
        clock: Supplies the date for rows without one.

    Raises:
        StatementFormatError: On the first row with an unusable amount or
            date. ``row_number`` is 1-based, counting data rows only.
    """
    clock = clock or SystemClock()
    transactions: list[BankTransaction] = []

    for row_number, row in enumerate(rows, start=1):
        raw_amount = _first(row, AMOUNT_HEADERS)
        try:
            amount = parse_statement_amount(raw_amount)
        except ValueError as e:
            raise StatementFormatError(row_number, str(e)) from e
        if amount <= 0:
            raise StatementFormatError(row_number, f"Amount must be positive, got {amount}")

        raw_date = _first(row, DATE_HEADERS)
        try:
            transaction_date = parse_statement_date(raw_date) if raw_date is not None else clock.today()
        except ValueError as e:
            raise StatementFormatError(row_number, str(e)) from e

        sender = _first(row, SENDER_HEADERS)
        account = _first(row, ACCOUNT_HEADERS)
        description = _first(row, DESCRIPTION_HEADERS)

        transactions.append(BankTransaction(
            transaction_id=str(uuid4()),
            amount=Money.of(amount, currency),
            sender_name=str(sender).strip() if sender is not None else "Unknown",
            transaction_date=transaction_date,
            status=TransactionStatus.PENDING,
            sender_account=str(account).strip() if account is not None else "",
            description=str(description).strip() if description is not None else "",
        ))

    logger.info("bank_statement_normalized", extra={
        "row_count": len(transactions),
        "currency": currency,
    })
    return transactions
