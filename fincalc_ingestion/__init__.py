"""
fincalc_ingestion -- Bank statement import.

Reads bank statement exports (XLSX or CSV) and turns each row into a PENDING
``BankTransaction`` for ReconciliationService.import_transactions.

Architecture:
    fincalc_ingestion/ is a top-level package. It imports engine value types
    and the kernel only; nothing in kernel/ or engines/ imports from it.
"""

from fincalc_ingestion.bank_statement import (
    normalize_statement_rows,
    parse_statement_amount,
    parse_statement_date,
    read_statement,
)

__all__ = [
    "normalize_statement_rows",
    "parse_statement_amount",
    "parse_statement_date",
    "read_statement",
]
