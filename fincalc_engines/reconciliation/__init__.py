"""
Reconciliation - bank transaction matching against open invoices and payables.

Pure domain types and the matcher. Persistence and approval posting live in
fincalc_services.reconciliation_service.
"""

from fincalc_engines.reconciliation.matcher import (
    ReconciliationMatcher,
    ReconciliationPolicy,
    first_token,
    names_plausibly_match,
)
from fincalc_engines.reconciliation.types import (
    BankTransaction,
    OpenItem,
    OpenItemKind,
    PayableCategory,
    TransactionStatus,
)

__all__ = [
    "BankTransaction",
    "OpenItem",
    "OpenItemKind",
    "PayableCategory",
    "ReconciliationMatcher",
    "ReconciliationPolicy",
    "TransactionStatus",
    "first_token",
    "names_plausibly_match",
]
