"""
Bank reconciliation domain types.

Pure frozen dataclasses consumed and produced by ReconciliationMatcher.
The service layer maps ORM rows to these and back; the matcher never sees
a session.

Architecture: fincalc_engines/reconciliation -- pure domain, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

from fincalc_kernel.domain.values import Money


class TransactionStatus(str, Enum):
    """Bank transaction lifecycle: PENDING -> MATCHED -> APPROVED (terminal)."""

    PENDING = "PENDING"
    MATCHED = "MATCHED"
    APPROVED = "APPROVED"


class OpenItemKind(str, Enum):
    """Which side of the ledger an open item sits on."""

    RECEIVABLE = "RECEIVABLE"
    PAYABLE = "PAYABLE"


class PayableCategory(str, Enum):
    """Payable origin. Stored as its own field, never inside the description."""

    PO = "PO"
    OPERATIONAL = "OPERATIONAL"
    PROJECT = "PROJECT"

    @classmethod
    def classify_legacy(
        cls,
        description: str | None,
        reference: str | None = None,
    ) -> tuple[PayableCategory, str]:
        """
        Read a category from a legacy record.

        Older payables encode the category as a ``"[PO] "`` style prefix on
        the description, or as an ``OP-`` / ``PRJ-`` reference prefix.
        Returns the category and the description with the prefix removed.
        Records carrying neither are purchase-order payables.
        """
        text = description or ""
        for category in cls:
            tag = f"[{category.value}]"
            if text.startswith(tag):
                return category, text[len(tag):].lstrip()
        ref = reference or ""
        if ref.startswith("OP-"):
            return cls.OPERATIONAL, text
        if ref.startswith("PRJ-"):
            return cls.PROJECT, text
        return cls.PO, text


@dataclass(frozen=True)
class BankTransaction:
    """
    One imported bank statement line.

    Updated by value (``dataclasses.replace``); the matcher returns new
    instances and never mutates its input.
    """

    transaction_id: str
    amount: Money
    sender_name: str
    transaction_date: date
    status: TransactionStatus = TransactionStatus.PENDING
    matched_invoice_id: str | None = None
    matched_invoice_number: str | None = None
    sender_account: str = ""
    description: str = ""

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING


@dataclass(frozen=True)
class OpenItem:
    """An unpaid invoice (receivable) or bill (payable)."""

    item_id: str
    number: str
    counterparty_name: str
    remaining_amount: Money
    kind: OpenItemKind = OpenItemKind.RECEIVABLE
    category: PayableCategory | None = None

    def __post_init__(self) -> None:
        if self.kind == OpenItemKind.PAYABLE and self.category is None:
            object.__setattr__(self, "category", PayableCategory.PO)
        if self.kind == OpenItemKind.RECEIVABLE and self.category is not None:
            raise ValueError("Receivables do not carry a payable category")
