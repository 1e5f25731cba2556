"""
Module: fincalc_kernel.models.reconciliation
Responsibility: ORM persistence for imported bank transactions and the open
    invoices / payables they are matched against.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - bank_transactions.version increments on every status change; the
      MATCHED -> APPROVED update is a compare-and-swap on (status, version)
      issued by ReconciliationService.
    - open_items.category is set only for payables.

Failure modes:
    - IntegrityError on a duplicate open item number.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fincalc_kernel.db.base import TrackedBase, UUIDString


class OpenItemModel(TrackedBase):
    """An invoice (RECEIVABLE) or bill (PAYABLE) with an unpaid remainder."""

    __tablename__ = "open_items"

    __table_args__ = (
        UniqueConstraint("kind", "number", name="uq_open_item_number"),
        Index("idx_open_item_status", "status"),
    )

    number: Mapped[str] = mapped_column(String(50), nullable=False)
    kind: Mapped[str] = mapped_column(String(12), nullable=False, default="RECEIVABLE")
    category: Mapped[str | None] = mapped_column(String(12), nullable=True)
    counterparty_name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    remaining_amount: Mapped[Decimal] = mapped_column(nullable=False)
    # OPEN | PAID
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="OPEN")
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<OpenItemModel {self.kind} {self.number} remaining={self.remaining_amount}>"


class BankTransactionModel(TrackedBase):
    """One imported bank statement line and its reconciliation state."""

    __tablename__ = "bank_transactions"

    __table_args__ = (
        Index("idx_bank_txn_status", "status"),
        Index("idx_bank_txn_date", "transaction_date"),
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")
    sender_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sender_account: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(10), nullable=False, default="PENDING")
    matched_item_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("open_items.id"),
        nullable=True,
    )
    matched_item_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<BankTransactionModel {self.id} {self.amount} status={self.status}>"
