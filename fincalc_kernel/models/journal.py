"""
Module: fincalc_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Debits == credits per entry: rows are only written by JournalService
      from an accepted LedgerBalanceValidator result; is_balanced is a
      read-side check.
    - idempotency_key is UNIQUE when present, so a system-generated entry
      (depreciation, payment) cannot be written twice.

Failure modes:
    - IntegrityError on duplicate idempotency_key.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fincalc_kernel.db.base import TrackedBase, UUIDString


class JournalEntryModel(TrackedBase):
    """Journal entry header -- the atomic unit of double-entry accounting."""

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_journal_idempotency"),
        Index("idx_journal_transaction_date", "transaction_date"),
        Index("idx_journal_source", "source"),
    )

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # manual | depreciation | bank_reconciliation
    source: Mapped[str] = mapped_column(String(30), nullable=False, default="manual")
    idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    lines: Mapped[list["JournalLineModel"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLineModel.line_no",
    )

    def __repr__(self) -> str:
        return f"<JournalEntryModel {self.id} {self.transaction_date} {self.total_amount}>"

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class JournalLineModel(TrackedBase):
    """One debit or credit line; the unused side is zero."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    account_code: Mapped[str] = mapped_column(String(50), nullable=False)
    debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    memo: Mapped[str] = mapped_column(String(300), nullable=False, default="")

    entry: Mapped[JournalEntryModel] = relationship(back_populates="lines")
