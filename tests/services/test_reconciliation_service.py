"""
Tests for ReconciliationService.

Covers:
- Import persists transactions and auto-matches the unambiguous ones
- Manual match within tolerance, rejection outside it
- Approval posts the payment journal and settles the open item
- A second approval against an already paid item is rejected
- Compare-and-swap on approval and the APPROVED terminal state
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy import select, update

from fincalc_engines.reconciliation import (
    BankTransaction,
    OpenItemKind,
    PayableCategory,
    TransactionStatus,
)
from fincalc_kernel.domain.values import Money
from fincalc_kernel.exceptions import (
    InvalidTransitionError,
    MatchToleranceExceededError,
    OpenItemNotFoundError,
    OpenItemSettledError,
    OptimisticLockError,
    TransactionNotFoundError,
)
from fincalc_kernel.models.journal import JournalEntryModel
from fincalc_kernel.models.reconciliation import BankTransactionModel
from fincalc_services.reconciliation_service import ReconciliationService


def statement_line(amount, sender, day=3):
    return BankTransaction(
        transaction_id=str(uuid4()),
        amount=Money.of(amount),
        sender_name=sender,
        transaction_date=date(2025, 2, day),
    )


@pytest.fixture
def service(session, engine_config, deterministic_clock):
    return ReconciliationService(session, engine_config, clock=deterministic_clock)


class TestImport:

    def test_reference_auto_match(self, service):
        invoice = service.add_open_item(
            "INV/2025/001", "PT. Shell Indonesia - Lenteng Agung 1", 367_461,
        )
        [row] = service.import_transactions([statement_line(367_461, "PT Shell Lenteng")])
        assert row["status"] == "MATCHED"
        assert row["matched_invoice_id"] == str(invoice.id)
        assert row["matched_invoice_number"] == "INV/2025/001"

    def test_unmatched_and_ambiguous_stay_pending(self, service):
        service.add_open_item("INV/2025/010", "PT Sinar Abadi", 1_000_000)
        service.add_open_item("INV/2025/011", "PT Sinar Jaya", 1_000_000)
        rows = service.import_transactions([
            statement_line(1_000_000, "PT Sinar"),
            statement_line(5_000, "Unknown"),
        ])
        assert [r["status"] for r in rows] == ["PENDING", "PENDING"]

    def test_paid_items_not_candidates(self, service):
        invoice = service.add_open_item("INV/2025/020", "Budi", 750_000)
        invoice.status = "PAID"
        [row] = service.import_transactions([statement_line(750_000, "Budi Santoso")])
        assert row["status"] == "PENDING"

    def test_payable_defaults_to_po(self, service):
        bill = service.add_open_item("BILL-1", "PT Vendor", 100, kind=OpenItemKind.PAYABLE)
        assert bill.category == PayableCategory.PO.value


class TestManualMatch:

    def test_within_tolerance(self, service):
        invoice = service.add_open_item("INV/2025/030", "PT Alpha", 1_000_000)
        [row] = service.import_transactions([statement_line(950_000, "Someone Else")])
        matched = service.match(row["id"], invoice.id)
        assert matched["status"] == "MATCHED"
        assert matched["matched_invoice_number"] == "INV/2025/030"

    def test_outside_tolerance(self, service):
        invoice = service.add_open_item("INV/2025/031", "PT Alpha", 1_000_000)
        [row] = service.import_transactions([statement_line(500_000, "Someone Else")])
        with pytest.raises(MatchToleranceExceededError):
            service.match(row["id"], invoice.id)

    def test_unknown_transaction(self, service):
        invoice = service.add_open_item("INV/2025/032", "PT Alpha", 1_000_000)
        with pytest.raises(TransactionNotFoundError):
            service.match(uuid4(), invoice.id)
        with pytest.raises(TransactionNotFoundError):
            service.match("not-a-uuid", invoice.id)

    def test_unknown_item(self, service):
        [row] = service.import_transactions([statement_line(1, "X")])
        with pytest.raises(OpenItemNotFoundError):
            service.match(row["id"], uuid4())


class TestApprove:

    def test_receivable_payment(self, service, session):
        invoice = service.add_open_item("INV/2025/001", "PT. Shell Indonesia", 367_461)
        [row] = service.import_transactions([statement_line(367_461, "PT Shell Lenteng")])

        approved = service.approve(row["id"], approved_by="finance.admin")

        assert approved["status"] == "APPROVED"
        txn = session.get(BankTransactionModel, UUID(row["id"]))
        assert txn.approved_by == "finance.admin"
        assert txn.approved_at is not None
        assert invoice.status == "PAID"
        assert invoice.remaining_amount == 0
        assert invoice.paid_amount == Decimal("367461")

        journal = session.get(JournalEntryModel, txn.payment_entry_id)
        assert journal.source == "bank_reconciliation"
        assert journal.idempotency_key == f"bank_payment:{txn.id}"
        debit_line, credit_line = journal.lines
        assert (debit_line.account_code, debit_line.debit) == ("1-1100", Decimal("367461"))
        assert (credit_line.account_code, credit_line.credit) == ("1-1200", Decimal("367461"))

    def test_payable_payment(self, service, session):
        bill = service.add_open_item(
            "BILL/2025/004", "PT Listrik Negara", 2_500_000,
            kind=OpenItemKind.PAYABLE, category=PayableCategory.OPERATIONAL,
        )
        [row] = service.import_transactions([statement_line(2_500_000, "PT Listrik")])
        assert row["status"] == "MATCHED"
        service.approve(row["id"])

        txn = session.get(BankTransactionModel, UUID(row["id"]))
        journal = session.get(JournalEntryModel, txn.payment_entry_id)
        debit_line, credit_line = journal.lines
        assert debit_line.account_code == "2-1100"
        assert credit_line.account_code == "1-1100"
        assert bill.status == "PAID"

    def test_partial_payment_leaves_item_open(self, service):
        invoice = service.add_open_item("INV/2025/040", "PT Beta", 1_000_000)
        [row] = service.import_transactions([statement_line(950_000, "Other")])
        service.match(row["id"], invoice.id)
        service.approve(row["id"])
        assert invoice.remaining_amount == Decimal("50000")
        assert invoice.status == "OPEN"

    def test_second_claim_on_paid_item_rejected(self, service, session):
        invoice = service.add_open_item(
            "INV/2025/070", "PT. Shell Indonesia - Lenteng Agung 1", 500_000,
        )
        first, second = service.import_transactions([
            statement_line(500_000, "PT Shell Lenteng"),
            statement_line(500_000, "PT Shell Lenteng", day=4),
        ])
        assert first["matched_invoice_id"] == second["matched_invoice_id"] == str(invoice.id)

        service.approve(first["id"])
        with pytest.raises(OpenItemSettledError) as exc_info:
            service.approve(second["id"])

        assert exc_info.value.item_id == str(invoice.id)
        assert invoice.paid_amount == Decimal("500000")
        assert session.get(BankTransactionModel, UUID(second["id"])).status == "MATCHED"
        payments = session.execute(
            select(JournalEntryModel).where(JournalEntryModel.source == "bank_reconciliation")
        ).scalars().all()
        assert len(payments) == 1

    def test_pending_cannot_be_approved(self, service):
        [row] = service.import_transactions([statement_line(1, "X")])
        with pytest.raises(InvalidTransitionError):
            service.approve(row["id"])

    def test_approved_is_terminal(self, service):
        invoice = service.add_open_item("INV/2025/050", "PT Gamma", 10_000)
        [row] = service.import_transactions([statement_line(10_000, "PT Gamma")])
        service.approve(row["id"])
        with pytest.raises(InvalidTransitionError):
            service.approve(row["id"])
        with pytest.raises(InvalidTransitionError):
            service.match(row["id"], invoice.id)

    def test_stale_version_rejected(self, service, session):
        service.add_open_item("INV/2025/060", "PT Delta", 20_000)
        [row] = service.import_transactions([statement_line(20_000, "PT Delta")])
        txn = session.get(BankTransactionModel, UUID(row["id"]))
        # Another writer bumps the version behind this session's back.
        session.execute(
            update(BankTransactionModel)
            .where(BankTransactionModel.id == txn.id)
            .values(version=BankTransactionModel.version + 1)
            .execution_options(synchronize_session=False)
        )
        with pytest.raises(OptimisticLockError):
            service.approve(row["id"])

    def test_status_values(self):
        assert [s.value for s in TransactionStatus] == ["PENDING", "MATCHED", "APPROVED"]
