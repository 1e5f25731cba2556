"""
fincalc_services.reconciliation_service -- Bank statement import, matching and approval.

Responsibility:
    Persist imported bank transactions, auto-match them against open
    invoices and payables, apply manual matches, and approve matches. An
    approval posts the payment journal and reduces the item's remaining
    amount.

Architecture position:
    Services -- imperative shell over ReconciliationMatcher (pure engine)
    and JournalService. Flushes only; the caller commits.

Invariants enforced:
    - The status machine lives in the matcher; this service only persists
      what the matcher returns.
    - MATCHED -> APPROVED is a compare-and-swap on (status, version): two
      concurrent approvals cannot both succeed.
    - Approval posting: receivable Dr cash / Cr accounts receivable;
      payable Dr accounts payable / Cr cash. One payment journal per
      transaction (idempotency key ``bank_payment:<id>``).
    - An item already PAID by one approval rejects every later approval
      that points at it.

Failure modes:
    - TransactionNotFoundError / OpenItemNotFoundError for unknown ids.
    - InvalidTransitionError, MatchToleranceExceededError from the matcher.
    - OpenItemSettledError when the matched item is no longer open.
    - OptimisticLockError when the row changed since it was read.

Usage:
    with session_scope() as session:
        service = ReconciliationService(session, config)
        service.import_transactions(read_statement(path))
        service.approve(transaction_id, approved_by="finance.admin")
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from fincalc_config import EngineConfiguration, get_active_config
from fincalc_engines.ledger_balance import JournalEntryLine
from fincalc_engines.reconciliation import (
    BankTransaction,
    OpenItem,
    OpenItemKind,
    PayableCategory,
    ReconciliationMatcher,
    TransactionStatus,
)
from fincalc_kernel.domain.clock import Clock, SystemClock
from fincalc_kernel.domain.values import Money
from fincalc_kernel.exceptions import (
    OpenItemNotFoundError,
    OpenItemSettledError,
    OptimisticLockError,
    TransactionNotFoundError,
)
from fincalc_kernel.logging_config import get_logger
from fincalc_kernel.models.reconciliation import BankTransactionModel, OpenItemModel
from fincalc_services.journal_service import JournalService

logger = get_logger("services.reconciliation")


def transaction_from_model(model: BankTransactionModel) -> BankTransaction:
    return BankTransaction(
        transaction_id=str(model.id),
        amount=Money.of(model.amount, model.currency),
        sender_name=model.sender_name,
        transaction_date=model.transaction_date,
        status=TransactionStatus(model.status),
        matched_invoice_id=str(model.matched_item_id) if model.matched_item_id else None,
        matched_invoice_number=model.matched_item_number,
        sender_account=model.sender_account,
        description=model.description,
    )


def open_item_from_model(model: OpenItemModel) -> OpenItem:
    return OpenItem(
        item_id=str(model.id),
        number=model.number,
        counterparty_name=model.counterparty_name,
        remaining_amount=Money.of(model.remaining_amount, model.currency),
        kind=OpenItemKind(model.kind),
        category=PayableCategory(model.category) if model.category else None,
    )


def transaction_to_dict(model: BankTransactionModel) -> dict[str, Any]:
    return {
        "id": str(model.id),
        "transaction_date": model.transaction_date.isoformat(),
        "amount": model.amount,
        "sender_name": model.sender_name,
        "status": model.status,
        "matched_invoice_id": str(model.matched_item_id) if model.matched_item_id else None,
        "matched_invoice_number": model.matched_item_number,
    }


class ReconciliationService:
    """
    Bank reconciliation endpoints.

    Contract:
        ``import_transactions`` -> transactions tagged PENDING / MATCHED;
        ``match`` -> MATCHED; ``approve`` -> APPROVED with payment posted.
    Non-goals:
        - No reversal of an APPROVED transaction.
    """

    def __init__(
        self,
        session: Session,
        config: EngineConfiguration | None = None,
        clock: Clock | None = None,
        journal: JournalService | None = None,
    ) -> None:
        self.session = session
        self.config = config or get_active_config()
        self._clock = clock or SystemClock()
        self._matcher = ReconciliationMatcher(self.config.reconciliation)
        self._journal = journal or JournalService(session, currency=self.config.scope.currency)

    # =========================================================================
    # Open items
    # =========================================================================

    def add_open_item(
        self,
        number: str,
        counterparty_name: str,
        amount: Money | Decimal | int | str,
        kind: OpenItemKind = OpenItemKind.RECEIVABLE,
        category: PayableCategory | None = None,
        description: str = "",
    ) -> OpenItemModel:
        """Register an invoice or payable. Payables default to category PO."""
        kind = OpenItemKind(kind)
        if kind == OpenItemKind.PAYABLE and category is None:
            category = PayableCategory.PO
        money = amount if isinstance(amount, Money) else Money.of(amount, self.config.scope.currency)
        model = OpenItemModel(
            number=number,
            kind=kind.value,
            category=PayableCategory(category).value if category else None,
            counterparty_name=counterparty_name,
            description=description,
            currency=money.currency.code,
            total_amount=money.amount,
            paid_amount=Decimal("0"),
            remaining_amount=money.amount,
            status="OPEN",
        )
        self.session.add(model)
        self.session.flush()
        return model

    def open_items(self) -> list[OpenItemModel]:
        return list(self.session.execute(
            select(OpenItemModel)
            .where(OpenItemModel.status == "OPEN")
            .order_by(OpenItemModel.number)
        ).scalars())

    # =========================================================================
    # Import + auto-match
    # =========================================================================

    def import_transactions(
        self,
        transactions: Iterable[BankTransaction],
        created_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Persist imported transactions as PENDING, then auto-match them.

        Returns:
            One dict per imported transaction, in input order.
        """
        t0 = time.monotonic()
        models: list[BankTransactionModel] = []
        for txn in transactions:
            model = BankTransactionModel(
                transaction_date=txn.transaction_date,
                amount=txn.amount.amount,
                currency=txn.amount.currency.code,
                sender_name=txn.sender_name,
                sender_account=txn.sender_account,
                description=txn.description,
                status=TransactionStatus.PENDING.value,
                version=1,
                created_by=created_by,
            )
            self.session.add(model)
            models.append(model)
        self.session.flush()

        open_items = [open_item_from_model(m) for m in self.open_items()]
        matched = self._matcher.auto_match(
            [transaction_from_model(m) for m in models], open_items,
        )
        for model, result in zip(models, matched):
            if result.status == TransactionStatus.MATCHED:
                model.status = result.status.value
                model.matched_item_id = UUID(result.matched_invoice_id)
                model.matched_item_number = result.matched_invoice_number
                model.version += 1
        self.session.flush()

        logger.info("bank_transactions_imported", extra={
            "imported": len(models),
            "auto_matched": sum(1 for m in models if m.status == TransactionStatus.MATCHED.value),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return [transaction_to_dict(m) for m in models]

    # =========================================================================
    # Manual match
    # =========================================================================

    def match(self, transaction_id: UUID | str, invoice_id: UUID | str) -> dict[str, Any]:
        """
        Match (or re-match) a transaction to an open item chosen by a user.

        Raises:
            TransactionNotFoundError, OpenItemNotFoundError,
            InvalidTransitionError, MatchToleranceExceededError,
            OptimisticLockError.
        """
        model = self._get_transaction(transaction_id)
        item_model = self._get_open_item(invoice_id)

        result = self._matcher.manual_match(
            transaction_from_model(model), open_item_from_model(item_model),
        )

        self._compare_and_swap(
            model,
            expected_statuses=(TransactionStatus.PENDING.value, TransactionStatus.MATCHED.value),
            values={
                "status": result.status.value,
                "matched_item_id": item_model.id,
                "matched_item_number": item_model.number,
            },
        )
        return transaction_to_dict(model)

    # =========================================================================
    # Approval
    # =========================================================================

    def approve(self, transaction_id: UUID | str, approved_by: str | None = None) -> dict[str, Any]:
        """
        Approve a MATCHED transaction and post the payment.

        Raises:
            TransactionNotFoundError, InvalidTransitionError,
            OpenItemSettledError, OptimisticLockError.
        """
        model = self._get_transaction(transaction_id)
        approved = self._matcher.approve(transaction_from_model(model))
        item_model = self._get_open_item(approved.matched_invoice_id)
        if item_model.status != "OPEN" or item_model.remaining_amount <= 0:
            logger.warning("bank_transaction_item_settled", extra={
                "transaction_id": str(model.id),
                "item_id": str(item_model.id),
                "item_status": item_model.status,
            })
            raise OpenItemSettledError(str(item_model.id), str(model.id))

        self._compare_and_swap(
            model,
            expected_statuses=(TransactionStatus.MATCHED.value,),
            values={
                "status": approved.status.value,
                "approved_at": self._clock.now(),
                "approved_by": approved_by,
            },
        )

        journal = self._post_payment(model, item_model, approved_by)
        model.payment_entry_id = journal.id

        applied = min(model.amount, item_model.remaining_amount)
        item_model.paid_amount = item_model.paid_amount + applied
        item_model.remaining_amount = item_model.remaining_amount - applied
        if item_model.remaining_amount <= 0:
            item_model.status = "PAID"
        self.session.flush()

        logger.info("bank_transaction_approved", extra={
            "transaction_id": str(model.id),
            "item_id": str(item_model.id),
            "item_kind": item_model.kind,
            "amount": str(model.amount),
            "journal_entry_id": str(journal.id),
            "remaining_amount": str(item_model.remaining_amount),
        })
        return transaction_to_dict(model)

    # =========================================================================
    # Internals
    # =========================================================================

    def _post_payment(self, model: BankTransactionModel, item: OpenItemModel, approved_by: str | None):
        accounts = self.config.posting_accounts
        amount = Money.of(model.amount, model.currency)
        zero = Money.zero(model.currency)
        if item.kind == OpenItemKind.PAYABLE.value:
            debit_account, credit_account = accounts.accounts_payable, accounts.cash
        else:
            debit_account, credit_account = accounts.cash, accounts.accounts_receivable
        return self._journal.post_lines(
            [
                JournalEntryLine(debit_account, debit=amount, credit=zero, memo=item.number),
                JournalEntryLine(credit_account, debit=zero, credit=amount, memo=item.number),
            ],
            transaction_date=model.transaction_date,
            description=f"Payment {item.number} from {model.sender_name}",
            source="bank_reconciliation",
            reference=item.number,
            idempotency_key=f"bank_payment:{model.id}",
            created_by=approved_by,
        )

    def _compare_and_swap(
        self,
        model: BankTransactionModel,
        expected_statuses: tuple[str, ...],
        values: dict[str, Any],
    ) -> None:
        """Update the row only if status and version are what we read."""
        expected_version = model.version
        result = self.session.execute(
            update(BankTransactionModel)
            .where(
                BankTransactionModel.id == model.id,
                BankTransactionModel.status.in_(expected_statuses),
                BankTransactionModel.version == expected_version,
            )
            .values(version=expected_version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning("bank_transaction_cas_conflict", extra={
                "transaction_id": str(model.id),
                "expected_version": expected_version,
            })
            raise OptimisticLockError("BankTransaction", str(model.id))
        self.session.refresh(model)

    def _get_transaction(self, transaction_id: UUID | str) -> BankTransactionModel:
        model = self.session.get(BankTransactionModel, _as_uuid(transaction_id))
        if model is None:
            raise TransactionNotFoundError(str(transaction_id))
        return model

    def _get_open_item(self, item_id: UUID | str | None) -> OpenItemModel:
        model = self.session.get(OpenItemModel, _as_uuid(item_id)) if item_id else None
        if model is None:
            raise OpenItemNotFoundError(str(item_id))
        return model


def _as_uuid(value: UUID | str) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
