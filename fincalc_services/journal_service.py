"""
fincalc_services.journal_service -- Validated journal entry persistence.

Responsibility:
    Turn a journal request (manual entry, depreciation charge, bank payment)
    into persisted JournalEntryModel / JournalLineModel rows, but only after
    LedgerBalanceValidator has accepted every line.

Architecture position:
    Services -- imperative shell over the ledger balance engine.
    Flushes only; the caller's ``session_scope()`` commits or rolls back, so
    validation and persistence are one atomic unit.

Invariants enforced:
    - No row is added to the session for a rejected journal.
    - A system entry with an idempotency key is written at most once; a
      repeated request returns the existing entry.

Failure modes:
    - UnbalancedJournalError (carries ``imbalance_amount``, ``reason`` and
      ``line_index``) when the validator rejects the lines.
    - ValueError for an unparseable amount or date in a request.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from fincalc_engines.ledger_balance import (
    JournalEntry,
    JournalEntryLine,
    LedgerBalanceValidator,
)
from fincalc_kernel.logging_config import get_logger
from fincalc_kernel.models.journal import JournalEntryModel, JournalLineModel

logger = get_logger("services.journal")


class JournalService:
    """
    Writes balanced journal entries.

    Contract:
        ``create_entry`` takes the request shape of the journal endpoint;
        ``post_lines`` is the internal path used by other services.
    Non-goals:
        - Does not commit and does not reverse entries.
    """

    def __init__(
        self,
        session: Session,
        validator: LedgerBalanceValidator | None = None,
        currency: str = "IDR",
    ) -> None:
        self.session = session
        self._currency = currency
        self._validator = validator or LedgerBalanceValidator(currency)

    def create_entry(
        self,
        request: Mapping[str, Any],
        created_by: str | None = None,
    ) -> JournalEntryModel:
        """
        Create a manual journal entry.

        Args:
            request: ``{transaction_date, description, entries: [{account_id,
                debit, credit}, ...], reference?}``.
            created_by: Acting user, recorded on the rows.

        Raises:
            UnbalancedJournalError: If the lines are rejected.
        """
        transaction_date = parse_iso_date(request.get("transaction_date"))
        lines = [
            JournalEntryLine.create(
                account_id=str(item["account_id"]),
                debit=item.get("debit"),
                credit=item.get("credit"),
                currency=self._currency,
                memo=item.get("memo") or "",
            )
            for item in request.get("entries") or ()
        ]
        return self.post_lines(
            lines,
            transaction_date=transaction_date,
            description=request.get("description") or "",
            reference=request.get("reference"),
            source="manual",
            created_by=created_by,
        )

    def post_lines(
        self,
        lines: Sequence[JournalEntryLine],
        transaction_date: date,
        description: str,
        source: str = "manual",
        reference: str | None = None,
        idempotency_key: str | None = None,
        created_by: str | None = None,
    ) -> JournalEntryModel:
        """
        Validate and persist one journal entry.

        Raises:
            UnbalancedJournalError: If the lines are rejected.
        """
        if idempotency_key is not None:
            existing = self.session.execute(
                select(JournalEntryModel).where(
                    JournalEntryModel.idempotency_key == idempotency_key,
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.info("journal_entry_already_posted", extra={
                    "idempotency_key": idempotency_key,
                    "journal_entry_id": str(existing.id),
                })
                return existing

        validation = self._validator.validate(lines)
        entry = JournalEntry.from_validation(
            validation,
            transaction_date=transaction_date,
            description=description,
            reference=reference,
        )
        model = self._to_model(entry, source, idempotency_key, created_by)
        self.session.add(model)
        self.session.flush()

        logger.info("journal_entry_created", extra={
            "journal_entry_id": str(model.id),
            "source": source,
            "line_count": len(entry.lines),
            "total": str(entry.total.amount),
            "transaction_date": transaction_date.isoformat(),
        })
        return model

    def _to_model(
        self,
        entry: JournalEntry,
        source: str,
        idempotency_key: str | None,
        created_by: str | None,
    ) -> JournalEntryModel:
        model = JournalEntryModel(
            transaction_date=entry.transaction_date,
            description=entry.description,
            reference=entry.reference,
            source=source,
            idempotency_key=idempotency_key,
            currency=entry.total.currency.code,
            total_amount=entry.total.amount,
            created_by=created_by,
        )
        for line_no, line in enumerate(entry.lines, start=1):
            model.lines.append(JournalLineModel(
                line_no=line_no,
                account_code=line.account_id,
                debit=line.debit.amount,
                credit=line.credit.amount,
                memo=line.memo,
                created_by=created_by,
            ))
        return model


def parse_iso_date(value: Any) -> date:
    """Accept a date or an ISO string (a datetime string is cut to its date)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        return date.fromisoformat(value.strip()[:10])
    raise ValueError(f"transaction_date must be an ISO date, got {value!r}")
