"""
fincalc_engines.reconciliation.matcher -- Bank transaction to open item matching.

Responsibility:
    Propose and apply matches between imported bank transactions and open
    invoices / payables, and drive the transaction status machine
    ``PENDING -> MATCHED -> APPROVED``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    ReconciliationService loads transactions and open items, calls the
    matcher, and persists the returned values (approval with a
    compare-and-swap on status).

Invariants enforced:
    - Auto-match only touches PENDING transactions and only when exactly one
      candidate exists; ambiguity is left to a human.
    - APPROVED is terminal: no transition leaves it.
    - Inputs are never mutated; every operation returns new values.

Failure modes:
    - InvalidTransitionError for a transition the status machine forbids.
    - MatchToleranceExceededError when a manual match is outside tolerance.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from decimal import Decimal

from fincalc_engines.reconciliation.types import (
    BankTransaction,
    OpenItem,
    TransactionStatus,
)
from fincalc_engines.tracer import traced_engine
from fincalc_kernel.exceptions import InvalidTransitionError, MatchToleranceExceededError
from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation.matcher")


@dataclass(frozen=True)
class ReconciliationPolicy:
    """
    Matching tolerances.

    ``exact_match_threshold``: auto-match requires the absolute amount
    difference to be strictly below this (one rupiah).
    ``manual_tolerance_ratio``: manual match allows a difference up to this
    fraction of the item's remaining amount.
    """

    exact_match_threshold: Decimal = Decimal("1")
    manual_tolerance_ratio: Decimal = Decimal("0.10")

    def __post_init__(self) -> None:
        if self.exact_match_threshold <= 0:
            raise ValueError("Exact match threshold must be positive")
        if not Decimal("0") <= self.manual_tolerance_ratio <= Decimal("1"):
            raise ValueError("Manual tolerance ratio must be within [0, 1]")


def first_token(name: str | None) -> str:
    """Lowercased first whitespace-delimited token, or ``""``."""
    parts = (name or "").lower().split()
    return parts[0] if parts else ""


def names_plausibly_match(sender_name: str | None, counterparty_name: str | None) -> bool:
    """
    Name-overlap heuristic.

    True when the first token of either name occurs, case-insensitively,
    inside the other name. Blank names never match.
    """
    sender = (sender_name or "").lower()
    counterparty = (counterparty_name or "").lower()
    sender_token = first_token(sender)
    counterparty_token = first_token(counterparty)
    if not sender_token or not counterparty_token:
        return False
    return counterparty_token in sender or sender_token in counterparty


class ReconciliationMatcher:
    """
    Bank reconciliation matcher and status machine.

    Contract:
        Pure functions over BankTransaction / OpenItem values.
    Guarantees:
        - ``auto_match`` preserves input order and length.
        - A MATCHED result always carries ``matched_invoice_id``.
    Non-goals:
        - Does not post payments; approval posting belongs to the service.
        - No reversal of APPROVED transactions.
    """

    def __init__(self, policy: ReconciliationPolicy | None = None) -> None:
        self._policy = policy or ReconciliationPolicy()

    @property
    def policy(self) -> ReconciliationPolicy:
        return self._policy

    def candidates(
        self,
        transaction: BankTransaction,
        open_items: Iterable[OpenItem],
    ) -> tuple[OpenItem, ...]:
        """Open items whose amount is exact to the unit and whose name is plausible."""
        found: list[OpenItem] = []
        for item in open_items:
            if item.remaining_amount.currency != transaction.amount.currency:
                continue
            difference = abs(item.remaining_amount - transaction.amount)
            if difference.amount >= self._policy.exact_match_threshold:
                continue
            if names_plausibly_match(transaction.sender_name, item.counterparty_name):
                found.append(item)
        return tuple(found)

    @traced_engine("reconciliation_matcher", "1.0", fingerprint_fields=("transactions", "open_items"))
    def auto_match(
        self,
        transactions: Sequence[BankTransaction],
        open_items: Sequence[OpenItem],
    ) -> tuple[BankTransaction, ...]:
        """
        Auto-match PENDING transactions with exactly one candidate.

        Args:
            transactions: Imported transactions, any status.
            open_items: Open invoices / payables.

        Returns:
            Transactions in input order; matched ones are MATCHED with the
            item reference set, everything else is returned unchanged.
        """
        t0 = time.monotonic()
        open_items = tuple(open_items)
        results: list[BankTransaction] = []
        matched = ambiguous = 0

        for transaction in transactions:
            if not transaction.is_pending:
                results.append(transaction)
                continue
            found = self.candidates(transaction, open_items)
            if len(found) == 1:
                results.append(_matched(transaction, found[0]))
                matched += 1
            else:
                if len(found) > 1:
                    ambiguous += 1
                results.append(transaction)

        logger.info("auto_match_completed", extra={
            "transaction_count": len(results),
            "open_item_count": len(open_items),
            "matched": matched,
            "ambiguous": ambiguous,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return tuple(results)

    def manual_match(self, transaction: BankTransaction, item: OpenItem) -> BankTransaction:
        """
        Match (or re-match) a transaction to an item chosen by a user.

        Allowed from PENDING or MATCHED when the amount difference is within
        ``manual_tolerance_ratio`` of the item's remaining amount.

        Raises:
            InvalidTransitionError: If the transaction is APPROVED.
            MatchToleranceExceededError: If the difference is too large.
        """
        if transaction.status == TransactionStatus.APPROVED:
            raise InvalidTransitionError(
                transaction.transaction_id,
                transaction.status.value,
                TransactionStatus.MATCHED.value,
            )
        difference = abs(item.remaining_amount - transaction.amount)
        tolerance = item.remaining_amount.clamp_non_negative() * self._policy.manual_tolerance_ratio
        if difference > tolerance:
            raise MatchToleranceExceededError(
                transaction_id=transaction.transaction_id,
                item_id=item.item_id,
                difference=str(difference.amount),
                tolerance=str(tolerance.amount),
            )
        logger.info("manual_match_applied", extra={
            "transaction_id": transaction.transaction_id,
            "item_id": item.item_id,
            "previous_status": transaction.status.value,
            "difference": str(difference.amount),
        })
        return _matched(transaction, item)

    def approve(self, transaction: BankTransaction) -> BankTransaction:
        """
        Confirm a match. One-way: MATCHED -> APPROVED.

        Raises:
            InvalidTransitionError: From any status other than MATCHED.
        """
        if transaction.status != TransactionStatus.MATCHED or not transaction.matched_invoice_id:
            raise InvalidTransitionError(
                transaction.transaction_id,
                transaction.status.value,
                TransactionStatus.APPROVED.value,
            )
        return replace(transaction, status=TransactionStatus.APPROVED)


def _matched(transaction: BankTransaction, item: OpenItem) -> BankTransaction:
    return replace(
        transaction,
        status=TransactionStatus.MATCHED,
        matched_invoice_id=item.item_id,
        matched_invoice_number=item.number,
    )
