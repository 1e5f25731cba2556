"""
fincalc_engines.ledger_balance -- Double-entry journal balance validator.

Responsibility:
    Decide whether a set of proposed journal lines may be committed as one
    journal entry. The answer is all-or-nothing: either every line is
    accepted as one entry or the whole set is rejected with a
    machine-readable reason and the numeric context the caller surfaces.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    JournalService calls ``validate`` and persists only an accepted result,
    inside the caller's transaction.

Invariants enforced:
    - Every line carries exactly one non-zero side (debit xor credit).
    - At least two lines carry a non-zero amount.
    - Sum of debits == sum of credits, exactly (Decimal, no tolerance).
    - All lines share one currency.

Failure modes:
    - Rejections are returned as ``JournalValidation`` values, never raised.
    - ``JournalEntry.from_validation`` raises UnbalancedJournalError when
      handed a rejected validation.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from fincalc_engines.tracer import traced_engine
from fincalc_kernel.domain.values import Money, as_money, sum_money
from fincalc_kernel.exceptions import UnbalancedJournalError
from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines.ledger_balance")


class RejectionReason(str, Enum):
    """Why a journal was rejected, in the order the rules are checked."""

    LINE_HAS_BOTH_SIDES = "line_has_both_sides"
    LINE_HAS_NO_AMOUNT = "line_has_no_amount"
    NEGATIVE_AMOUNT = "negative_amount"
    MIXED_CURRENCY = "mixed_currency"
    INSUFFICIENT_LINES = "insufficient_lines"
    UNBALANCED = "unbalanced"


@dataclass(frozen=True)
class JournalEntryLine:
    """One proposed journal line. Zero on the unused side."""

    account_id: str
    debit: Money
    credit: Money
    memo: str = ""

    @classmethod
    def create(
        cls,
        account_id: str,
        debit: Money | Decimal | int | str | None = None,
        credit: Money | Decimal | int | str | None = None,
        currency: str = "IDR",
        memo: str = "",
    ) -> JournalEntryLine:
        """Build a line from boundary values; a missing side becomes zero."""
        return cls(
            account_id=account_id,
            debit=as_money(debit, currency),
            credit=as_money(credit, currency),
            memo=memo,
        )

    @property
    def is_debit(self) -> bool:
        return not self.debit.is_zero

    @property
    def amount(self) -> Money:
        """The non-zero side of the line."""
        return self.debit if self.is_debit else self.credit


@dataclass(frozen=True)
class JournalValidation:
    """
    Outcome of ``LedgerBalanceValidator.validate``.

    ``imbalance_amount`` is ``abs(total_debit - total_credit)``; it is
    zero for rejections caught before the balance rule. ``line_index`` is
    the zero-based offending line for per-line rejections.
    """

    accepted: bool
    total_debit: Money
    total_credit: Money
    imbalance_amount: Money
    reason: RejectionReason | None = None
    line_index: int | None = None
    lines: tuple[JournalEntryLine, ...] = ()

    @classmethod
    def ok(
        cls,
        lines: tuple[JournalEntryLine, ...],
        total_debit: Money,
        total_credit: Money,
    ) -> JournalValidation:
        return cls(
            accepted=True,
            total_debit=total_debit,
            total_credit=total_credit,
            imbalance_amount=Money.zero(total_debit.currency),
            lines=lines,
        )

    @classmethod
    def rejected(
        cls,
        reason: RejectionReason,
        total_debit: Money,
        total_credit: Money,
        line_index: int | None = None,
    ) -> JournalValidation:
        imbalance = Money.zero(total_debit.currency)
        if reason == RejectionReason.UNBALANCED:
            imbalance = abs(total_debit - total_credit)
        return cls(
            accepted=False,
            total_debit=total_debit,
            total_credit=total_credit,
            imbalance_amount=imbalance,
            reason=reason,
            line_index=line_index,
        )

    def __bool__(self) -> bool:
        return self.accepted

    def raise_if_rejected(self) -> None:
        if not self.accepted:
            raise UnbalancedJournalError(
                reason=self.reason.value if self.reason else "unknown",
                imbalance_amount=str(self.imbalance_amount.amount),
                total_debit=str(self.total_debit.amount),
                total_credit=str(self.total_credit.amount),
                line_index=self.line_index,
            )


@dataclass(frozen=True)
class JournalEntry:
    """
    A balanced journal entry ready to be persisted.

    Built only through ``from_validation`` so an unbalanced entry cannot be
    represented.
    """

    transaction_date: date
    description: str
    lines: tuple[JournalEntryLine, ...]
    total: Money
    reference: str | None = None

    @classmethod
    def from_validation(
        cls,
        validation: JournalValidation,
        transaction_date: date,
        description: str,
        reference: str | None = None,
    ) -> JournalEntry:
        validation.raise_if_rejected()
        return cls(
            transaction_date=transaction_date,
            description=description,
            lines=validation.lines,
            total=validation.total_debit,
            reference=reference,
        )


class LedgerBalanceValidator:
    """
    All-or-nothing journal validation.

    Contract:
        Pure function of the lines -- no I/O, no persistence.
    Guarantees:
        - Rules are checked in a fixed order: per-line rules (first
          offending line wins), then the two-line minimum, then balance.
        - An accepted result always has ``total_debit == total_credit``.
    """

    def __init__(self, currency: str = "IDR") -> None:
        self._currency = currency

    @traced_engine("ledger_balance", "1.0", fingerprint_fields=("lines",))
    def validate(self, lines: Sequence[JournalEntryLine]) -> JournalValidation:
        """
        Validate proposed journal lines.

        Args:
            lines: Proposed lines, in entry order.

        Returns:
            JournalValidation; ``accepted`` is False with a reason when any
            rule fails.
        """
        lines = tuple(lines)
        currency = lines[0].debit.currency.code if lines else self._currency

        for index, line in enumerate(lines):
            reason = _line_rejection(line, currency)
            if reason is not None:
                totals = _safe_totals(lines, currency)
                return self._reject(reason, *totals, line_index=index)

        total_debit = sum_money((line.debit for line in lines), currency)
        total_credit = sum_money((line.credit for line in lines), currency)

        if len(lines) < 2:
            return self._reject(RejectionReason.INSUFFICIENT_LINES, total_debit, total_credit)

        if total_debit != total_credit:
            return self._reject(RejectionReason.UNBALANCED, total_debit, total_credit)

        logger.debug("journal_validation_accepted", extra={
            "line_count": len(lines),
            "total": str(total_debit.amount),
        })
        return JournalValidation.ok(lines, total_debit, total_credit)

    @staticmethod
    def _reject(
        reason: RejectionReason,
        total_debit: Money,
        total_credit: Money,
        line_index: int | None = None,
    ) -> JournalValidation:
        result = JournalValidation.rejected(reason, total_debit, total_credit, line_index)
        logger.warning("journal_validation_rejected", extra={
            "reason": reason.value,
            "line_index": line_index,
            "total_debit": str(total_debit.amount),
            "total_credit": str(total_credit.amount),
            "imbalance_amount": str(result.imbalance_amount.amount),
        })
        return result


def _line_rejection(line: JournalEntryLine, currency: str) -> RejectionReason | None:
    if line.debit.currency.code != currency or line.credit.currency.code != currency:
        return RejectionReason.MIXED_CURRENCY
    if line.debit.is_negative or line.credit.is_negative:
        return RejectionReason.NEGATIVE_AMOUNT
    if not line.debit.is_zero and not line.credit.is_zero:
        return RejectionReason.LINE_HAS_BOTH_SIDES
    if line.debit.is_zero and line.credit.is_zero:
        return RejectionReason.LINE_HAS_NO_AMOUNT
    return None


def _safe_totals(lines: tuple[JournalEntryLine, ...], currency: str) -> tuple[Money, Money]:
    """Totals over the lines in ``currency``; other currencies are left out."""
    debit = sum_money((l.debit for l in lines if l.debit.currency.code == currency), currency)
    credit = sum_money((l.credit for l in lines if l.credit.currency.code == currency), currency)
    return debit, credit
