"""
fincalc_services.depreciation_service -- Monthly depreciation run over the asset register.

Responsibility:
    Load the asset register and the (asset_id, period) keys already posted,
    run the pure DepreciationScheduler batch, and persist each computed
    period: history row, updated asset balances, and a balanced journal
    (Dr depreciation expense / Cr accumulated depreciation).

Architecture position:
    Services -- imperative shell over DepreciationScheduler and
    JournalService. Flushes only; the caller commits.

Invariants enforced:
    - Idempotency: posted keys are read before the batch and the engine
      skips them; the UNIQUE (asset_id, period) constraint rejects a
      concurrent double post, and the journal idempotency key does the
      same for the charge.
    - Partial failure: a malformed asset is reported in ``failures`` and
      does not stop the rest of the register.

Failure modes:
    - InvalidPeriodError for a period that is not ``YYYY-MM``.
    - OptimisticLockError when another run posted the same period first.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fincalc_config import EngineConfiguration, get_active_config
from fincalc_engines.depreciation import (
    Asset,
    AssetCategory,
    DepreciationMethod,
    DepreciationRun,
    DepreciationScheduler,
)
from fincalc_engines.ledger_balance import JournalEntryLine
from fincalc_kernel.domain.values import AccountingPeriod, Money
from fincalc_kernel.exceptions import OptimisticLockError
from fincalc_kernel.logging_config import LogContext, get_logger
from fincalc_kernel.models.asset import AssetModel, DepreciationHistoryModel
from fincalc_services.journal_service import JournalService, parse_iso_date

logger = get_logger("services.depreciation")


def asset_from_model(model: AssetModel) -> Asset:
    """Engine view of an asset row. Status and method pass through as stored."""
    currency = model.currency
    return Asset(
        asset_id=str(model.id),
        acquisition_cost=Money.of(model.acquisition_cost, currency),
        residual_value=Money.of(model.residual_value, currency),
        useful_life_years=model.useful_life_years,
        depreciation_method=model.depreciation_method,
        accumulated_depreciation=Money.of(model.accumulated_depreciation, currency),
        current_book_value=Money.of(model.current_book_value, currency),
        status=model.status,
        acquisition_date=model.acquisition_date,
        asset_code=model.asset_code,
        asset_name=model.asset_name,
        category=AssetCategory(model.category) if model.category else None,
    )


class DepreciationService:
    """
    Runs and persists monthly depreciation.

    Contract:
        ``run(period)`` returns ``{period, assets_processed, skipped,
        failures, total_expense}``.
        ``summary()`` and ``history(asset_id)`` read the register back.
    Non-goals:
        - Does not dispose assets.
    """

    def __init__(
        self,
        session: Session,
        config: EngineConfiguration | None = None,
        journal: JournalService | None = None,
    ) -> None:
        self.session = session
        self.config = config or get_active_config()
        self._currency = self.config.scope.currency
        self._scheduler = DepreciationScheduler(self.config.depreciation)
        self._journal = journal or JournalService(session, currency=self._currency)

    def register_asset(
        self,
        request: Mapping[str, Any],
        created_by: str | None = None,
    ) -> AssetModel:
        """
        Add an ACTIVE asset with no depreciation booked.

        Raises:
            MalformedAssetError: If cost, residual or life are inconsistent,
                or the acquisition date is missing.
        """
        acquisition_date = request.get("acquisition_date")
        model = AssetModel(
            id=uuid4(),
            asset_code=request["asset_code"],
            asset_name=request.get("asset_name") or request["asset_code"],
            category=AssetCategory(request["category"]).value if request.get("category") else None,
            acquisition_date=parse_iso_date(acquisition_date) if acquisition_date else None,
            currency=self._currency,
            acquisition_cost=Money.of(request["acquisition_cost"], self._currency).amount,
            residual_value=Money.of(request.get("residual_value") or 0, self._currency).amount,
            useful_life_years=int(request["useful_life_years"]),
            depreciation_method=DepreciationMethod(
                request.get("depreciation_method") or DepreciationMethod.STRAIGHT_LINE.value,
            ).value,
            accumulated_depreciation=Decimal("0"),
            status="ACTIVE",
            created_by=created_by,
        )
        model.current_book_value = model.acquisition_cost
        DepreciationScheduler.validate_asset(asset_from_model(model))

        self.session.add(model)
        self.session.flush()
        logger.info("asset_registered", extra={
            "asset_id": str(model.id),
            "asset_code": model.asset_code,
            "acquisition_cost": str(model.acquisition_cost),
            "method": model.depreciation_method,
        })
        return model

    def run(self, period: AccountingPeriod | str, created_by: str | None = None) -> dict[str, Any]:
        """
        Depreciate every asset for ``period``.

        Returns:
            ``{period, assets_processed, skipped, failures: [{asset_id,
            reason}], total_expense}``.
        """
        period = AccountingPeriod.parse(period)
        with LogContext.bind(period=str(period), actor_id=created_by):
            return self._run(period, created_by)

    def summary(self) -> dict[str, Any]:
        """
        Register totals, overall and grouped by category and by status.

        Returns:
            ``{total, by_category, by_status}``; each bucket is ``{count,
            acquisition_cost, accumulated_depreciation, book_value}``.
            Assets without a category are grouped under ``UNCATEGORIZED``.
        """
        total = _summary_bucket()
        by_category: dict[str, dict[str, Any]] = {}
        by_status: dict[str, dict[str, Any]] = {}

        for model in self.session.execute(select(AssetModel)).scalars():
            for bucket in (
                total,
                by_category.setdefault(model.category or "UNCATEGORIZED", _summary_bucket()),
                by_status.setdefault(model.status, _summary_bucket()),
            ):
                bucket["count"] += 1
                bucket["acquisition_cost"] += model.acquisition_cost
                bucket["accumulated_depreciation"] += model.accumulated_depreciation
                bucket["book_value"] += model.current_book_value

        return {"total": total, "by_category": by_category, "by_status": by_status}

    def history(self, asset_id: UUID | str) -> list[DepreciationHistoryModel]:
        """Posted periods for one asset, oldest first. Unknown ids give an empty list."""
        if not isinstance(asset_id, UUID):
            try:
                asset_id = UUID(str(asset_id))
            except ValueError:
                return []
        return list(self.session.execute(
            select(DepreciationHistoryModel)
            .where(DepreciationHistoryModel.asset_id == asset_id)
            .order_by(DepreciationHistoryModel.period)
        ).scalars())

    def _run(self, period: AccountingPeriod, created_by: str | None) -> dict[str, Any]:
        t0 = time.monotonic()

        models = self.session.execute(
            select(AssetModel).order_by(AssetModel.asset_code)
        ).scalars().all()
        by_id = {str(m.id): m for m in models}
        posted_keys = {
            (str(asset_id), posted)
            for asset_id, posted in self.session.execute(
                select(DepreciationHistoryModel.asset_id, DepreciationHistoryModel.period)
                .where(DepreciationHistoryModel.period == str(period))
            )
        }

        logger.info("depreciation_run_started", extra={
            "period": str(period),
            "asset_count": len(models),
            "already_posted": len(posted_keys),
        })

        result = self._scheduler.run_batch(
            [asset_from_model(m) for m in models], period, posted_keys,
        )

        try:
            for run in result.runs:
                self._persist_run(by_id[run.entry.asset_id], run, period, created_by)
            self.session.flush()
        except IntegrityError as exc:
            logger.warning("depreciation_run_conflict", extra={"period": str(period)})
            raise OptimisticLockError("depreciation_history", str(period)) from exc

        total = result.total_expense(self._currency)
        logger.info("depreciation_run_completed", extra={
            "period": str(period),
            "assets_processed": result.processed,
            "skipped": result.skipped,
            "failed": len(result.failures),
            "total_expense": str(total.amount),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return {
            "period": str(period),
            "assets_processed": result.processed,
            "skipped": result.skipped,
            "failures": [
                {"asset_id": f.asset_id, "reason": f.reason} for f in result.failures
            ],
            "total_expense": total.amount,
        }

    def _persist_run(
        self,
        model: AssetModel,
        run: DepreciationRun,
        period: AccountingPeriod,
        created_by: str | None,
    ) -> None:
        accounts = self.config.posting_accounts
        expense = run.entry.expense
        zero = Money.zero(expense.currency)
        journal = self._journal.post_lines(
            [
                JournalEntryLine(accounts.depreciation_expense, debit=expense, credit=zero,
                                 memo=model.asset_code),
                JournalEntryLine(accounts.accumulated_depreciation, debit=zero, credit=expense,
                                 memo=model.asset_code),
            ],
            transaction_date=period.last_day,
            description=f"Depreciation {model.asset_code} {period}",
            source="depreciation",
            reference=model.asset_code,
            idempotency_key=f"depreciation:{model.id}:{period}",
            created_by=created_by,
        )

        self.session.add(DepreciationHistoryModel(
            asset_id=model.id,
            period=str(period),
            expense=expense.amount,
            accumulated_after=run.entry.accumulated_after.amount,
            book_value_after=run.entry.book_value_after.amount,
            journal_entry_id=journal.id,
            created_by=created_by,
        ))

        updated = run.updated_asset
        model.accumulated_depreciation = updated.accumulated_depreciation.amount
        model.current_book_value = updated.current_book_value.amount
        model.status = updated.status.value


def _summary_bucket() -> dict[str, Any]:
    return {
        "count": 0,
        "acquisition_cost": Decimal("0"),
        "accumulated_depreciation": Decimal("0"),
        "book_value": Decimal("0"),
    }
