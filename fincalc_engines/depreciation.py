"""
fincalc_engines.depreciation -- Monthly fixed-asset depreciation scheduler.

Responsibility:
    Compute one period's depreciation for an asset (straight-line or
    double-declining balance) and produce the immutable history entry plus
    the updated asset record. A batch variant runs a whole register for a
    period with partial-failure semantics.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The service layer loads assets and already-posted (asset_id, period)
    keys, calls this engine, and persists the results.

Invariants enforced:
    - ``accumulated_depreciation`` never exceeds ``cost - residual``;
      book value never drops below residual value.
    - Over the full life the expenses sum to exactly ``cost - residual``:
      the last month of the useful life takes the remainder.
    - Every period books at least one currency unit while value remains.
    - Idempotency: a period already posted for an asset is skipped.
    - ``book_value == cost - accumulated`` on every produced asset.

Failure modes:
    - MalformedAssetError from ``run_period`` when the record breaks an
      invariant; ``run_batch`` records it as a failure and continues.
    - InvalidPeriodError for a period that is not ``YYYY-MM``.

Usage:
    scheduler = DepreciationScheduler()
    outcome = scheduler.run_period(asset, "2025-01")
    if isinstance(outcome, DepreciationRun):
        persist(outcome.entry, outcome.updated_asset)
"""

from __future__ import annotations

import time
from collections.abc import Collection, Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from fincalc_engines.tracer import traced_engine
from fincalc_kernel.domain.values import AccountingPeriod, Money, sum_money
from fincalc_kernel.exceptions import MalformedAssetError
from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines.depreciation")


class DepreciationMethod(str, Enum):
    """Supported depreciation methods."""

    STRAIGHT_LINE = "STRAIGHT_LINE"
    DECLINING_BALANCE = "DECLINING_BALANCE"


class AssetStatus(str, Enum):
    """Asset lifecycle states. DISPOSED is set outside this engine."""

    ACTIVE = "ACTIVE"
    FULLY_DEPRECIATED = "FULLY_DEPRECIATED"
    DISPOSED = "DISPOSED"


class AssetCategory(str, Enum):
    """Register categories used by the asset screens."""

    BUILDING = "BUILDING"
    EQUIPMENT = "EQUIPMENT"
    VEHICLE = "VEHICLE"
    FURNITURE = "FURNITURE"
    COMPUTER = "COMPUTER"


class SkipReason(str, Enum):
    """Why a period was a no-op for an asset."""

    NOT_ACTIVE = "not_active"
    AT_RESIDUAL_VALUE = "at_residual_value"
    ALREADY_POSTED = "already_posted"
    BEFORE_ACQUISITION = "before_acquisition"


@dataclass(frozen=True)
class Asset:
    """A fixed asset as seen by the scheduler."""

    asset_id: str
    acquisition_cost: Money
    residual_value: Money
    useful_life_years: int
    depreciation_method: DepreciationMethod
    accumulated_depreciation: Money
    current_book_value: Money
    status: AssetStatus = AssetStatus.ACTIVE
    acquisition_date: date | None = None
    asset_code: str = ""
    asset_name: str = ""
    category: AssetCategory | None = None

    @classmethod
    def register(
        cls,
        asset_id: str,
        acquisition_cost: Money,
        residual_value: Money,
        useful_life_years: int,
        acquisition_date: date,
        depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE,
        **attributes,
    ) -> Asset:
        """New ACTIVE asset with no depreciation booked yet."""
        return cls(
            asset_id=asset_id,
            acquisition_cost=acquisition_cost,
            residual_value=residual_value,
            useful_life_years=useful_life_years,
            depreciation_method=depreciation_method,
            accumulated_depreciation=Money.zero(acquisition_cost.currency),
            current_book_value=acquisition_cost,
            status=AssetStatus.ACTIVE,
            acquisition_date=acquisition_date,
            **attributes,
        )

    @property
    def depreciable_amount(self) -> Money:
        return self.acquisition_cost - self.residual_value

    @property
    def total_periods(self) -> int:
        return self.useful_life_years * 12


@dataclass(frozen=True)
class DepreciationHistoryEntry:
    """Immutable, append-only record of one asset's depreciation for one period."""

    asset_id: str
    period: AccountingPeriod
    expense: Money
    accumulated_after: Money
    book_value_after: Money

    @property
    def idempotency_key(self) -> tuple[str, str]:
        return (self.asset_id, str(self.period))


@dataclass(frozen=True)
class DepreciationRun:
    """A computed period: the history entry and the asset after it."""

    entry: DepreciationHistoryEntry
    updated_asset: Asset


@dataclass(frozen=True)
class DepreciationSkip:
    """A period that was a no-op for an asset (not an error)."""

    asset_id: str
    period: AccountingPeriod
    reason: SkipReason


@dataclass(frozen=True)
class DepreciationFailure:
    """An asset the batch could not process."""

    asset_id: str
    reason: str


@dataclass(frozen=True)
class DepreciationBatchResult:
    """Outcome of a register-wide run for one period."""

    period: AccountingPeriod
    runs: tuple[DepreciationRun, ...] = ()
    skips: tuple[DepreciationSkip, ...] = ()
    failures: tuple[DepreciationFailure, ...] = ()

    @property
    def processed(self) -> int:
        return len(self.runs)

    @property
    def skipped(self) -> int:
        return len(self.skips)

    def total_expense(self, currency: str = "IDR") -> Money:
        return sum_money((run.entry.expense for run in self.runs), currency)


@dataclass(frozen=True)
class DepreciationPolicy:
    """
    Injectable scheduler settings.

    ``switch_to_straight_line`` lets declining balance switch to
    straight-line over the remaining life once that gives the larger
    expense.
    """

    declining_balance_factor: Decimal = Decimal("2")
    switch_to_straight_line: bool = False
    rounding: str = ROUND_HALF_UP

    def __post_init__(self) -> None:
        if self.declining_balance_factor <= 0:
            raise ValueError("Declining balance factor must be positive")


class DepreciationScheduler:
    """
    Per-asset, per-period depreciation computation.

    Contract:
        Pure functions -- no I/O, no clock. Already-posted periods are
        passed in explicitly by the caller.
    Guarantees:
        - Returns a DepreciationRun or a DepreciationSkip, never mutates
          the input asset.
        - The final expense brings book value exactly to residual value and
          flips status to FULLY_DEPRECIATED.
    Non-goals:
        - Does not dispose assets and does not persist history.
    """

    def __init__(self, policy: DepreciationPolicy | None = None) -> None:
        self._policy = policy or DepreciationPolicy()

    @traced_engine("depreciation", "1.0", fingerprint_fields=("asset", "period"))
    def run_period(
        self,
        asset: Asset,
        period: AccountingPeriod | str,
        posted_periods: Collection[AccountingPeriod | str] = (),
    ) -> DepreciationRun | DepreciationSkip:
        """
        Compute depreciation for one asset and one period.

        Args:
            asset: Current asset record.
            period: Period to depreciate (``YYYY-MM``).
            posted_periods: Periods already posted for this asset.

        Returns:
            DepreciationRun with the new history entry and updated asset,
            or DepreciationSkip with the reason nothing happened.

        Raises:
            MalformedAssetError: If the asset record is inconsistent.
        """
        period = AccountingPeriod.parse(period)
        asset_id = str(getattr(asset, "asset_id", "") or "<unknown>")
        status = _coerce_status(asset, asset_id)

        if status != AssetStatus.ACTIVE:
            return self._skip(asset_id, period, SkipReason.NOT_ACTIVE)

        method = self.validate_asset(asset)

        if str(period) in {str(p) for p in posted_periods}:
            return self._skip(asset_id, period, SkipReason.ALREADY_POSTED)

        if asset.current_book_value <= asset.residual_value:
            return self._skip(asset_id, period, SkipReason.AT_RESIDUAL_VALUE)

        period_index = period.months_since(asset.acquisition_date)
        if period_index < 1:
            return self._skip(asset_id, period, SkipReason.BEFORE_ACQUISITION)

        expense = self._period_expense(asset, method, period_index)
        accumulated_after = asset.accumulated_depreciation + expense
        book_after = asset.current_book_value - expense
        fully_depreciated = book_after <= asset.residual_value

        entry = DepreciationHistoryEntry(
            asset_id=asset_id,
            period=period,
            expense=expense,
            accumulated_after=accumulated_after,
            book_value_after=book_after,
        )
        updated = replace(
            asset,
            depreciation_method=method,
            accumulated_depreciation=accumulated_after,
            current_book_value=book_after,
            status=AssetStatus.FULLY_DEPRECIATED if fully_depreciated else AssetStatus.ACTIVE,
        )

        logger.debug("depreciation_period_computed", extra={
            "asset_id": asset_id,
            "period": str(period),
            "method": method.value,
            "expense": str(expense.amount),
            "book_value_after": str(book_after.amount),
            "fully_depreciated": fully_depreciated,
        })
        return DepreciationRun(entry=entry, updated_asset=updated)

    @traced_engine("depreciation", "1.0", fingerprint_fields=("period",))
    def run_batch(
        self,
        assets: Iterable[Asset],
        period: AccountingPeriod | str,
        posted_keys: Collection[tuple[str, str]] = (),
    ) -> DepreciationBatchResult:
        """
        Run one period for every asset independently.

        A malformed asset is recorded in ``failures`` and the batch continues.

        Args:
            assets: Asset register.
            period: Period to depreciate.
            posted_keys: ``(asset_id, "YYYY-MM")`` pairs already posted.
        """
        t0 = time.monotonic()
        period = AccountingPeriod.parse(period)
        posted_by_asset: dict[str, set[str]] = {}
        for asset_id, posted_period in posted_keys:
            posted_by_asset.setdefault(str(asset_id), set()).add(str(posted_period))

        runs: list[DepreciationRun] = []
        skips: list[DepreciationSkip] = []
        failures: list[DepreciationFailure] = []

        for asset in assets:
            asset_id = str(getattr(asset, "asset_id", "") or "<unknown>")
            try:
                outcome = self.run_period(
                    asset, period, posted_periods=posted_by_asset.get(asset_id, ()),
                )
            except MalformedAssetError as exc:
                logger.warning("depreciation_asset_failed", extra={
                    "asset_id": exc.asset_id,
                    "period": str(period),
                    "reason": exc.reason,
                })
                failures.append(DepreciationFailure(asset_id=exc.asset_id, reason=exc.reason))
                continue
            if isinstance(outcome, DepreciationRun):
                runs.append(outcome)
            else:
                skips.append(outcome)

        result = DepreciationBatchResult(
            period=period,
            runs=tuple(runs),
            skips=tuple(skips),
            failures=tuple(failures),
        )
        logger.info("depreciation_batch_completed", extra={
            "period": str(period),
            "processed": result.processed,
            "skipped": result.skipped,
            "failed": len(failures),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result

    def schedule(self, asset: Asset, start: AccountingPeriod | str) -> tuple[DepreciationHistoryEntry, ...]:
        """Project the remaining schedule from ``start`` until the asset stops depreciating."""
        period = AccountingPeriod.parse(start)
        entries: list[DepreciationHistoryEntry] = []
        current = asset
        # Useful life plus up to a year of lead-in before acquisition.
        for _ in range(max(asset.total_periods, 1) + 12):
            outcome = self.run_period(current, period)
            if isinstance(outcome, DepreciationSkip):
                if outcome.reason != SkipReason.BEFORE_ACQUISITION:
                    break
            else:
                entries.append(outcome.entry)
                current = outcome.updated_asset
            period = period.next()
        return tuple(entries)

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _period_expense(
        self,
        asset: Asset,
        method: DepreciationMethod,
        period_index: int,
    ) -> Money:
        policy = self._policy
        remaining = asset.current_book_value - asset.residual_value
        if period_index >= asset.total_periods:
            return remaining

        life_years = Decimal(asset.useful_life_years)
        if method == DepreciationMethod.STRAIGHT_LINE:
            expense = (asset.depreciable_amount / life_years / 12).round(policy.rounding)
        else:
            rate = policy.declining_balance_factor / life_years / 12
            expense = (asset.current_book_value * rate).round(policy.rounding)
            if policy.switch_to_straight_line:
                periods_left = asset.total_periods - period_index + 1
                straight = (remaining / periods_left).round(policy.rounding)
                expense = max(expense, straight)

        # Sub-unit charges book one unit per month until the remainder runs out.
        unit = Money.of(asset.acquisition_cost.currency.quantum, asset.acquisition_cost.currency)
        return min(max(expense, unit), remaining)

    @staticmethod
    def _skip(asset_id: str, period: AccountingPeriod, reason: SkipReason) -> DepreciationSkip:
        logger.debug("depreciation_period_skipped", extra={
            "asset_id": asset_id,
            "period": str(period),
            "reason": reason.value,
        })
        return DepreciationSkip(asset_id=asset_id, period=period, reason=reason)

    @staticmethod
    def validate_asset(asset: Asset) -> DepreciationMethod:
        """
        Check an asset record's invariants; returns the parsed method.

        Raises:
            MalformedAssetError: On the first broken invariant.
        """
        asset_id = str(getattr(asset, "asset_id", "") or "<unknown>")
        if not isinstance(asset, Asset):
            raise MalformedAssetError(asset_id, f"not an asset record: {type(asset).__name__}")
        if asset_id == "<unknown>":
            raise MalformedAssetError(asset_id, "missing asset_id")
        try:
            method = DepreciationMethod(asset.depreciation_method)
        except ValueError:
            raise MalformedAssetError(
                asset_id, f"unknown depreciation method {asset.depreciation_method!r}",
            ) from None

        life = asset.useful_life_years
        if isinstance(life, bool) or not isinstance(life, int) or life <= 0:
            raise MalformedAssetError(asset_id, f"useful life must be a positive integer, got {life!r}")

        acquired = asset.acquisition_date
        if acquired is None:
            raise MalformedAssetError(asset_id, "missing acquisition date")
        if isinstance(acquired, datetime) or not isinstance(acquired, date):
            raise MalformedAssetError(
                asset_id, f"acquisition date must be a calendar date, got {acquired!r}",
            )

        amounts = {
            "acquisition_cost": asset.acquisition_cost,
            "residual_value": asset.residual_value,
            "accumulated_depreciation": asset.accumulated_depreciation,
            "current_book_value": asset.current_book_value,
        }
        for name, value in amounts.items():
            if not isinstance(value, Money):
                raise MalformedAssetError(asset_id, f"{name} is not a Money amount")
            if value.is_negative:
                raise MalformedAssetError(asset_id, f"{name} is negative")
            if value.currency != asset.acquisition_cost.currency:
                raise MalformedAssetError(asset_id, f"{name} currency differs from cost")

        if asset.residual_value > asset.acquisition_cost:
            raise MalformedAssetError(asset_id, "residual value exceeds acquisition cost")
        if asset.current_book_value != asset.acquisition_cost - asset.accumulated_depreciation:
            raise MalformedAssetError(
                asset_id, "book value does not equal cost minus accumulated depreciation",
            )
        if asset.current_book_value < asset.residual_value:
            raise MalformedAssetError(asset_id, "book value is below residual value")
        return method


def _coerce_status(asset: Asset, asset_id: str) -> AssetStatus:
    try:
        return AssetStatus(getattr(asset, "status", None))
    except ValueError:
        raise MalformedAssetError(
            asset_id, f"unknown status {getattr(asset, 'status', None)!r}",
        ) from None
