"""
Incentive Tier Engine -- achievement-based tiered incentive simulation.

Maps an achievement percentage (achieved / target) onto a tier of an
incentive plan and computes the incentive amount from the tier rate. The
tier table is data (``IncentivePlan``), loaded from configuration.

Tiers are half-open ``[min_pct, max_pct)``: exactly 80% lands in the
80-100% tier, exactly 120% lands in the 120%+ tier.

Usage:
    from fincalc_engines.incentive import IncentiveTierEngine, default_plan

    engine = IncentiveTierEngine()
    result = engine.simulate(
        achieved=Decimal("120000000"),
        target=Decimal("100000000"),
        plan=default_plan(),
    )
    print(result.tier.label)           # Outstanding Performance
    print(result.incentive_amount)     # 18000000 IDR
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from fincalc_engines.tracer import traced_engine
from fincalc_kernel.domain.values import Money
from fincalc_kernel.exceptions import InvalidIncentivePlanError, InvalidTargetError
from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines.incentive")

_HUNDRED = Decimal("100")


class EmployeeRole(str, Enum):
    """Roles an incentive plan can apply to."""

    SALES = "SALES"
    SALES_MANAGER = "SALES_MANAGER"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    FINANCE_ADMIN = "FINANCE_ADMIN"
    CEO = "CEO"
    HR_ADMIN = "HR_ADMIN"


class IncentiveMetric(str, Enum):
    """Performance metric a plan measures."""

    REVENUE = "REVENUE"
    PROFIT_MARGIN = "PROFIT_MARGIN"
    PROJECTS_COMPLETED = "PROJECTS_COMPLETED"
    CUSTOMER_SATISFACTION = "CUSTOMER_SATISFACTION"
    COST_SAVINGS = "COST_SAVINGS"


@dataclass(frozen=True)
class IncentiveTier:
    """One band of a plan: ``[min_pct, max_pct)`` pays ``rate``."""

    min_pct: Decimal
    max_pct: Decimal | None
    rate: Decimal
    label: str

    def contains(self, pct: Decimal) -> bool:
        if pct < self.min_pct:
            return False
        return self.max_pct is None or pct < self.max_pct

    @property
    def band(self) -> str:
        """Human-readable band, e.g. ``80-100%`` or ``120%+``."""
        if self.max_pct is None:
            return f"{self.min_pct.normalize():f}%+"
        return f"{self.min_pct.normalize():f}-{self.max_pct.normalize():f}%"


@dataclass(frozen=True)
class IncentivePlan:
    """
    An incentive plan: ordered tiers covering ``[0, inf)``.

    Guarantees:
        - First tier starts at 0, tiers are contiguous (each ``max_pct``
          equals the next ``min_pct``) and only the last is open-ended.
        - Rates are within [0, 1].
    """

    code: str
    tiers: tuple[IncentiveTier, ...]
    applies_to_role: EmployeeRole | None = None
    metric: IncentiveMetric | None = None
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "tiers", tuple(self.tiers))
        problems = _plan_problems(self.tiers)
        if problems:
            raise InvalidIncentivePlanError(self.code, "; ".join(problems))

    def tier_for(self, pct: Decimal) -> IncentiveTier:
        for tier in self.tiers:
            if tier.contains(pct):
                return tier
        # Unreachable for a validated plan and pct >= 0.
        raise InvalidIncentivePlanError(self.code, f"no tier covers {pct}%")

    def applies_to(self, role: EmployeeRole | str, metric: IncentiveMetric | str) -> bool:
        role_ok = self.applies_to_role is None or self.applies_to_role == EmployeeRole(role)
        metric_ok = self.metric is None or self.metric == IncentiveMetric(metric)
        return role_ok and metric_ok


def _plan_problems(tiers: tuple[IncentiveTier, ...]) -> list[str]:
    if not tiers:
        return ["plan has no tiers"]
    problems: list[str] = []
    if tiers[0].min_pct != 0:
        problems.append(f"first tier starts at {tiers[0].min_pct}%, expected 0%")
    for index, tier in enumerate(tiers):
        if not Decimal("0") <= tier.rate <= Decimal("1"):
            problems.append(f"tier {index} rate {tier.rate} outside [0, 1]")
        is_last = index == len(tiers) - 1
        if tier.max_pct is None:
            if not is_last:
                problems.append(f"tier {index} is open-ended but not last")
            continue
        if tier.max_pct <= tier.min_pct:
            problems.append(f"tier {index} is empty or inverted")
        if is_last:
            problems.append("last tier must be open-ended")
        elif tiers[index + 1].min_pct != tier.max_pct:
            problems.append(
                f"tier {index} ends at {tier.max_pct}% but tier {index + 1} "
                f"starts at {tiers[index + 1].min_pct}%"
            )
    return problems


DEFAULT_TIERS: tuple[IncentiveTier, ...] = (
    IncentiveTier(Decimal("0"), Decimal("80"), Decimal("0"), "Below Target"),
    IncentiveTier(Decimal("80"), Decimal("100"), Decimal("0.05"), "Good Performance"),
    IncentiveTier(Decimal("100"), Decimal("120"), Decimal("0.10"), "Excellent Performance"),
    IncentiveTier(Decimal("120"), None, Decimal("0.15"), "Outstanding Performance"),
)


def default_plan() -> IncentivePlan:
    """The standard sales revenue plan."""
    return IncentivePlan(
        code="SALES_REVENUE",
        name="Sales Revenue Incentive",
        tiers=DEFAULT_TIERS,
        applies_to_role=EmployeeRole.SALES,
        metric=IncentiveMetric.REVENUE,
    )


def select_plan(
    plans: Iterable[IncentivePlan],
    role: EmployeeRole | str,
    metric: IncentiveMetric | str,
) -> IncentivePlan | None:
    """First plan that applies to ``role`` and ``metric``, or None."""
    for plan in plans:
        if plan.applies_to(role, metric):
            return plan
    return None


@dataclass(frozen=True)
class IncentiveBreakdown:
    """How the incentive amount was derived."""

    plan_code: str
    achieved: Decimal
    target: Decimal
    basis: Money
    basis_source: str
    rate: Decimal

    @property
    def formula(self) -> str:
        return f"{self.basis_source} x tier rate"

    def describe(self) -> str:
        pct = (self.rate * _HUNDRED).normalize()
        return f"{self.basis.amount:f} x {pct:f}%"

    def as_dict(self) -> dict[str, str]:
        return {"formula": self.formula, "breakdown": self.describe()}


@dataclass(frozen=True)
class IncentiveResult:
    """Simulation outcome. ``achievement_pct`` is unrounded."""

    achievement_pct: Decimal
    tier: IncentiveTier
    incentive_amount: Money
    breakdown: IncentiveBreakdown

    @property
    def incentive_pct(self) -> Decimal:
        return self.tier.rate * _HUNDRED


class IncentiveTierEngine:
    """
    Tiered incentive calculator.

    Contract:
        Pure function of achieved, target, plan and optional base salary.
    Guarantees:
        - Zero or negative achievement yields the lowest tier, never an error.
        - The amount is rounded half-up to the currency unit.
    """

    def __init__(self, currency: str = "IDR") -> None:
        self._currency = currency

    @traced_engine(
        "incentive", "1.0",
        fingerprint_fields=("achieved", "target", "plan", "base_salary"),
    )
    def simulate(
        self,
        achieved: Decimal | int | str | Money,
        target: Decimal | int | str | Money,
        plan: IncentivePlan | None = None,
        base_salary: Decimal | int | str | Money | None = None,
    ) -> IncentiveResult:
        """
        Simulate the incentive for one achievement figure.

        Args:
            achieved: Achieved metric value.
            target: Target metric value; must be > 0.
            plan: Tier table; defaults to ``default_plan()``.
            base_salary: When given, the rate applies to it instead of
                the achieved value.

        Raises:
            InvalidTargetError: If ``target <= 0``.
        """
        t0 = time.monotonic()
        plan = plan or default_plan()
        achieved_value = _to_decimal(achieved)
        target_value = _to_decimal(target)
        if target_value <= 0:
            raise InvalidTargetError(str(target_value))

        clamped = max(Decimal("0"), achieved_value)
        achievement_pct = clamped / target_value * _HUNDRED
        tier = plan.tier_for(achievement_pct)

        if base_salary is not None:
            basis = Money.of(_to_decimal(base_salary), self._currency).clamp_non_negative()
            basis_source = "base_salary"
        else:
            basis = Money.of(clamped, self._currency)
            basis_source = "achieved_value"
        amount = (basis * tier.rate).round(ROUND_HALF_UP)

        result = IncentiveResult(
            achievement_pct=achievement_pct,
            tier=tier,
            incentive_amount=amount,
            breakdown=IncentiveBreakdown(
                plan_code=plan.code,
                achieved=achieved_value,
                target=target_value,
                basis=basis,
                basis_source=basis_source,
                rate=tier.rate,
            ),
        )

        logger.info("incentive_simulated", extra={
            "plan_code": plan.code,
            "achievement_pct": str(achievement_pct),
            "tier": tier.label,
            "incentive_amount": str(amount.amount),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        })
        return result


def _to_decimal(value: Decimal | int | str | Money) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid numeric value: {value!r}") from e
