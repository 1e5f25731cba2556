"""
fincalc_services.calculation_service -- Stateless tax and incentive calculations.

Responsibility:
    Map the tax-estimate and incentive-simulation requests onto the pure
    engines, using the tables and plans from the active configuration, and
    map the results back to plain response dicts.

Architecture position:
    Services -- no persistence; thin request/response mapping only.

Failure modes:
    - InvalidTargetError when ``target_value <= 0``.
    - InvalidIncentiveRequestError when the role or metric is not a known
      value.
    - InvalidIncentivePlanError when no configured plan applies to the
      requested role and metric.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, TypeVar

from fincalc_config import EngineConfiguration, get_active_config
from fincalc_engines.incentive import EmployeeRole, IncentiveMetric, IncentiveTierEngine
from fincalc_engines.withholding_tax import TaxBracketCalculator
from fincalc_kernel.exceptions import InvalidIncentivePlanError, InvalidIncentiveRequestError
from fincalc_kernel.logging_config import get_logger

logger = get_logger("services.calculation")

_PCT_PLACES = Decimal("0.01")

E = TypeVar("E", bound=Enum)


class CalculationService:
    """Tax estimate and incentive simulation endpoints."""

    def __init__(self, config: EngineConfiguration | None = None) -> None:
        self.config = config or get_active_config()
        currency = self.config.scope.currency
        self._tax = TaxBracketCalculator(self.config.withholding_tax)
        self._incentive = IncentiveTierEngine(currency)

    def estimate_tax(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """
        ``{basic_salary, allowances[], ptkp_code, has_npwp}`` ->
        ``{monthly_tax, annual_taxable_base}``.
        """
        estimate = self._tax.estimate(
            basic_salary=request.get("basic_salary"),
            allowances=request.get("allowances") or (),
            ptkp_code=request.get("ptkp_code"),
            has_npwp=bool(request.get("has_npwp", False)),
        )
        return {
            "monthly_tax": estimate.monthly_tax.amount,
            "annual_taxable_base": estimate.annual_taxable_base.amount,
        }

    def simulate_incentive(self, request: Mapping[str, Any]) -> dict[str, Any]:
        """
        ``{role, metric, achieved_value, target_value, base_salary?}`` ->
        ``{achievement_pct, tier, incentive_amount, calculation_details}``.
        """
        role = _parse(EmployeeRole, "role", request.get("role"))
        metric = _parse(IncentiveMetric, "metric", request.get("metric"))
        plan = self.config.plan_for(role, metric)
        if plan is None:
            raise InvalidIncentivePlanError(
                f"{role.value}/{metric.value}", "no incentive plan applies to this role and metric",
            )

        base_salary = request.get("base_salary")
        # The simulation form sends 0 when the field is left empty.
        if base_salary in (None, "", 0, "0"):
            base_salary = None

        result = self._incentive.simulate(
            achieved=request.get("achieved_value", 0),
            target=request.get("target_value", 0),
            plan=plan,
            base_salary=base_salary,
        )
        logger.info("incentive_simulation_served", extra={
            "role": role.value,
            "metric": metric.value,
            "plan_code": plan.code,
        })
        return {
            "achievement_pct": result.achievement_pct.quantize(_PCT_PLACES, rounding=ROUND_HALF_UP),
            "tier": result.tier.label,
            "incentive_amount": result.incentive_amount.amount,
            "calculation_details": result.breakdown.as_dict(),
        }


def _parse(enum_type: type[E], field: str, value: Any) -> E:
    try:
        return enum_type(value)
    except ValueError:
        raise InvalidIncentiveRequestError(field, value) from None
