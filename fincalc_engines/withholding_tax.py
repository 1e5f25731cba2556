"""
Withholding Tax Engine -- progressive PPh21 monthly withholding estimate.

Estimates an employee's monthly income-tax withholding from basic salary,
allowances, the PTKP (non-taxable threshold) status code and whether the
employee has an NPWP (tax ID). Pure functions with no I/O -- the PTKP table
and the bracket schedule are passed in as a ``WithholdingTaxTable``.

Simplifications carried over from the payroll preview this replaces:
    - No BPJS, pension or occupational-cost deductions: net == gross.
    - Annualisation is ``gross_monthly * 12``.

Usage:
    from fincalc_engines.withholding_tax import TaxBracketCalculator, PtkpCode
    from fincalc_kernel.domain.values import Money

    calculator = TaxBracketCalculator()
    estimate = calculator.estimate(
        basic_salary=Money.of(10_000_000),
        allowances=[],
        ptkp_code=PtkpCode.TK0,
        has_npwp=True,
    )
    print(estimate.monthly_tax)  # Money: 325000 IDR
"""

from __future__ import annotations

import re
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from fincalc_engines.tracer import traced_engine
from fincalc_kernel.domain.values import Money, as_money, sum_money
from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines.withholding_tax")

_MONTHS_PER_YEAR = Decimal("12")


class PtkpCode(str, Enum):
    """PTKP status: marital status (TK = single, K = married) / dependents."""

    TK0 = "TK/0"
    TK1 = "TK/1"
    K0 = "K/0"
    K1 = "K/1"
    K2 = "K/2"
    K3 = "K/3"

    @classmethod
    def parse(cls, value: PtkpCode | str | None) -> PtkpCode:
        """Parse a PTKP code; missing or unknown codes fall back to TK/0."""
        if isinstance(value, PtkpCode):
            return value
        if value:
            normalized = value.strip().upper().replace(" ", "")
            for code in cls:
                if code.value == normalized:
                    return code
        return cls.TK0


@dataclass(frozen=True)
class TaxProfile:
    """Tax status of one employee for a single calculation."""

    ptkp_code: PtkpCode = PtkpCode.TK0
    has_npwp: bool = False


@dataclass(frozen=True)
class TaxBracket:
    """
    One band of the progressive schedule.

    ``upper_bound`` is the cumulative ceiling of the band; ``None`` marks the
    open-ended top band.
    """

    upper_bound: Decimal | None
    rate: Decimal

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.rate <= Decimal("1"):
            raise ValueError(f"Bracket rate must be within [0, 1], got {self.rate}")
        if self.upper_bound is not None and self.upper_bound <= 0:
            raise ValueError("Bracket upper bound must be positive")


DEFAULT_PTKP: dict[PtkpCode, Decimal] = {
    PtkpCode.TK0: Decimal("54000000"),
    PtkpCode.TK1: Decimal("58500000"),
    PtkpCode.K0: Decimal("58500000"),
    PtkpCode.K1: Decimal("63000000"),
    PtkpCode.K2: Decimal("67500000"),
    PtkpCode.K3: Decimal("72000000"),
}

DEFAULT_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("60000000"), Decimal("0.05")),
    TaxBracket(Decimal("250000000"), Decimal("0.15")),
    TaxBracket(Decimal("500000000"), Decimal("0.25")),
    TaxBracket(Decimal("5000000000"), Decimal("0.30")),
    TaxBracket(None, Decimal("0.35")),
)


@dataclass(frozen=True)
class WithholdingTaxTable:
    """
    Injectable tax configuration: PTKP amounts and the bracket schedule.

    Guarantees:
        - Brackets have strictly ascending upper bounds and exactly one
          open-ended band, in last position.
        - The default PTKP code has an entry in ``ptkp``.
    """

    ptkp: Mapping[PtkpCode, Decimal] = field(default_factory=lambda: dict(DEFAULT_PTKP))
    brackets: tuple[TaxBracket, ...] = DEFAULT_BRACKETS
    default_ptkp_code: PtkpCode = PtkpCode.TK0
    taxable_base_rounding: Decimal = Decimal("1000")
    no_npwp_surcharge: Decimal = Decimal("1.20")
    currency: str = "IDR"

    def __post_init__(self) -> None:
        if not self.brackets:
            raise ValueError("At least one tax bracket is required")
        if self.brackets[-1].upper_bound is not None:
            raise ValueError("The last tax bracket must be open-ended")
        previous = Decimal("0")
        for bracket in self.brackets[:-1]:
            if bracket.upper_bound is None:
                raise ValueError("Only the last tax bracket may be open-ended")
            if bracket.upper_bound <= previous:
                raise ValueError("Tax bracket upper bounds must be ascending")
            previous = bracket.upper_bound
        if self.default_ptkp_code not in self.ptkp:
            raise ValueError(f"PTKP table has no entry for {self.default_ptkp_code.value}")
        if self.taxable_base_rounding <= 0:
            raise ValueError("Taxable base rounding unit must be positive")
        if self.no_npwp_surcharge < 1:
            raise ValueError("NPWP surcharge factor cannot reduce tax")

    def ptkp_for(self, code: PtkpCode | str | None) -> tuple[PtkpCode, Money]:
        """Resolve a code to its annual exemption; unknown codes use the default."""
        parsed = PtkpCode.parse(code)
        if parsed not in self.ptkp:
            parsed = self.default_ptkp_code
        return parsed, Money.of(self.ptkp[parsed], self.currency)


@dataclass(frozen=True)
class BracketLine:
    """Portion of the taxable base taxed inside one bracket."""

    lower_bound: Decimal
    upper_bound: Decimal | None
    rate: Decimal
    taxable_amount: Money
    tax_amount: Money


@dataclass(frozen=True)
class TaxEstimate:
    """
    Result of a withholding estimate.

    ``monthly_tax`` and ``annual_taxable_base`` are the two figures the
    payroll screen shows; the rest is the calculation trail.
    """

    monthly_tax: Money
    annual_taxable_base: Money
    annual_tax: Money
    gross_monthly: Money
    net_annual: Money
    ptkp_code: PtkpCode
    ptkp_amount: Money
    npwp_surcharge_applied: bool
    bracket_lines: tuple[BracketLine, ...] = ()

    @property
    def effective_rate(self) -> Decimal:
        """Annual tax / net annual income."""
        if self.net_annual.is_zero:
            return Decimal("0")
        return self.annual_tax.amount / self.net_annual.amount


class TaxBracketCalculator:
    """
    Progressive withholding-tax estimator.

    Contract:
        Pure function of its inputs and the injected table -- no I/O.
    Guarantees:
        - Never returns a negative figure; zero income yields zero tax.
        - Monotonic non-decreasing in gross salary for a fixed profile.
        - Marginal: each bracket taxes only the slice of the base inside it.
    """

    def __init__(self, table: WithholdingTaxTable | None = None) -> None:
        self._table = table or WithholdingTaxTable()

    @property
    def table(self) -> WithholdingTaxTable:
        return self._table

    @traced_engine(
        "withholding_tax", "1.0",
        fingerprint_fields=("basic_salary", "allowances", "ptkp_code", "has_npwp"),
    )
    def estimate(
        self,
        basic_salary: Money | Decimal | int | str,
        allowances: Sequence[Money | Decimal | int | str] = (),
        ptkp_code: PtkpCode | str | None = None,
        has_npwp: bool = False,
    ) -> TaxEstimate:
        """
        Estimate monthly PPh21 withholding.

        Args:
            basic_salary: Monthly basic salary.
            allowances: Monthly allowance amounts.
            ptkp_code: PTKP status; missing/unknown falls back to TK/0.
            has_npwp: False applies the 20% surcharge.

        Returns:
            TaxEstimate with the monthly tax and the calculation trail.
        """
        t0 = time.monotonic()
        table = self._table
        currency = table.currency

        gross_monthly = (
            as_money(basic_salary, currency)
            + sum_money((as_money(a, currency) for a in allowances), currency)
        ).clamp_non_negative()
        net_annual = gross_monthly * _MONTHS_PER_YEAR

        resolved_code, ptkp_amount = table.ptkp_for(ptkp_code)
        taxable_base = (net_annual - ptkp_amount).clamp_non_negative()
        taxable_base = taxable_base.floor_to(table.taxable_base_rounding)

        logger.info("tax_estimate_started", extra={
            "gross_monthly": str(gross_monthly.amount),
            "ptkp_code": resolved_code.value,
            "has_npwp": has_npwp,
            "taxable_base": str(taxable_base.amount),
        })

        lines = self._apply_brackets(taxable_base)
        annual_tax = sum_money((line.tax_amount for line in lines), currency)

        monthly = annual_tax / _MONTHS_PER_YEAR
        surcharge_applied = not has_npwp and monthly.is_positive
        if surcharge_applied:
            monthly = monthly * table.no_npwp_surcharge
        monthly_tax = monthly.round(ROUND_HALF_UP)

        result = TaxEstimate(
            monthly_tax=monthly_tax,
            annual_taxable_base=taxable_base,
            annual_tax=annual_tax,
            gross_monthly=gross_monthly,
            net_annual=net_annual,
            ptkp_code=resolved_code,
            ptkp_amount=ptkp_amount,
            npwp_surcharge_applied=surcharge_applied,
            bracket_lines=lines,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("tax_estimate_completed", extra={
            "annual_taxable_base": str(taxable_base.amount),
            "annual_tax": str(annual_tax.amount),
            "monthly_tax": str(monthly_tax.amount),
            "bracket_count": len(lines),
            "npwp_surcharge_applied": surcharge_applied,
            "duration_ms": duration_ms,
        })
        return result

    def estimate_for_profile(
        self,
        basic_salary: Money | Decimal | int | str,
        allowances: Sequence[Money | Decimal | int | str],
        profile: TaxProfile,
    ) -> TaxEstimate:
        """Convenience wrapper taking a TaxProfile."""
        return self.estimate(
            basic_salary=basic_salary,
            allowances=allowances,
            ptkp_code=profile.ptkp_code,
            has_npwp=profile.has_npwp,
        )

    def _apply_brackets(self, taxable_base: Money) -> tuple[BracketLine, ...]:
        """Split the base across brackets; only brackets with a slice appear."""
        lines: list[BracketLine] = []
        remaining = taxable_base.amount
        lower = Decimal("0")
        for bracket in self._table.brackets:
            if remaining <= 0:
                break
            if bracket.upper_bound is None:
                slice_amount = remaining
            else:
                slice_amount = min(remaining, bracket.upper_bound - lower)
            if slice_amount > 0:
                lines.append(BracketLine(
                    lower_bound=lower,
                    upper_bound=bracket.upper_bound,
                    rate=bracket.rate,
                    taxable_amount=Money.of(slice_amount, taxable_base.currency),
                    tax_amount=Money.of(slice_amount * bracket.rate, taxable_base.currency),
                ))
                remaining -= slice_amount
            if bracket.upper_bound is not None:
                lower = bracket.upper_bound
        return tuple(lines)


# ---------------------------------------------------------------------------
# NPWP helpers
# ---------------------------------------------------------------------------

_NPWP_FORMATTED = re.compile(r"^\d{2}\.\d{3}\.\d{3}\.\d-\d{3}\.\d{3}$")


def normalize_npwp(value: str | None) -> str:
    """Keep only the digits of an NPWP, at most 15."""
    return re.sub(r"\D", "", value or "")[:15]


def is_valid_npwp(value: str | None) -> bool:
    """NPWP is optional; when present it is 15 digits or ``99.999.999.9-999.999``."""
    if not value:
        return True
    if len(re.sub(r"\D", "", value)) == 15:
        return True
    return bool(_NPWP_FORMATTED.match(value))
