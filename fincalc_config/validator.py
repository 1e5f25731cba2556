"""
Configuration Validator (``fincalc_config.validator``).

Responsibility
--------------
Validates a raw configuration document before it is parsed, collecting
every problem instead of stopping at the first one, so a reviewer sees the
whole list in one pass.

Invariants enforced
-------------------
* Required sections are present.
* The scope currency is registered.
* The bracket schedule is ascending with one open-ended top band.
* Incentive plans cover [0, inf) contiguously; plan codes are unique.
* Posting accounts are non-empty; cash differs from receivable/payable.

Failure modes
-------------
* Validation errors -> ``get_active_config`` raises
  ``ConfigValidationError`` listing them.
* Warnings (e.g. two plans for the same role and metric) do not block
  loading but are logged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fincalc_config.loader import (
    parse_depreciation,
    parse_incentive_plan,
    parse_posting_accounts,
    parse_reconciliation,
    parse_scope,
    parse_withholding_tax,
)
from fincalc_kernel.domain.currency import CurrencyRegistry
from fincalc_kernel.exceptions import InvalidIncentivePlanError

_REQUIRED_SECTIONS = (
    "config_id",
    "version",
    "scope",
    "withholding_tax",
    "incentive_plans",
    "posting_accounts",
)


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block loading but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(data: dict[str, Any]) -> ConfigValidationResult:
    """
    Validate a configuration document.

    Postconditions:
        - Returns a ``ConfigValidationResult``; never raises for content
          problems.
    """
    result = ConfigValidationResult()

    for section in _REQUIRED_SECTIONS:
        if data.get(section) in (None, "", [], {}):
            result.add_error(f"Missing required section '{section}'")
    if not result.is_valid:
        return result

    currency = _validate_scope(data["scope"], result)
    _validate_withholding_tax(data["withholding_tax"], currency, result)
    _validate_section(parse_depreciation, data.get("depreciation") or {}, "depreciation", result)
    _validate_section(parse_reconciliation, data.get("reconciliation") or {}, "reconciliation", result)
    _validate_incentive_plans(data["incentive_plans"], result)
    _validate_posting_accounts(data["posting_accounts"], result)
    return result


def _validate_section(parser, section: Any, name: str, result: ConfigValidationResult) -> None:
    if not isinstance(section, dict):
        result.add_error(f"Section '{name}' must be a mapping")
        return
    try:
        parser(section)
    except (KeyError, TypeError, ValueError) as e:
        result.add_error(f"{name}: {_describe(e)}")


def _validate_scope(scope: Any, result: ConfigValidationResult) -> str:
    if not isinstance(scope, dict):
        result.add_error("Section 'scope' must be a mapping")
        return CurrencyRegistry.DEFAULT_CODE
    try:
        parsed = parse_scope(scope)
    except (KeyError, TypeError, ValueError) as e:
        result.add_error(f"scope: {_describe(e)}")
        return CurrencyRegistry.DEFAULT_CODE
    if not CurrencyRegistry.is_valid(parsed.currency):
        result.add_error(f"scope: unknown currency '{parsed.currency}'")
        return CurrencyRegistry.DEFAULT_CODE
    if parsed.effective_to is not None and parsed.effective_to < parsed.effective_from:
        result.add_error("scope: effective_to precedes effective_from")
    return parsed.currency


def _validate_withholding_tax(section: Any, currency: str, result: ConfigValidationResult) -> None:
    if not isinstance(section, dict):
        result.add_error("Section 'withholding_tax' must be a mapping")
        return
    try:
        table = parse_withholding_tax(section, currency)
    except (KeyError, TypeError, ValueError) as e:
        result.add_error(f"withholding_tax: {_describe(e)}")
        return
    for code, amount in table.ptkp.items():
        if amount < 0:
            result.add_error(f"withholding_tax: PTKP for {code.value} is negative")


def _validate_incentive_plans(plans: Any, result: ConfigValidationResult) -> None:
    if not isinstance(plans, list):
        result.add_error("Section 'incentive_plans' must be a list")
        return
    seen_codes: set[str] = set()
    seen_targets: set[tuple[str | None, str | None]] = set()
    for index, plan_data in enumerate(plans):
        if not isinstance(plan_data, dict):
            result.add_error(f"incentive_plans[{index}] must be a mapping")
            continue
        try:
            plan = parse_incentive_plan(plan_data)
        except InvalidIncentivePlanError as e:
            result.add_error(f"incentive_plans[{index}]: {e.reason}")
            continue
        except (KeyError, TypeError, ValueError) as e:
            result.add_error(f"incentive_plans[{index}]: {_describe(e)}")
            continue
        if plan.code in seen_codes:
            result.add_error(f"Duplicate incentive plan code '{plan.code}'")
        seen_codes.add(plan.code)
        target = (
            plan.applies_to_role.value if plan.applies_to_role else None,
            plan.metric.value if plan.metric else None,
        )
        if target in seen_targets:
            result.add_warning(
                f"Incentive plan '{plan.code}' repeats role/metric {target}; "
                "the first listed plan wins"
            )
        seen_targets.add(target)


def _validate_posting_accounts(section: Any, result: ConfigValidationResult) -> None:
    if not isinstance(section, dict):
        result.add_error("Section 'posting_accounts' must be a mapping")
        return
    try:
        accounts = parse_posting_accounts(section)
    except KeyError as e:
        result.add_error(f"posting_accounts: {_describe(e)}")
        return
    for name, code in vars(accounts).items():
        if not code.strip():
            result.add_error(f"posting_accounts: '{name}' is empty")
    if accounts.cash in (accounts.accounts_receivable, accounts.accounts_payable):
        result.add_error("posting_accounts: cash must differ from receivable and payable")
    if accounts.depreciation_expense == accounts.accumulated_depreciation:
        result.add_error(
            "posting_accounts: depreciation expense and accumulated depreciation must differ"
        )


def _describe(error: Exception) -> str:
    if isinstance(error, KeyError):
        return f"missing key {error.args[0]!r}"
    return str(error)
