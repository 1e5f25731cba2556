"""
Configuration Loader (``fincalc_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the typed
``fincalc_config.schema`` dataclasses. The single public entry point for
runtime config is ``fincalc_config.get_active_config()``.

Invariants enforced
-------------------
* Monetary amounts and rates are parsed through ``str`` into ``Decimal``,
  so a YAML float such as ``0.05`` stays exactly ``Decimal("0.05")``.
* Every parsed object is a frozen dataclass.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Out-of-range values  -> ``ValueError`` or ``InvalidIncentivePlanError``
  from the engine types' own checks.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from fincalc_config.schema import (
    ConfigScope,
    EngineConfiguration,
    PostingAccounts,
)
from fincalc_engines.depreciation import DepreciationPolicy
from fincalc_engines.incentive import (
    EmployeeRole,
    IncentiveMetric,
    IncentivePlan,
    IncentiveTier,
)
from fincalc_engines.reconciliation import ReconciliationPolicy
from fincalc_engines.withholding_tax import PtkpCode, TaxBracket, WithholdingTaxTable


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str = "value") -> Decimal:
    """Parse a YAML scalar into Decimal via its string form."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{name} must be a number, got {value!r}")
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_scope(data: dict[str, Any]) -> ConfigScope:
    return ConfigScope(
        legal_entity=data["legal_entity"],
        jurisdiction=data["jurisdiction"],
        currency=data["currency"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
    )


def parse_withholding_tax(data: dict[str, Any], currency: str) -> WithholdingTaxTable:
    """
    Parse the ``withholding_tax`` section.

    ``ptkp`` maps status codes (``TK/0`` ...) to annual amounts. Each
    bracket has ``rate`` and ``up_to``; the last bracket omits ``up_to``.
    """
    ptkp: dict[PtkpCode, Decimal] = {}
    for code, amount in data["ptkp"].items():
        ptkp[PtkpCode(str(code))] = parse_decimal(amount, f"ptkp[{code}]")
    brackets = tuple(
        TaxBracket(
            upper_bound=(
                parse_decimal(b["up_to"], "bracket up_to") if b.get("up_to") is not None else None
            ),
            rate=parse_decimal(b["rate"], "bracket rate"),
        )
        for b in data["brackets"]
    )
    return WithholdingTaxTable(
        ptkp=ptkp,
        brackets=brackets,
        default_ptkp_code=PtkpCode(data.get("default_ptkp_code", PtkpCode.TK0.value)),
        taxable_base_rounding=parse_decimal(data.get("taxable_base_rounding", 1000), "taxable_base_rounding"),
        no_npwp_surcharge=parse_decimal(data.get("no_npwp_surcharge", "1.20"), "no_npwp_surcharge"),
        currency=currency,
    )


def parse_depreciation(data: dict[str, Any]) -> DepreciationPolicy:
    return DepreciationPolicy(
        declining_balance_factor=parse_decimal(
            data.get("declining_balance_factor", 2), "declining_balance_factor",
        ),
        switch_to_straight_line=bool(data.get("switch_to_straight_line", False)),
    )


def parse_incentive_tier(data: dict[str, Any]) -> IncentiveTier:
    max_pct = data.get("max_pct")
    return IncentiveTier(
        min_pct=parse_decimal(data["min_pct"], "min_pct"),
        max_pct=parse_decimal(max_pct, "max_pct") if max_pct is not None else None,
        rate=parse_decimal(data["rate"], "rate"),
        label=data["label"],
    )


def parse_incentive_plan(data: dict[str, Any]) -> IncentivePlan:
    """
    Parse one incentive plan.

    Raises:
        InvalidIncentivePlanError: if the tiers do not cover [0, inf).
        ValueError: for an unknown role or metric.
    """
    role = data.get("applies_to_role")
    metric = data.get("metric")
    return IncentivePlan(
        code=data["code"],
        name=data.get("name", ""),
        applies_to_role=EmployeeRole(role) if role else None,
        metric=IncentiveMetric(metric) if metric else None,
        tiers=tuple(parse_incentive_tier(t) for t in data["tiers"]),
    )


def parse_reconciliation(data: dict[str, Any]) -> ReconciliationPolicy:
    return ReconciliationPolicy(
        exact_match_threshold=parse_decimal(
            data.get("exact_match_threshold", 1), "exact_match_threshold",
        ),
        manual_tolerance_ratio=parse_decimal(
            data.get("manual_tolerance_ratio", "0.10"), "manual_tolerance_ratio",
        ),
    )


def parse_posting_accounts(data: dict[str, Any]) -> PostingAccounts:
    return PostingAccounts(
        cash=str(data["cash"]),
        accounts_receivable=str(data["accounts_receivable"]),
        accounts_payable=str(data["accounts_payable"]),
        depreciation_expense=str(data["depreciation_expense"]),
        accumulated_depreciation=str(data["accumulated_depreciation"]),
    )


def parse_configuration(data: dict[str, Any]) -> EngineConfiguration:
    """
    Parse a whole configuration document.

    Preconditions:
        - ``data`` has passed ``validate_configuration``.
    Postconditions:
        - ``checksum`` is ``compute_checksum(data)``.
    """
    scope = parse_scope(data["scope"])
    return EngineConfiguration(
        config_id=data["config_id"],
        version=int(data["version"]),
        checksum=compute_checksum(data),
        scope=scope,
        withholding_tax=parse_withholding_tax(data["withholding_tax"], scope.currency),
        depreciation=parse_depreciation(data.get("depreciation") or {}),
        incentive_plans=tuple(parse_incentive_plan(p) for p in data["incentive_plans"]),
        reconciliation=parse_reconciliation(data.get("reconciliation") or {}),
        posting_accounts=parse_posting_accounts(data["posting_accounts"]),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Postconditions:
        - Returns a hex-encoded SHA-256 hash string.
        - Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
