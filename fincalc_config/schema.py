"""
EngineConfiguration schema.

The reviewable, versioned configuration of the calculation engines: the
PPh21 table, depreciation policy, incentive plans, reconciliation
tolerances and the GL accounts the services post to. YAML sets are parsed
into these types by the loader; engines receive the embedded engine types
directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from fincalc_engines.depreciation import DepreciationPolicy
from fincalc_engines.incentive import (
    EmployeeRole,
    IncentiveMetric,
    IncentivePlan,
    select_plan,
)
from fincalc_engines.reconciliation import ReconciliationPolicy
from fincalc_engines.withholding_tax import WithholdingTaxTable


@dataclass(frozen=True)
class ConfigScope:
    """Scope of applicability for a configuration set."""

    legal_entity: str
    jurisdiction: str
    currency: str
    effective_from: date
    effective_to: date | None = None

    def covers(self, as_of: date) -> bool:
        if as_of < self.effective_from:
            return False
        return self.effective_to is None or as_of <= self.effective_to


@dataclass(frozen=True)
class PostingAccounts:
    """Chart-of-accounts codes the services post to."""

    cash: str
    accounts_receivable: str
    accounts_payable: str
    depreciation_expense: str
    accumulated_depreciation: str


@dataclass(frozen=True)
class EngineConfiguration:
    """
    A complete, validated configuration set.

    Attributes:
        config_id: Unique identifier (e.g., "ID-PPH21-2025-v1")
        version: Configuration version number
        checksum: SHA-256 of the canonical source document
        scope: Applicability scope
        withholding_tax: PTKP amounts and bracket schedule
        depreciation: Depreciation scheduler policy
        incentive_plans: Plans, matched by role and metric
        reconciliation: Matching tolerances
        posting_accounts: GL accounts for generated journals
    """

    config_id: str
    version: int
    checksum: str
    scope: ConfigScope
    withholding_tax: WithholdingTaxTable
    depreciation: DepreciationPolicy
    incentive_plans: tuple[IncentivePlan, ...]
    reconciliation: ReconciliationPolicy
    posting_accounts: PostingAccounts

    def plan_for(
        self,
        role: EmployeeRole | str,
        metric: IncentiveMetric | str,
    ) -> IncentivePlan | None:
        return select_plan(self.incentive_plans, role, metric)
