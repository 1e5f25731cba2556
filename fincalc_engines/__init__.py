"""
Module: fincalc_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the five pure
    calculation engines. This is the import surface for fincalc_services
    and fincalc_ingestion.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import fincalc_kernel.domain, fincalc_kernel.exceptions and
    fincalc_kernel.logging_config (and sibling engine modules).
    MUST NOT import fincalc_services, fincalc_config or sqlalchemy.

Invariants enforced:
    - Purity: engines never read the clock; dates and periods are inputs.
    - Decimal-only arithmetic through ``Money``; floats never reach a sum.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every public engine entry point is traced via ``@traced_engine``
    (see ``fincalc_engines.tracer``), emitting FINANCE_ENGINE_TRACE log
    records with engine name, version, input fingerprint and duration.

Usage:
    from fincalc_engines.withholding_tax import TaxBracketCalculator
    from fincalc_engines.depreciation import DepreciationScheduler
    from fincalc_engines.ledger_balance import LedgerBalanceValidator
    from fincalc_engines.incentive import IncentiveTierEngine
    from fincalc_engines.reconciliation import ReconciliationMatcher
"""

from fincalc_kernel.logging_config import get_logger

logger = get_logger("engines")

from fincalc_engines.depreciation import (
    Asset,
    AssetCategory,
    AssetStatus,
    DepreciationBatchResult,
    DepreciationFailure,
    DepreciationHistoryEntry,
    DepreciationMethod,
    DepreciationPolicy,
    DepreciationRun,
    DepreciationScheduler,
    DepreciationSkip,
    SkipReason,
)
from fincalc_engines.incentive import (
    EmployeeRole,
    IncentiveMetric,
    IncentivePlan,
    IncentiveResult,
    IncentiveTier,
    IncentiveTierEngine,
    default_plan,
    select_plan,
)
from fincalc_engines.ledger_balance import (
    JournalEntry,
    JournalEntryLine,
    JournalValidation,
    LedgerBalanceValidator,
    RejectionReason,
)
from fincalc_engines.reconciliation import (
    BankTransaction,
    OpenItem,
    OpenItemKind,
    PayableCategory,
    ReconciliationMatcher,
    ReconciliationPolicy,
    TransactionStatus,
)
from fincalc_engines.tracer import compute_input_fingerprint, traced_engine
from fincalc_engines.withholding_tax import (
    PtkpCode,
    TaxBracket,
    TaxBracketCalculator,
    TaxEstimate,
    TaxProfile,
    WithholdingTaxTable,
    is_valid_npwp,
    normalize_npwp,
)

__all__ = [
    # Depreciation
    "Asset",
    "AssetCategory",
    "AssetStatus",
    "DepreciationBatchResult",
    "DepreciationFailure",
    "DepreciationHistoryEntry",
    "DepreciationMethod",
    "DepreciationPolicy",
    "DepreciationRun",
    "DepreciationScheduler",
    "DepreciationSkip",
    "SkipReason",
    # Incentive
    "EmployeeRole",
    "IncentiveMetric",
    "IncentivePlan",
    "IncentiveResult",
    "IncentiveTier",
    "IncentiveTierEngine",
    "default_plan",
    "select_plan",
    # Ledger balance
    "JournalEntry",
    "JournalEntryLine",
    "JournalValidation",
    "LedgerBalanceValidator",
    "RejectionReason",
    # Reconciliation
    "BankTransaction",
    "OpenItem",
    "OpenItemKind",
    "PayableCategory",
    "ReconciliationMatcher",
    "ReconciliationPolicy",
    "TransactionStatus",
    # Tracer
    "compute_input_fingerprint",
    "traced_engine",
    # Withholding tax
    "PtkpCode",
    "TaxBracket",
    "TaxBracketCalculator",
    "TaxEstimate",
    "TaxProfile",
    "WithholdingTaxTable",
    "is_valid_npwp",
    "normalize_npwp",
]
