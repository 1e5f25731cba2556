"""
fincalc_services -- Package init and public API.

Responsibility:
    Stateful services that compose the pure calculation engines
    (fincalc_engines/) with database sessions, the active configuration and
    the wall clock. This is the only layer that holds a session.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_import_boundaries.py):
        fincalc_services/ -> fincalc_engines/  (allowed)
        fincalc_services/ -> fincalc_kernel/   (allowed)
        fincalc_services/ -> fincalc_config/   (allowed)
        fincalc_engines/  -> fincalc_services/ (FORBIDDEN)
        fincalc_kernel/   -> fincalc_services/ (FORBIDDEN)

Invariants enforced:
    - Services flush; they never commit. ``session_scope()`` owns the
      transaction boundary.
"""

from fincalc_services.calculation_service import CalculationService
from fincalc_services.depreciation_service import DepreciationService
from fincalc_services.journal_service import JournalService
from fincalc_services.reconciliation_service import ReconciliationService

__all__ = [
    "CalculationService",
    "DepreciationService",
    "JournalService",
    "ReconciliationService",
]
