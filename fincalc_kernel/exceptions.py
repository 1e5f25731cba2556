"""
Typed exception hierarchy for the financial calculation engine.

Every error has a typed class, a machine-readable ``code`` class attribute
and structured attributes carrying the numeric context a caller needs to
surface the failure (imbalance amount, offending asset, tolerance, ...).
Callers catch by type and read attributes; they never parse messages.

Hierarchy::

    FinCalcError (base)
    |
    +-- InputContractError
    |   +-- InvalidTargetError
    |   +-- MalformedAssetError
    |   +-- InvalidPeriodError
    |   +-- InvalidIncentivePlanError
    |   +-- InvalidIncentiveRequestError
    |
    +-- PostingError
    |   +-- UnbalancedJournalError
    |
    +-- ReconciliationError
    |   +-- InvalidTransitionError
    |   +-- MatchToleranceExceededError
    |   +-- TransactionNotFoundError
    |   +-- OpenItemNotFoundError
    |   +-- OpenItemSettledError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConfigurationError
    |   +-- ConfigValidationError
    |
    +-- IngestionError
        +-- StatementFormatError

Codes:

Category        | Code                        | When raised
----------------|-----------------------------|----------------------------------
Input contract  | INVALID_TARGET              | Incentive target <= 0
                | MALFORMED_ASSET             | Asset record breaks an invariant
                | INVALID_PERIOD              | Period is not ``YYYY-MM``
                | INVALID_INCENTIVE_PLAN      | Tiers overlap, gap, or start > 0
                | INVALID_INCENTIVE_REQUEST   | Unknown role or metric
Posting         | UNBALANCED_JOURNAL          | Journal lines rejected
Reconciliation  | INVALID_STATUS_TRANSITION   | e.g. approve from PENDING
                | MATCH_TOLERANCE_EXCEEDED    | Manual match beyond tolerance
                | TRANSACTION_NOT_FOUND       | Unknown bank transaction id
                | OPEN_ITEM_NOT_FOUND         | Unknown invoice/payable id
                | OPEN_ITEM_ALREADY_SETTLED   | Approve against a paid item
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Compare-and-swap lost a race
Configuration   | CONFIG_VALIDATION_FAILED    | YAML set failed validation
Ingestion       | STATEMENT_FORMAT_ERROR      | Bank statement row unreadable
"""


class FinCalcError(Exception):
    """
    Base exception for all engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "FINCALC_ERROR"


# Input-contract exceptions


class InputContractError(FinCalcError):
    """Base exception for violated input contracts."""

    code: str = "INPUT_CONTRACT_ERROR"


class InvalidTargetError(InputContractError):
    """Incentive target must be strictly positive."""

    code: str = "INVALID_TARGET"

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Incentive target must be greater than zero, got {target}")


class MalformedAssetError(InputContractError):
    """Asset record violates a structural invariant."""

    code: str = "MALFORMED_ASSET"

    def __init__(self, asset_id: str, reason: str):
        self.asset_id = asset_id
        self.reason = reason
        super().__init__(f"Malformed asset {asset_id}: {reason}")


class InvalidPeriodError(InputContractError):
    """Accounting period string is not a valid ``YYYY-MM`` value."""

    code: str = "INVALID_PERIOD"

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid accounting period {value!r}, expected YYYY-MM")


class InvalidIncentivePlanError(InputContractError):
    """Incentive tiers do not cover [0, inf) without gaps or overlaps."""

    code: str = "INVALID_INCENTIVE_PLAN"

    def __init__(self, plan_code: str, reason: str):
        self.plan_code = plan_code
        self.reason = reason
        super().__init__(f"Invalid incentive plan {plan_code}: {reason}")


class InvalidIncentiveRequestError(InputContractError):
    """Simulation request names a role or metric no plan knows."""

    code: str = "INVALID_INCENTIVE_REQUEST"

    def __init__(self, field: str, value: object):
        self.field = field
        self.value = value
        super().__init__(f"Unknown incentive {field}: {value!r}")


# Posting exceptions


class PostingError(FinCalcError):
    """Base exception for journal posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedJournalError(PostingError):
    """Journal lines were rejected by the balance validator."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(
        self,
        reason: str,
        imbalance_amount: str,
        total_debit: str,
        total_credit: str,
        line_index: int | None = None,
    ):
        self.reason = reason
        self.imbalance_amount = imbalance_amount
        self.total_debit = total_debit
        self.total_credit = total_credit
        self.line_index = line_index
        super().__init__(
            f"Journal entry rejected ({reason}): debits={total_debit}, "
            f"credits={total_credit}, imbalance={imbalance_amount}"
        )


# Reconciliation exceptions


class ReconciliationError(FinCalcError):
    """Base exception for bank reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class InvalidTransitionError(ReconciliationError):
    """Requested status transition is not allowed from the current status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, transaction_id: str, from_status: str, to_status: str):
        self.transaction_id = transaction_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Bank transaction {transaction_id} cannot move "
            f"from {from_status} to {to_status}"
        )


class MatchToleranceExceededError(ReconciliationError):
    """Manual match amount difference is outside the allowed tolerance."""

    code: str = "MATCH_TOLERANCE_EXCEEDED"

    def __init__(
        self,
        transaction_id: str,
        item_id: str,
        difference: str,
        tolerance: str,
    ):
        self.transaction_id = transaction_id
        self.item_id = item_id
        self.difference = difference
        self.tolerance = tolerance
        super().__init__(
            f"Transaction {transaction_id} differs from {item_id} by "
            f"{difference}, allowed {tolerance}"
        )


class TransactionNotFoundError(ReconciliationError):
    """Bank transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Bank transaction not found: {transaction_id}")


class OpenItemNotFoundError(ReconciliationError):
    """Invoice or payable with given ID was not found."""

    code: str = "OPEN_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Open invoice/payable not found: {item_id}")


class OpenItemSettledError(ReconciliationError):
    """Open item was already paid by another approved transaction."""

    code: str = "OPEN_ITEM_ALREADY_SETTLED"

    def __init__(self, item_id: str, transaction_id: str):
        self.item_id = item_id
        self.transaction_id = transaction_id
        super().__init__(
            f"Open item {item_id} is already settled; cannot apply transaction {transaction_id}"
        )


# Concurrency exceptions


class ConcurrencyError(FinCalcError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Configuration exceptions


class ConfigurationError(FinCalcError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class ConfigValidationError(ConfigurationError):
    """Configuration set failed validation."""

    code: str = "CONFIG_VALIDATION_FAILED"

    def __init__(self, config_id: str, errors: list[str]):
        self.config_id = config_id
        self.errors = errors
        super().__init__(
            f"Configuration {config_id} failed validation: "
            f"{len(errors)} error(s): " + "; ".join(errors)
        )


# Ingestion exceptions


class IngestionError(FinCalcError):
    """Base exception for import errors."""

    code: str = "INGESTION_ERROR"


class StatementFormatError(IngestionError):
    """A bank statement row could not be parsed."""

    code: str = "STATEMENT_FORMAT_ERROR"

    def __init__(self, row_number: int, message: str):
        self.row_number = row_number
        self.detail = message
        super().__init__(f"Bank statement row {row_number}: {message}")
