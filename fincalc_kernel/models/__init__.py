"""ORM models. Importing this package registers every table on Base.metadata."""

from fincalc_kernel.models.asset import AssetModel, DepreciationHistoryModel
from fincalc_kernel.models.journal import JournalEntryModel, JournalLineModel
from fincalc_kernel.models.reconciliation import BankTransactionModel, OpenItemModel

__all__ = [
    "AssetModel",
    "BankTransactionModel",
    "DepreciationHistoryModel",
    "JournalEntryModel",
    "JournalLineModel",
    "OpenItemModel",
]
