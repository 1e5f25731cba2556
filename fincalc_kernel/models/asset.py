"""
Module: fincalc_kernel.models.asset
Responsibility: ORM persistence for the fixed-asset register and its
    append-only depreciation history.
Architecture position: Kernel > Models.  May import from db/base.py only.
    Mapping to and from the depreciation engine's value types lives in
    fincalc_services.depreciation_service.

Invariants enforced:
    - (asset_id, period) is UNIQUE on depreciation_history: a period can be
      posted once per asset even when two batches race.

Failure modes:
    - IntegrityError on a duplicate (asset_id, period) insert.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fincalc_kernel.db.base import TrackedBase, UUIDString


class AssetModel(TrackedBase):
    """
    One fixed asset.

    Amount columns are plain Decimal in ``currency``. ``status`` and
    ``depreciation_method`` hold the engine enum values.
    """

    __tablename__ = "assets"

    __table_args__ = (
        UniqueConstraint("asset_code", name="uq_asset_code"),
        Index("idx_asset_status", "status"),
    )

    asset_code: Mapped[str] = mapped_column(String(50), nullable=False)
    asset_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str | None] = mapped_column(String(20), nullable=True)
    acquisition_date: Mapped[date] = mapped_column(Date, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="IDR")

    acquisition_cost: Mapped[Decimal] = mapped_column(nullable=False)
    residual_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    useful_life_years: Mapped[int] = mapped_column(Integer, nullable=False)
    depreciation_method: Mapped[str] = mapped_column(String(20), nullable=False)
    accumulated_depreciation: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    current_book_value: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="ACTIVE")

    history: Mapped[list["DepreciationHistoryModel"]] = relationship(
        back_populates="asset",
        cascade="all, delete-orphan",
        order_by="DepreciationHistoryModel.period",
    )

    def __repr__(self) -> str:
        return f"<AssetModel {self.asset_code} status={self.status}>"


class DepreciationHistoryModel(TrackedBase):
    """Immutable record of one asset's depreciation for one period."""

    __tablename__ = "depreciation_history"

    __table_args__ = (
        UniqueConstraint("asset_id", "period", name="uq_depreciation_asset_period"),
        Index("idx_depreciation_period", "period"),
    )

    asset_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("assets.id"),
        nullable=False,
    )
    # YYYY-MM
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    expense: Mapped[Decimal] = mapped_column(nullable=False)
    accumulated_after: Mapped[Decimal] = mapped_column(nullable=False)
    book_value_after: Mapped[Decimal] = mapped_column(nullable=False)
    journal_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
    )

    asset: Mapped[AssetModel] = relationship(back_populates="history")
