"""
Module: fincalc_kernel.db.base
Responsibility: Declarative base for the ORM models: UUID keys, column type
    conventions for money and timestamps, and the audit columns every
    persisted calculation record carries.
Architecture position: Kernel > DB.  Imported by fincalc_kernel.models only;
    imports nothing from this project.

Invariants enforced:
    - Money columns are Numeric(38, 9); a float never reaches the database.
    - Keys are uuid4, stored as 36-character strings so SQLite and
      PostgreSQL behave the same.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in Python, canonical hyphenated text in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Every model gets a uuid4 ``id`` and the shared annotation-to-type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds audit columns.

    ``created_at`` / ``updated_at`` are filled by the database clock;
    ``created_by`` is whatever actor the service was handed (user id or
    batch name) and may be empty for system runs.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
