"""
Module: ledger_kernel.db.base
Responsibility: Declarative base for every ledger table: string-stored UUID
    keys, the column type map that keeps money in Numeric(38, 9), and the
    TrackedBase actor/timestamp columns shared by accounts, liquid accounts,
    entries and the module records.
Architecture position: Kernel > DB.  Imported by every ORM module; imports
    nothing from the ledger.

Invariants enforced:
    - Money columns annotated ``Mapped[Decimal]`` are Numeric(38, 9); no
      float column exists.
    - Every tracked row names the actor that created it.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as its 36-character string so SQLite and PostgreSQL share one schema."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Root of the ORM.  Supplies the uuid4 ``id`` primary key."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who/when columns.

    ``created_at`` / ``updated_at`` come from the database clock;
    ``created_by_id`` is required, ``updated_by_id`` is set by the service
    that changes the row (status flips, reversals, balance mutations).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[PyUUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(UUIDString(), nullable=True)


UUID = PyUUID
