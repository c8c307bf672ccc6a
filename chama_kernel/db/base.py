"""
Declarative base for every chama table.

Rows are keyed by a uuid4 stored as text so the same schema runs on SQLite
and PostgreSQL.  Amounts map to Numeric(15, 2) and rates to Numeric(5, 2)
through the annotation map; floats never reach a money column.  Nothing
here imports from models, services or selectors.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from chama_kernel.db.types import COLUMN_TYPES


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, its 36-character text form in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(15, 2),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        **COLUMN_TYPES,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds who and when for member, loan, meeting and batch rows.

    These columns are bookkeeping, so ``updated_at`` and ``updated_by`` may
    change on a loan whose financial fields are frozen.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())
    created_by: Mapped[str] = mapped_column(String(100))
    updated_by: Mapped[str | None] = mapped_column(String(100))
