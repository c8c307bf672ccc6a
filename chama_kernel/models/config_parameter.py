"""
Module: chama_kernel.models.config_parameter
Responsibility: ORM persistence for named numeric parameters (share value,
    penalty rate, base interest rate).
Architecture position: Kernel > Models.

Batch jobs never read this table directly: they receive a ConfigSnapshot
taken by ConfigService, so a run is reproducible from its snapshot.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import Base


class ConfigParameter(Base):
    """A keyed numeric parameter with its description and version."""

    __tablename__ = "config_parameters"

    key: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Incremented on every change
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    updated_by: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<ConfigParameter {self.key}={self.value} v{self.version}>"
