"""
Module: chama_kernel.models.contribution
Responsibility: ORM persistence for member share contributions.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0 (CHECK constraint, also validated by LedgerService).
    - Immutable once created (db/immutability.py).
    - At most one contribution per member per period_key (UNIQUE); ad-hoc
      contributions leave period_key NULL and are not constrained.
    - Every row has exactly one ledger mirror (db/ledger_mirror.py).
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chama_kernel.db.base import Base, UUIDString
from chama_kernel.db.types import Money
from chama_kernel.models.member import Member


class Contribution(Base):
    """A member's share contribution."""

    __tablename__ = "contributions"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_contributions_amount_positive"),
        UniqueConstraint("member_id", "period_key", name="uq_contribution_member_period"),
        Index("idx_contributions_member", "member_id"),
        Index("idx_contributions_date", "contribution_date"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )

    amount: Mapped[Money] = mapped_column(nullable=False)

    contribution_date: Mapped[date] = mapped_column(Date, nullable=False)

    external_ref: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)

    # "YYYY-MM" when generated by the monthly contribution run
    period_key: Mapped[str | None] = mapped_column(String(20), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)

    member: Mapped[Member] = relationship()

    def __repr__(self) -> str:
        return f"<Contribution {self.amount} on {self.contribution_date}>"
