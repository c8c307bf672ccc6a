"""
Module: chama_kernel.models.penalty
Responsibility: ORM persistence for penalties charged to members.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - amount > 0 (CHECK constraint).
    - Immutable once created (db/immutability.py).
    - Every row has exactly one ledger mirror (db/ledger_mirror.py).
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import Base, UUIDString
from chama_kernel.db.types import Money


class Penalty(Base):
    """A penalty charged to a member, optionally tied to one of their loans."""

    __tablename__ = "penalties"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_penalties_amount_positive"),
        Index("idx_penalties_member", "member_id"),
        Index("idx_penalties_loan", "loan_id"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )

    loan_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("loans.id"),
        nullable=True,
    )

    amount: Mapped[Money] = mapped_column(nullable=False)

    penalty_date: Mapped[date] = mapped_column(Date, nullable=False)

    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<Penalty {self.amount} on {self.penalty_date}: {self.reason}>"
