"""
Module: chama_kernel.models.member
Responsibility: ORM persistence for group members (the member directory).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - phone and email are globally unique (UNIQUE constraints).
    - shares_owned >= 1 (CHECK constraint).
    - total_contributed is a running total maintained in the same flush as
      each contribution; reports never read it, they aggregate the ledger.
    - Members referenced by financial records are archived, never deleted
      (see db/immutability.py).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import CheckConstraint, Date, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import TrackedBase
from chama_kernel.db.types import Money


class MemberRole(str, Enum):
    """Office held in the group."""

    CHAIR = "chair"
    TREASURER = "treasurer"
    SECRETARY = "secretary"
    MEMBER = "member"


class Member(TrackedBase):
    """
    A member of the group.

    Guarantees:
        - phone/email uniqueness is enforced by the database.
        - shares_owned is at least one.

    Non-goals:
        - Contact format validation lives in MemberService, not here.
    """

    __tablename__ = "members"

    __table_args__ = (
        CheckConstraint("shares_owned >= 1", name="ck_members_shares_owned"),
        Index("idx_members_role", "role"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # E.164 style, e.g. +254712345678
    phone: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)

    shares_owned: Mapped[int] = mapped_column(Integer, nullable=False)

    total_contributed: Mapped[Money] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    role: Mapped[MemberRole] = mapped_column(
        String(20),
        nullable=False,
        default=MemberRole.MEMBER.value,
    )

    join_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Soft delete; archived members are skipped by batch runs
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Member {self.name} shares={self.shares_owned}>"

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None
