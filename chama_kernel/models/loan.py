"""
Module: chama_kernel.models.loan
Responsibility: ORM persistence for loans and loan repayments.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - principal > 0 and due_date > disbursement_date (CHECK constraints).
    - Status only moves along VALID_LOAN_TRANSITIONS: active -> paid,
      active -> defaulted.  Paid and defaulted are terminal.
    - Loan terms (member, principal, rate, dates) never change after
      issuance; repayments are immutable (db/immutability.py).
    - Every repayment has exactly one ledger mirror (db/ledger_mirror.py).

Non-goals:
    - The outstanding balance is not stored.  It is derived from the
      ledger on every query (selectors/loan_selector.py).
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chama_kernel.db.base import Base, TrackedBase, UUIDString
from chama_kernel.db.types import Money, Rate
from chama_kernel.models.member import Member


class LoanStatus(str, Enum):
    """Lifecycle status of a loan."""

    ACTIVE = "active"
    PAID = "paid"
    DEFAULTED = "defaulted"


VALID_LOAN_TRANSITIONS: dict[LoanStatus, frozenset[LoanStatus]] = {
    LoanStatus.ACTIVE: frozenset({LoanStatus.PAID, LoanStatus.DEFAULTED}),
    # Terminal states
    LoanStatus.PAID: frozenset(),
    LoanStatus.DEFAULTED: frozenset(),
}

# Fields fixed at issuance
LOAN_TERM_FIELDS = frozenset({
    "member_id",
    "principal",
    "interest_rate",
    "disbursement_date",
    "due_date",
})


class Loan(TrackedBase):
    """
    A loan issued to a member.

    Guarantees:
        - interest_rate is a flat percentage applied once to the principal.
        - status starts as ACTIVE.
    """

    __tablename__ = "loans"

    __table_args__ = (
        CheckConstraint("principal > 0", name="ck_loans_principal_positive"),
        CheckConstraint("due_date > disbursement_date", name="ck_loans_valid_dates"),
        Index("idx_loans_member", "member_id"),
        Index("idx_loans_status", "status"),
    )

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )

    principal: Mapped[Money] = mapped_column(nullable=False)

    # Percentage, e.g. 12.50
    interest_rate: Mapped[Rate] = mapped_column(nullable=False)

    disbursement_date: Mapped[date] = mapped_column(Date, nullable=False)

    due_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[LoanStatus] = mapped_column(
        String(10),
        nullable=False,
        default=LoanStatus.ACTIVE.value,
    )

    status_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    member: Mapped[Member] = relationship()

    repayments: Mapped[list["LoanRepayment"]] = relationship(
        back_populates="loan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Loan {self.id} principal={self.principal} status={self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE


class LoanRepayment(Base):
    """A payment made against a loan."""

    __tablename__ = "loan_repayments"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_loan_repayments_amount_positive"),
        Index("idx_loan_repayments_loan", "loan_id"),
    )

    loan_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("loans.id"),
        nullable=False,
    )

    amount: Mapped[Money] = mapped_column(nullable=False)

    payment_date: Mapped[date] = mapped_column(Date, nullable=False)

    external_ref: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    recorded_by: Mapped[str] = mapped_column(String(100), nullable=False)

    loan: Mapped[Loan] = relationship(back_populates="repayments")

    def __repr__(self) -> str:
        return f"<LoanRepayment {self.amount} on {self.payment_date}>"
