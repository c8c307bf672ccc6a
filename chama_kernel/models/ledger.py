"""
Module: chama_kernel.models.ledger
Responsibility: ORM persistence for the central transaction ledger, the single
    source of truth for all financial reporting.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE path exists (ORM listeners in
      db/immutability.py).
    - Exactly one ledger row per contribution, repayment and penalty:
      UNIQUE (transaction_type, source_ref), and rows of those types are
      only ever created by the mirror in db/ledger_mirror.py.
    - One dividend per member per period: UNIQUE (transaction_type,
      member_id, period_key).
    - external_ref is unique across the whole ledger, whatever the type.

Failure modes:
    - IntegrityError when a mirror would duplicate an external reference;
      the source record is rolled back with it.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import Base, UUIDString
from chama_kernel.db.types import Money


class TransactionType(str, Enum):
    """Kind of financial event recorded in the ledger."""

    CONTRIBUTION = "contribution"
    LOAN_REPAYMENT = "loan_repayment"
    PENALTY = "penalty"
    DIVIDEND = "dividend"


# Types that always have a source record and are written only by the mirror
MIRRORED_TYPES: frozenset[TransactionType] = frozenset({
    TransactionType.CONTRIBUTION,
    TransactionType.LOAN_REPAYMENT,
    TransactionType.PENALTY,
})


class LedgerTransaction(Base):
    """
    One financial event in the ledger.

    Contract:
        Contribution, loan repayment and penalty rows mirror their source
        record field for field (member, amount, date, external reference)
        with source_ref pointing back at it.  Dividend rows have no source
        record and are written by the dividend distribution job.

    Non-goals:
        - Does not carry a running balance.  Balances are always
          aggregated at read time by the selectors.
    """

    __tablename__ = "ledger_transactions"

    __table_args__ = (
        UniqueConstraint("transaction_type", "source_ref", name="uq_ledger_source"),
        UniqueConstraint(
            "transaction_type", "member_id", "period_key",
            name="uq_ledger_member_period",
        ),
        Index("idx_ledger_member_type", "member_id", "transaction_type"),
        Index("idx_ledger_loan", "loan_id"),
        Index("idx_ledger_date", "transaction_date"),
    )

    transaction_type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Id of the contribution / repayment / penalty this row mirrors
    source_ref: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    member_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("members.id"),
        nullable=False,
    )

    # Set for repayments and loan-linked penalties
    loan_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("loans.id"),
        nullable=True,
    )

    amount: Mapped[Money] = mapped_column(nullable=False)

    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)

    external_ref: Mapped[str | None] = mapped_column(String(20), nullable=True, unique=True)

    period_key: Mapped[str | None] = mapped_column(String(20), nullable=True)

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<LedgerTransaction {self.transaction_type} "
            f"{self.amount} on {self.transaction_date}>"
        )
