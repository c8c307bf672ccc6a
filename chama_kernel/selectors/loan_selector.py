"""
Module: chama_kernel.selectors.loan_selector
Responsibility: Loan positions derived from the ledger: amount repaid,
    outstanding balance and days overdue, per loan and for the active-loans
    report.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - outstanding = principal x (1 + rate / 100) - sum of ledger repayments.
    - days_overdue = max(0, as_of - due_date), computed on every call from
      the injected clock unless ``as_of`` is given.  Only active loans are
      ever reported as overdue.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from chama_kernel.db.types import ZERO
from chama_kernel.domain.clock import Clock, SystemClock
from chama_kernel.domain.loan_math import days_overdue, loan_interest, outstanding_balance, total_due
from chama_kernel.exceptions import LoanNotFoundError
from chama_kernel.models.loan import Loan, LoanStatus
from chama_kernel.models.member import Member
from chama_kernel.selectors.base import BaseSelector
from chama_kernel.selectors.ledger_selector import LedgerSelector, as_money


@dataclass(frozen=True)
class LoanPosition:
    """A loan with its balances as of one date."""

    loan_id: UUID
    member_id: UUID
    member_name: str
    principal: Decimal
    interest_rate: Decimal
    disbursement_date: date
    due_date: date
    status: LoanStatus
    total_due: Decimal
    amount_repaid: Decimal
    outstanding_balance: Decimal
    days_overdue: int
    as_of: date

    @property
    def is_overdue(self) -> bool:
        return self.days_overdue > 0


class LoanSelector(BaseSelector):
    """Read-only loan reporting."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self.clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    def _position(self, loan: Loan, member_name: str, repaid: Decimal, as_of: date) -> LoanPosition:
        status = LoanStatus(loan.status)
        principal = as_money(loan.principal)
        rate = as_money(loan.interest_rate)
        return LoanPosition(
            loan_id=loan.id,
            member_id=loan.member_id,
            member_name=member_name,
            principal=principal,
            interest_rate=rate,
            disbursement_date=loan.disbursement_date,
            due_date=loan.due_date,
            status=status,
            total_due=total_due(principal, rate),
            amount_repaid=repaid,
            outstanding_balance=outstanding_balance(principal, rate, repaid),
            days_overdue=days_overdue(loan.due_date, as_of) if status is LoanStatus.ACTIVE else 0,
            as_of=as_of,
        )

    def _positions(self, stmt, as_of: date | None) -> tuple[LoanPosition, ...]:
        as_of = as_of or self.clock.today()
        repaid = self._ledger.repaid_by_loan()
        return tuple(
            self._position(loan, member_name, repaid.get(loan.id, ZERO), as_of)
            for loan, member_name in self.session.execute(stmt).all()
        )

    def loan_position(self, loan_id: UUID, as_of: date | None = None) -> LoanPosition:
        row = self.session.execute(
            select(Loan, Member.name).join(Member, Loan.member_id == Member.id).where(Loan.id == loan_id)
        ).first()
        if row is None:
            raise LoanNotFoundError(str(loan_id))
        loan, member_name = row
        return self._position(
            loan,
            member_name,
            self._ledger.repaid_for_loan(loan.id),
            as_of or self.clock.today(),
        )

    def active_loans(self, as_of: date | None = None) -> tuple[LoanPosition, ...]:
        """Every active loan with repaid, outstanding and days overdue, by due date."""
        stmt = (
            select(Loan, Member.name)
            .join(Member, Loan.member_id == Member.id)
            .where(Loan.status == LoanStatus.ACTIVE.value)
            .order_by(Loan.due_date, Member.name)
        )
        return self._positions(stmt, as_of)

    def overdue_loans(self, as_of: date | None = None) -> tuple[LoanPosition, ...]:
        return tuple(position for position in self.active_loans(as_of) if position.is_overdue)

    def loans_for_member(self, member_id: UUID, as_of: date | None = None) -> tuple[LoanPosition, ...]:
        stmt = (
            select(Loan, Member.name)
            .join(Member, Loan.member_id == Member.id)
            .where(Loan.member_id == member_id)
            .order_by(Loan.disbursement_date)
        )
        return self._positions(stmt, as_of)

    def total_interest_income(self) -> Decimal:
        """Flat interest over every loan ever issued: sum of principal x rate / 100."""
        total = ZERO
        for principal, rate in self.session.execute(select(Loan.principal, Loan.interest_rate)):
            total += loan_interest(as_money(principal), as_money(rate))
        return total
