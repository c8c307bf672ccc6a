"""
Module: chama_kernel.selectors.portfolio_selector
Responsibility: The member portfolio report: per member totals of
    contributions, repayments, penalties and dividends from the ledger, and
    total loans taken from the loans table.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Ledger totals and loan totals are aggregated separately and then
      combined, so one member's many loans never multiply their ledger
      totals (and vice versa).
    - Archived members are still reported; their history is kept.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from chama_kernel.db.types import ZERO
from chama_kernel.exceptions import MemberNotFoundError
from chama_kernel.models.ledger import TransactionType
from chama_kernel.models.loan import Loan
from chama_kernel.models.member import Member
from chama_kernel.selectors.base import BaseSelector
from chama_kernel.selectors.ledger_selector import LedgerSelector, as_money


@dataclass(frozen=True)
class MemberPortfolio:
    """One member's financial position."""

    member_id: UUID
    name: str
    shares_owned: int
    is_archived: bool
    total_contributions: Decimal
    total_repayments: Decimal
    total_penalties: Decimal
    total_dividends: Decimal
    total_loans_taken: Decimal
    loan_count: int


@dataclass(frozen=True)
class GroupSummary:
    """Totals across every member."""

    member_count: int
    total_contributions: Decimal
    total_repayments: Decimal
    total_penalties: Decimal
    total_dividends: Decimal
    total_loans_issued: Decimal


class PortfolioSelector(BaseSelector):
    """Read-only member portfolio reporting."""

    def __init__(self, session):
        super().__init__(session)
        self._ledger = LedgerSelector(session)

    def _loan_totals(self, member_id: UUID | None = None) -> dict[UUID, tuple[Decimal, int]]:
        stmt = select(
            Loan.member_id, func.sum(Loan.principal), func.count(Loan.id)
        ).group_by(Loan.member_id)
        if member_id is not None:
            stmt = stmt.where(Loan.member_id == member_id)
        return {
            row_member_id: (as_money(principal), count)
            for row_member_id, principal, count in self.session.execute(stmt)
        }

    @staticmethod
    def _portfolio(member: Member, totals: dict, loans: tuple[Decimal, int]) -> MemberPortfolio:
        return MemberPortfolio(
            member_id=member.id,
            name=member.name,
            shares_owned=member.shares_owned,
            is_archived=member.is_archived,
            total_contributions=totals.get(TransactionType.CONTRIBUTION, ZERO),
            total_repayments=totals.get(TransactionType.LOAN_REPAYMENT, ZERO),
            total_penalties=totals.get(TransactionType.PENALTY, ZERO),
            total_dividends=totals.get(TransactionType.DIVIDEND, ZERO),
            total_loans_taken=loans[0],
            loan_count=loans[1],
        )

    def member_portfolio(self, member_id: UUID) -> MemberPortfolio:
        member = self.session.get(Member, member_id)
        if member is None:
            raise MemberNotFoundError(str(member_id))
        totals = self._ledger.totals_by_type(member_id=member.id)
        loans = self._loan_totals(member.id).get(member.id, (ZERO, 0))
        return self._portfolio(member, totals, loans)

    def all_portfolios(self, include_archived: bool = True) -> tuple[MemberPortfolio, ...]:
        """Every member's portfolio, ordered by name."""
        stmt = select(Member).order_by(Member.name)
        if not include_archived:
            stmt = stmt.where(Member.archived_at.is_(None))

        ledger_totals = self._ledger.totals_by_member()
        loan_totals = self._loan_totals()
        return tuple(
            self._portfolio(
                member,
                ledger_totals.get(member.id, {}),
                loan_totals.get(member.id, (ZERO, 0)),
            )
            for member in self.session.execute(stmt).scalars()
        )

    def group_summary(self) -> GroupSummary:
        totals = self._ledger.totals_by_type()
        loans_issued = as_money(self.session.execute(select(func.sum(Loan.principal))).scalar())
        member_count = self.session.execute(select(func.count(Member.id))).scalar() or 0
        return GroupSummary(
            member_count=member_count,
            total_contributions=totals[TransactionType.CONTRIBUTION],
            total_repayments=totals[TransactionType.LOAN_REPAYMENT],
            total_penalties=totals[TransactionType.PENALTY],
            total_dividends=totals[TransactionType.DIVIDEND],
            total_loans_issued=loans_issued,
        )
