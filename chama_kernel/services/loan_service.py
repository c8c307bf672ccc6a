"""
LoanService -- loan issuance and administrative status changes.

Responsibility:
    Issues loans and moves them to paid or defaulted.  Balances are never
    stored; they are derived from the ledger by LoanSelector.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - principal > 0; due_date strictly after disbursement_date; the
      disbursement does not predate the member's join date.
    - active -> paid only when the outstanding balance is <= 0.
    - active -> defaulted at any time.  Paid and defaulted are terminal
      (also enforced by the Loan before_update listener).
    - No automatic transition: a loan repaid in full stays active until
      mark_paid is called.

Failure modes:
    - InvalidAmountError, InvalidDateOrderError, PredatesMembershipError.
    - ConfigParameterNotFoundError when no rate is given and the snapshot
      lacks base_interest_rate.
    - InvalidLoanTransitionError, LoanNotSettledError.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from chama_kernel.domain.loan_math import outstanding_balance
from chama_kernel.domain.validation import (
    require_date_after,
    require_non_negative,
    require_not_before_join,
    require_positive_amount,
)
from chama_kernel.domain.values import ConfigSnapshot
from chama_kernel.exceptions import (
    InvalidFieldError,
    InvalidLoanTransitionError,
    LoanNotFoundError,
    LoanNotSettledError,
    MemberNotFoundError,
)
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.loan import VALID_LOAN_TRANSITIONS, Loan, LoanStatus
from chama_kernel.models.member import Member
from chama_kernel.selectors.ledger_selector import LedgerSelector
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.base import BaseService

logger = get_logger("services.loan")


class LoanService(BaseService):
    """Write operations on loans."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._auditor = AuditorService(session, self.clock)
        self._ledger = LedgerSelector(session)

    def _get_loan(self, loan_id: UUID) -> Loan:
        loan = self.session.get(Loan, loan_id)
        if loan is None:
            raise LoanNotFoundError(str(loan_id))
        return loan

    def issue_loan(
        self,
        member_id: UUID,
        principal: Decimal | int | str,
        disbursement_date: date,
        due_date: date,
        actor: str,
        interest_rate: Decimal | int | str | None = None,
        snapshot: ConfigSnapshot | None = None,
    ) -> Loan:
        """
        Issue a loan to a member.

        Args:
            interest_rate: Flat percentage.  When omitted, the snapshot's
                base_interest_rate is used.
            snapshot: Configuration snapshot; required only when
                interest_rate is omitted.
        """
        principal = require_positive_amount(principal, "principal")
        require_date_after("disbursement_date", disbursement_date, "due_date", due_date)

        if interest_rate is None:
            if snapshot is None:
                raise InvalidFieldError("interest_rate", None, "no rate given and no configuration snapshot")
            interest_rate = snapshot.base_interest_rate
        interest_rate = require_non_negative(interest_rate, "interest_rate")

        member = self.session.get(Member, member_id)
        if member is None:
            raise MemberNotFoundError(str(member_id))
        require_not_before_join(member.id, disbursement_date, member.join_date)

        loan = Loan(
            member_id=member.id,
            principal=principal,
            interest_rate=interest_rate,
            disbursement_date=disbursement_date,
            due_date=due_date,
            status=LoanStatus.ACTIVE.value,
            created_by=actor,
        )
        with self.session.begin_nested():
            self.session.add(loan)
            self.session.flush()
            self._auditor.record(
                AuditAction.LOAN_ISSUED,
                table_name="loans",
                record_id=loan.id,
                user=actor,
                details=f"Loan of {principal} at {interest_rate}% to {member.name}",
                payload={
                    "member_id": member.id,
                    "principal": principal,
                    "interest_rate": interest_rate,
                    "disbursement_date": disbursement_date,
                    "due_date": due_date,
                },
            )

        logger.info(
            "loan_issued",
            extra={
                "loan_id": str(loan.id),
                "member_id": str(member.id),
                "principal": str(principal),
                "interest_rate": str(interest_rate),
            },
        )
        return loan

    def _transition(self, loan: Loan, to_status: LoanStatus, actor: str, details: str, payload: dict) -> Loan:
        from_status = LoanStatus(loan.status)
        if to_status not in VALID_LOAN_TRANSITIONS[from_status]:
            raise InvalidLoanTransitionError(str(loan.id), from_status.value, to_status.value)

        with self.session.begin_nested():
            loan.status = to_status.value
            loan.status_changed_at = self.clock.now()
            loan.updated_by = actor
            self.session.flush()
            self._auditor.record(
                AuditAction.LOAN_STATUS_CHANGED,
                table_name="loans",
                record_id=loan.id,
                user=actor,
                details=details,
                payload={"from_status": from_status.value, "to_status": to_status.value, **payload},
            )

        logger.info(
            "loan_status_changed",
            extra={
                "loan_id": str(loan.id),
                "from_status": from_status.value,
                "to_status": to_status.value,
            },
        )
        return loan

    def mark_paid(self, loan_id: UUID, actor: str) -> Loan:
        """
        Close a fully repaid loan.

        Raises:
            LoanNotSettledError: Outstanding balance is still above zero.
            InvalidLoanTransitionError: Loan is not active.
        """
        loan = self._get_loan(loan_id)
        if LoanStatus(loan.status) is not LoanStatus.ACTIVE:
            raise InvalidLoanTransitionError(str(loan.id), LoanStatus(loan.status).value, LoanStatus.PAID.value)

        repaid = self._ledger.repaid_for_loan(loan.id)
        outstanding = outstanding_balance(loan.principal, loan.interest_rate, repaid)
        if outstanding > 0:
            raise LoanNotSettledError(str(loan.id), outstanding)

        return self._transition(
            loan,
            LoanStatus.PAID,
            actor,
            details=f"Loan marked paid, repaid {repaid}",
            payload={"repaid": repaid, "outstanding": outstanding},
        )

    def mark_defaulted(self, loan_id: UUID, actor: str, reason: str | None = None) -> Loan:
        """Write off an active loan as defaulted."""
        loan = self._get_loan(loan_id)
        return self._transition(
            loan,
            LoanStatus.DEFAULTED,
            actor,
            details=f"Loan marked defaulted: {reason or 'no reason given'}",
            payload={"reason": reason},
        )
