"""
Loan issuance and status lifecycle.

Verifies:
- Issuance validates principal, dates, rate and membership
- The configured base rate is used when no rate is given
- active -> paid only once the balance is settled
- active -> defaulted at any time; paid and defaulted are terminal
- Loan terms cannot be edited and loans cannot be deleted
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from chama_kernel.exceptions import (
    ConfigParameterNotFoundError,
    ImmutabilityViolationError,
    InvalidAmountError,
    InvalidDateOrderError,
    InvalidFieldError,
    InvalidLoanTransitionError,
    LoanNotSettledError,
    MemberNotFoundError,
    PredatesMembershipError,
)
from chama_kernel.domain.values import ConfigSnapshot
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.loan import LoanStatus

ACTOR = "tester"


class TestIssueLoan:
    def test_issue_with_explicit_rate(self, loan_service, member):
        loan = loan_service.issue_loan(
            member.id, Decimal("15000"), date(2024, 12, 15), date(2025, 6, 15), ACTOR,
            interest_rate=Decimal("12.5"),
        )
        assert loan.status == LoanStatus.ACTIVE.value
        assert loan.principal == Decimal("15000")
        assert loan.interest_rate == Decimal("12.50")

    def test_issue_uses_base_rate_from_snapshot(self, loan_service, member, snapshot):
        loan = loan_service.issue_loan(
            member.id, Decimal("5000"), date(2025, 1, 1), date(2025, 7, 1), ACTOR, snapshot=snapshot
        )
        assert loan.interest_rate == Decimal("10.00")

    def test_no_rate_and_no_snapshot(self, loan_service, member):
        with pytest.raises(InvalidFieldError):
            loan_service.issue_loan(member.id, Decimal("5000"), date(2025, 1, 1), date(2025, 7, 1), ACTOR)

    def test_snapshot_without_base_rate(self, loan_service, member):
        with pytest.raises(ConfigParameterNotFoundError):
            loan_service.issue_loan(
                member.id, Decimal("5000"), date(2025, 1, 1), date(2025, 7, 1), ACTOR,
                snapshot=ConfigSnapshot.from_mapping({}),
            )

    def test_due_date_must_follow_disbursement(self, loan_service, member):
        with pytest.raises(InvalidDateOrderError):
            loan_service.issue_loan(
                member.id, Decimal("5000"), date(2025, 7, 1), date(2025, 7, 1), ACTOR, interest_rate=10
            )

    def test_zero_principal(self, loan_service, member):
        with pytest.raises(InvalidAmountError):
            loan_service.issue_loan(member.id, 0, date(2025, 1, 1), date(2025, 7, 1), ACTOR, interest_rate=10)

    @pytest.mark.parametrize("rate", ["-1", "NaN", "Infinity"])
    def test_invalid_rate(self, loan_service, member, rate):
        with pytest.raises(InvalidFieldError):
            loan_service.issue_loan(
                member.id, Decimal("5000"), date(2025, 1, 1), date(2025, 7, 1), ACTOR, interest_rate=rate
            )

    def test_before_join(self, loan_service, member):
        with pytest.raises(PredatesMembershipError):
            loan_service.issue_loan(
                member.id, Decimal("5000"), date(2024, 10, 1), date(2025, 7, 1), ACTOR, interest_rate=10
            )

    def test_unknown_member(self, loan_service):
        with pytest.raises(MemberNotFoundError):
            loan_service.issue_loan(uuid4(), Decimal("5000"), date(2025, 1, 1), date(2025, 7, 1), ACTOR, interest_rate=10)

    def test_issue_is_audited(self, loan_service, auditor, member):
        loan = loan_service.issue_loan(
            member.id, Decimal("5000"), date(2025, 1, 1), date(2025, 7, 1), ACTOR, interest_rate=10
        )
        trace = auditor.get_trace("loans", loan.id)
        assert [entry.action for entry in trace] == [AuditAction.LOAN_ISSUED.value]


class TestLoanLifecycle:
    def test_mark_paid_requires_settlement(self, loan_service, ledger_service, loan):
        ledger_service.record_repayment(loan.id, Decimal("11000"), date(2025, 1, 5), ACTOR)

        with pytest.raises(LoanNotSettledError) as exc_info:
            loan_service.mark_paid(loan.id, ACTOR)
        assert exc_info.value.outstanding == "250.00"

    def test_fully_repaid_loan_stays_active_until_marked(self, loan_service, ledger_service, loan):
        ledger_service.record_repayment(loan.id, Decimal("11250"), date(2025, 1, 5), ACTOR)
        assert loan.status == LoanStatus.ACTIVE.value

        loan_service.mark_paid(loan.id, ACTOR)
        assert loan.status == LoanStatus.PAID.value
        assert loan.status_changed_at is not None

    def test_overpaid_loan_can_be_marked_paid(self, loan_service, ledger_service, loan):
        ledger_service.record_repayment(loan.id, Decimal("12000"), date(2025, 1, 5), ACTOR)
        loan_service.mark_paid(loan.id, ACTOR)
        assert loan.status == LoanStatus.PAID.value

    def test_defaulted_is_terminal(self, loan_service, loan):
        loan_service.mark_defaulted(loan.id, ACTOR, reason="Left the group")
        assert loan.status == LoanStatus.DEFAULTED.value

        with pytest.raises(InvalidLoanTransitionError):
            loan_service.mark_defaulted(loan.id, ACTOR)
        with pytest.raises(InvalidLoanTransitionError):
            loan_service.mark_paid(loan.id, ACTOR)

    def test_paid_cannot_default(self, loan_service, ledger_service, loan):
        ledger_service.record_repayment(loan.id, Decimal("11250"), date(2025, 1, 5), ACTOR)
        loan_service.mark_paid(loan.id, ACTOR)

        with pytest.raises(InvalidLoanTransitionError):
            loan_service.mark_defaulted(loan.id, ACTOR)

    def test_status_changes_are_audited(self, loan_service, auditor, loan):
        loan_service.mark_defaulted(loan.id, ACTOR, reason="Left the group")

        trace = auditor.get_trace("loans", loan.id)
        assert [entry.action for entry in trace] == [
            AuditAction.LOAN_ISSUED.value,
            AuditAction.LOAN_STATUS_CHANGED.value,
        ]
        assert trace[-1].payload["to_status"] == "defaulted"


class TestLoanImmutability:
    def test_terms_cannot_change(self, session, loan):
        loan.principal = Decimal("99999")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_direct_status_jump_blocked(self, session, loan_service, loan):
        loan_service.mark_defaulted(loan.id, ACTOR)
        loan.status = LoanStatus.ACTIVE.value
        with pytest.raises(InvalidLoanTransitionError):
            session.flush()

    def test_loan_cannot_be_deleted(self, session, loan):
        session.delete(loan)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
