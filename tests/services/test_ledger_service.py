"""
LedgerService and the ledger mirror.

Verifies:
- Every contribution, repayment and penalty gets exactly one ledger row
  with the same member, amount, date and external reference
- Failed writes leave neither a source row nor a ledger row
- External references are unique across every transaction type
- Ledger rows for mirrored types cannot be written directly
- Member.total_contributed follows the contributions
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from chama_kernel.exceptions import (
    DuplicateExternalReferenceError,
    InvalidAmountError,
    InvalidDateOrderError,
    InvalidFieldError,
    LedgerWriteError,
    LoanNotActiveError,
    LoanNotFoundError,
    MemberNotFoundError,
    PredatesMembershipError,
)
from chama_kernel.models.contribution import Contribution
from chama_kernel.models.ledger import LedgerTransaction, TransactionType
from chama_kernel.models.loan import LoanRepayment
from chama_kernel.models.penalty import Penalty
from chama_kernel.selectors.ledger_selector import LedgerSelector
from chama_kernel.services.ledger_service import LedgerService

ACTOR = "tester"


def _count(session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar()


def _ledger_rows(session, transaction_type, source_ref):
    return session.execute(
        select(LedgerTransaction).where(
            LedgerTransaction.transaction_type == transaction_type.value,
            LedgerTransaction.source_ref == source_ref,
        )
    ).scalars().all()


class TestContributionMirroring:
    def test_contribution_creates_one_ledger_row(self, session, ledger_service, member):
        contribution = ledger_service.record_contribution(
            member.id, Decimal("4000"), date(2025, 1, 1), ACTOR, external_ref="MP001"
        )

        rows = _ledger_rows(session, TransactionType.CONTRIBUTION, contribution.id)
        assert len(rows) == 1
        row = rows[0]
        assert row.member_id == member.id
        assert row.amount == Decimal("4000.00")
        assert row.transaction_date == date(2025, 1, 1)
        assert row.external_ref == "MP001"
        assert row.loan_id is None

    def test_running_total_follows_contributions(self, session, ledger_service, member):
        ledger_service.record_contribution(member.id, Decimal("4000"), date(2025, 1, 1), ACTOR)
        ledger_service.record_contribution(member.id, Decimal("1500.50"), date(2025, 2, 1), ACTOR)

        session.refresh(member)
        assert member.total_contributed == Decimal("5500.50")
        assert LedgerSelector(session).reconcile_member_totals() == ()

    def test_logs_recorded_event(self, ledger_service, member, captured_logs):
        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 1, 1), ACTOR)

        records = [r for r in captured_logs() if r["message"] == "contribution_recorded"]
        assert len(records) == 1
        assert records[0]["amount"] == "100"

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
    def test_non_positive_amount_rejected(self, session, ledger_service, member, amount):
        with pytest.raises(InvalidAmountError):
            ledger_service.record_contribution(member.id, amount, date(2025, 1, 1), ACTOR)
        assert _count(session, Contribution) == 0
        assert _count(session, LedgerTransaction) == 0

    @pytest.mark.parametrize("amount", ["0.004", "100.005"])
    def test_sub_cent_amount_rejected(self, session, ledger_service, member, amount):
        with pytest.raises(InvalidAmountError):
            ledger_service.record_contribution(member.id, amount, date(2025, 1, 1), ACTOR)
        assert _count(session, Contribution) == 0
        assert _count(session, LedgerTransaction) == 0
        session.refresh(member)
        assert member.total_contributed == Decimal("0.00")

    def test_unknown_member(self, session, ledger_service):
        from uuid import uuid4

        with pytest.raises(MemberNotFoundError):
            ledger_service.record_contribution(uuid4(), Decimal("100"), date(2025, 1, 1), ACTOR)

    def test_contribution_before_join_rejected(self, ledger_service, member):
        with pytest.raises(PredatesMembershipError):
            ledger_service.record_contribution(member.id, Decimal("100"), date(2024, 10, 31), ACTOR)


class TestRepaymentMirroring:
    def test_repayment_mirrors_loan_member(self, session, ledger_service, loan, member):
        repayment = ledger_service.record_repayment(
            loan.id, Decimal("5000"), date(2025, 1, 5), ACTOR, external_ref="MP-R1"
        )

        rows = _ledger_rows(session, TransactionType.LOAN_REPAYMENT, repayment.id)
        assert len(rows) == 1
        assert rows[0].member_id == member.id
        assert rows[0].loan_id == loan.id
        assert rows[0].amount == Decimal("5000.00")
        assert rows[0].external_ref == "MP-R1"

    def test_repayment_before_disbursement_rejected(self, session, ledger_service, loan):
        with pytest.raises(InvalidDateOrderError):
            ledger_service.record_repayment(loan.id, Decimal("100"), date(2024, 11, 30), ACTOR)
        assert _count(session, LoanRepayment) == 0

    def test_repayment_on_defaulted_loan_rejected(self, session, ledger_service, loan_service, loan):
        loan_service.mark_defaulted(loan.id, ACTOR, reason="Member unreachable")

        with pytest.raises(LoanNotActiveError):
            ledger_service.record_repayment(loan.id, Decimal("100"), date(2025, 1, 5), ACTOR)
        assert _count(session, LoanRepayment) == 0

    def test_overpayment_accepted(self, session, ledger_service, loan):
        ledger_service.record_repayment(loan.id, Decimal("12000"), date(2025, 1, 5), ACTOR)
        assert LedgerSelector(session).repaid_for_loan(loan.id) == Decimal("12000.00")

    def test_unknown_loan(self, ledger_service):
        from uuid import uuid4

        with pytest.raises(LoanNotFoundError):
            ledger_service.record_repayment(uuid4(), Decimal("100"), date(2025, 1, 5), ACTOR)


class TestPenaltyMirroring:
    def test_penalty_mirrors_member_and_loan(self, session, ledger_service, loan, member):
        penalty = ledger_service.record_penalty(
            member.id, Decimal("500"), date(2025, 2, 21), ACTOR, reason="Late payment", loan_id=loan.id
        )

        rows = _ledger_rows(session, TransactionType.PENALTY, penalty.id)
        assert len(rows) == 1
        assert rows[0].member_id == member.id
        assert rows[0].loan_id == loan.id
        assert rows[0].amount == Decimal("500.00")

    def test_penalty_without_loan(self, session, ledger_service, member):
        penalty = ledger_service.record_penalty(member.id, Decimal("200"), date(2025, 3, 1), ACTOR)
        assert _ledger_rows(session, TransactionType.PENALTY, penalty.id)[0].loan_id is None

    def test_penalty_on_another_members_loan_rejected(self, session, ledger_service, loan, members):
        with pytest.raises(InvalidFieldError):
            ledger_service.record_penalty(
                members[1].id, Decimal("200"), date(2025, 3, 1), ACTOR, loan_id=loan.id
            )
        assert _count(session, Penalty) == 0


class TestExternalReferences:
    def test_duplicate_within_type_rejected(self, session, ledger_service, member):
        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 1, 1), ACTOR, external_ref="MP42")

        with pytest.raises(DuplicateExternalReferenceError):
            ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 2, 1), ACTOR, external_ref="MP42")
        assert _count(session, Contribution) == 1

    def test_duplicate_across_types_leaves_no_source_row(self, session, ledger_service, member, loan):
        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 1, 1), ACTOR, external_ref="MP42")

        with pytest.raises(DuplicateExternalReferenceError):
            ledger_service.record_repayment(loan.id, Decimal("100"), date(2025, 1, 5), ACTOR, external_ref="MP42")

        assert _count(session, LoanRepayment) == 0
        assert _count(session, LedgerTransaction) == 1

    def test_database_rejection_rolls_back_source_row(self, session, ledger_service, member, loan, monkeypatch):
        """With the pre-check bypassed, the ledger UNIQUE constraint still keeps both rows out."""
        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 1, 1), ACTOR, external_ref="MP42")
        monkeypatch.setattr(LedgerService, "external_ref_exists", lambda self, ref: False)

        with pytest.raises(LedgerWriteError):
            ledger_service.record_repayment(loan.id, Decimal("100"), date(2025, 1, 5), ACTOR, external_ref="MP42")

        assert _count(session, LoanRepayment) == 0
        assert _count(session, LedgerTransaction) == 1
        assert LedgerSelector(session).verify_mirroring().is_consistent

    def test_session_usable_after_rejection(self, session, ledger_service, member):
        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 1, 1), ACTOR, external_ref="MP42")
        with pytest.raises(DuplicateExternalReferenceError):
            ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 2, 1), ACTOR, external_ref="MP42")

        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 2, 1), ACTOR, external_ref="MP43")
        session.commit()
        assert _count(session, Contribution) == 2

    def test_external_ref_exists(self, ledger_service, member):
        assert not ledger_service.external_ref_exists("MP42")
        ledger_service.record_contribution(member.id, Decimal("100"), date(2025, 1, 1), ACTOR, external_ref="MP42")
        assert ledger_service.external_ref_exists("MP42")


class TestDirectLedgerWrites:
    @pytest.mark.parametrize(
        "transaction_type",
        [TransactionType.CONTRIBUTION, TransactionType.LOAN_REPAYMENT, TransactionType.PENALTY],
    )
    def test_mirrored_type_cannot_be_added_directly(self, session, member, transaction_type):
        session.add(
            LedgerTransaction(
                transaction_type=transaction_type.value,
                member_id=member.id,
                amount=Decimal("100"),
                transaction_date=date(2025, 1, 1),
            )
        )
        with pytest.raises(LedgerWriteError):
            session.flush()

    def test_dividend_rows_are_written_directly(self, session, member):
        session.add(
            LedgerTransaction(
                transaction_type=TransactionType.DIVIDEND.value,
                member_id=member.id,
                amount=Decimal("400"),
                transaction_date=date(2025, 6, 1),
                period_key="2025",
            )
        )
        session.flush()
        assert LedgerSelector(session).total(TransactionType.DIVIDEND) == Decimal("400.00")

    def test_verify_mirroring_on_consistent_ledger(self, session, ledger_service, member, loan):
        ledger_service.record_contribution(member.id, Decimal("4000"), date(2025, 1, 1), ACTOR)
        ledger_service.record_repayment(loan.id, Decimal("5000"), date(2025, 1, 5), ACTOR)
        ledger_service.record_penalty(member.id, Decimal("500"), date(2025, 2, 1), ACTOR, loan_id=loan.id)

        report = LedgerSelector(session).verify_mirroring()
        assert report.is_consistent
        assert report.sources_checked == 3
