"""
Database constraints behind the service checks.

Rows added straight to the session bypass LedgerService validation; the
schema must still refuse them.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from chama_kernel.models.contribution import Contribution
from chama_kernel.models.loan import Loan, LoanStatus
from chama_kernel.models.penalty import Penalty


def _flush_in_savepoint(session, obj):
    with session.begin_nested():
        session.add(obj)
        session.flush()


class TestSchemaConstraints:
    def test_contribution_amount_positive(self, session, member):
        with pytest.raises(IntegrityError):
            _flush_in_savepoint(
                session,
                Contribution(member_id=member.id, amount=Decimal("0"), contribution_date=date(2025, 1, 1), recorded_by="x"),
            )

    def test_one_contribution_per_member_period(self, session, member):
        _flush_in_savepoint(
            session,
            Contribution(
                member_id=member.id, amount=Decimal("4000"), contribution_date=date(2025, 1, 1),
                period_key="2025-01", recorded_by="x",
            ),
        )
        with pytest.raises(IntegrityError):
            _flush_in_savepoint(
                session,
                Contribution(
                    member_id=member.id, amount=Decimal("4000"), contribution_date=date(2025, 1, 1),
                    period_key="2025-01", recorded_by="x",
                ),
            )

    def test_loan_dates_ordered(self, session, member):
        with pytest.raises(IntegrityError):
            _flush_in_savepoint(
                session,
                Loan(
                    member_id=member.id, principal=Decimal("1000"), interest_rate=Decimal("10"),
                    disbursement_date=date(2025, 6, 1), due_date=date(2025, 1, 1),
                    status=LoanStatus.ACTIVE.value, created_by="x",
                ),
            )

    def test_penalty_amount_positive(self, session, member):
        with pytest.raises(IntegrityError):
            _flush_in_savepoint(
                session,
                Penalty(member_id=member.id, amount=Decimal("-5"), penalty_date=date(2025, 1, 1), recorded_by="x"),
            )
