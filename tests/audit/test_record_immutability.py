"""
Financial records are append-only.

Verifies:
- Contributions, repayments, penalties and ledger rows reject UPDATE and DELETE
- A blocked flush leaves the stored values untouched
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from chama_kernel.exceptions import ImmutabilityViolationError
from chama_kernel.models.ledger import LedgerTransaction

ACTOR = "tester"


@pytest.fixture
def records(ledger_service, member, loan):
    return {
        "contribution": ledger_service.record_contribution(member.id, Decimal("4000"), date(2025, 1, 1), ACTOR),
        "repayment": ledger_service.record_repayment(loan.id, Decimal("5000"), date(2025, 1, 5), ACTOR),
        "penalty": ledger_service.record_penalty(member.id, Decimal("500"), date(2025, 2, 1), ACTOR),
    }


class TestSourceRecords:
    @pytest.mark.parametrize("kind", ["contribution", "repayment", "penalty"])
    def test_amount_cannot_change(self, session, records, kind):
        records[kind].amount = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    @pytest.mark.parametrize("kind", ["contribution", "repayment", "penalty"])
    def test_cannot_delete(self, session, records, kind):
        session.delete(records[kind])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_blocked_change_is_not_stored(self, session, records):
        contribution = records["contribution"]
        session.commit()
        contribution.amount = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        session.refresh(contribution)
        assert contribution.amount == Decimal("4000.00")


class TestLedgerRows:
    def test_ledger_row_cannot_change(self, session, records):
        row = session.execute(select(LedgerTransaction)).scalars().first()
        row.amount = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_ledger_row_cannot_be_deleted(self, session, records):
        row = session.execute(select(LedgerTransaction)).scalars().first()
        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
