"""
Audit chain validation tests.

Verifies:
- Every service write appends one hash-chained entry
- Sequence numbers are gapless and strictly increasing
- Tampering with details, payload or user breaks validation at that entry
- Deleting an entry breaks the link of its successor
"""

from contextlib import contextmanager
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from chama_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from chama_kernel.exceptions import AuditChainBrokenError, ImmutabilityViolationError
from chama_kernel.models.audit_log import AuditAction, AuditLogEntry
from chama_kernel.utils.hashing import hash_audit_event, hash_payload

ACTOR = "tester"


@contextmanager
def disabled_immutability():
    """Switch off the ORM immutability listeners to simulate tampering."""
    unregister_immutability_listeners()
    try:
        yield
    finally:
        register_immutability_listeners()


def _entries(session) -> list[AuditLogEntry]:
    return list(session.execute(select(AuditLogEntry).order_by(AuditLogEntry.seq)).scalars())


@pytest.fixture
def history(ledger_service, loan_service, member, loan):
    ledger_service.record_contribution(member.id, Decimal("4000"), date(2025, 1, 1), ACTOR)
    ledger_service.record_repayment(loan.id, Decimal("5000"), date(2025, 1, 5), ACTOR)
    ledger_service.record_penalty(member.id, Decimal("500"), date(2025, 2, 1), ACTOR, loan_id=loan.id)


class TestChainStructure:
    def test_genesis_has_no_predecessor(self, session, auditor, member):
        first = _entries(session)[0]
        assert first.seq == 1
        assert first.prev_hash is None

    def test_entries_are_linked(self, session, history):
        entries = _entries(session)
        assert [e.seq for e in entries] == list(range(1, len(entries) + 1))
        for previous, current in zip(entries, entries[1:]):
            assert current.prev_hash == previous.hash

    def test_hash_recomputes(self, session, history):
        entry = _entries(session)[-1]
        payload_hash = hash_payload({"user": entry.user, "details": entry.details, "payload": entry.payload})
        assert entry.payload_hash == payload_hash
        assert entry.hash == hash_audit_event(
            table_name=entry.table_name,
            record_id=entry.record_id,
            action=entry.action_type,
            payload_hash=payload_hash,
            prev_hash=entry.prev_hash,
        )

    def test_every_write_is_audited(self, session, history):
        actions = [e.action_type for e in _entries(session)]
        assert actions.count(AuditAction.MEMBER_CREATED.value) == 8
        assert actions.count(AuditAction.LOAN_ISSUED.value) == 1
        assert actions.count(AuditAction.CONTRIBUTION_RECORDED.value) == 1
        assert actions.count(AuditAction.REPAYMENT_RECORDED.value) == 1
        assert actions.count(AuditAction.PENALTY_RECORDED.value) == 1

    def test_valid_chain(self, auditor, history):
        assert auditor.validate_chain() is True

    def test_empty_chain_is_valid(self, auditor):
        assert auditor.validate_chain() is True

    def test_recent_entries_newest_first(self, auditor, history):
        recent = auditor.get_recent_entries(limit=2)
        assert len(recent) == 2
        assert recent[0].seq > recent[1].seq


class TestTamperDetection:
    def test_entries_cannot_be_modified(self, session, history):
        entry = _entries(session)[0]
        entry.details = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_entries_cannot_be_deleted(self, session, history):
        session.delete(_entries(session)[0])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    @pytest.mark.parametrize(
        "field, value",
        [
            ("details", "Contribution of 1 by nobody"),
            ("user", "intruder"),
            ("payload", {"amount": "1.00"}),
        ],
    )
    def test_modified_entry_detected(self, session, auditor, history, field, value):
        target = _entries(session)[3]
        with disabled_immutability():
            setattr(target, field, value)
            session.flush()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain()
        assert exc_info.value.seq == target.seq

    def test_deleted_entry_detected(self, session, auditor, history):
        entries = _entries(session)
        with disabled_immutability():
            session.delete(entries[2])
            session.flush()

        with pytest.raises(AuditChainBrokenError) as exc_info:
            auditor.validate_chain()
        assert exc_info.value.seq == entries[3].seq
