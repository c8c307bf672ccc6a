"""
Pytest fixtures for the chama ledger test suite.

Provides:
- An in-memory SQLite database per test (foreign keys on, SAVEPOINTs honoured)
- A DeterministicClock and the kernel services bound to it
- Seeded configuration parameters and an eight-member group

Every test gets a fresh schema, so tests never see each other's rows.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

import chama_batch.models  # noqa: F401
import chama_kernel.models  # noqa: F401
from chama_config import ParameterDef
from chama_kernel.db.base import Base
from chama_kernel.db.engine import install_sqlite_pragmas
from chama_kernel.db.immutability import register_immutability_listeners
from chama_kernel.db.ledger_mirror import register_ledger_mirror
from chama_kernel.domain.clock import DeterministicClock
from chama_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from chama_kernel.models.member import MemberRole
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.config_service import ConfigService
from chama_kernel.services.ledger_service import LedgerService
from chama_kernel.services.loan_service import LoanService
from chama_kernel.services.meeting_service import MeetingService
from chama_kernel.services.member_service import MemberService

ACTOR = "tester"
JOIN_DATE = date(2024, 11, 1)

DEFAULT_PARAMETERS = (
    ParameterDef("share_value", Decimal("2000.00"), "Monthly contribution per share"),
    ParameterDef("penalty_rate", Decimal("5.00"), "Penalty rate in percent"),
    ParameterDef("base_interest_rate", Decimal("10.00"), "Default loan rate in percent"),
)

GROUP = [
    ("Florence Otieno", "+254712345678", "florence@chama.co.ke", 2, MemberRole.CHAIR),
    ("Carol Kamau", "+254723456789", "carol@chama.co.ke", 2, MemberRole.TREASURER),
    ("Susan Wafula", "+254734567890", "susan@chama.co.ke", 2, MemberRole.SECRETARY),
    ("Mercy Mwangi", "+254745678901", "mercy@chama.co.ke", 2, MemberRole.MEMBER),
    ("Latipha Oduor", "+254756789012", "latipha@chama.co.ke", 2, MemberRole.MEMBER),
    ("Mukami Esther", "+254767890123", "mukami@chama.co.ke", 2, MemberRole.MEMBER),
    ("Milka Karanja", "+254778901234", "milka@chama.co.ke", 1, MemberRole.MEMBER),
    ("Amina Christine", "+254789012345", "amina@chama.co.ke", 1, MemberRole.MEMBER),
]


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture chama_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger_service):
            ledger_service.record_contribution(...)
            logs = captured_logs()
            assert any(r["message"] == "contribution_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("chama_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture(autouse=True)
def _storage_listeners():
    """Make sure no test leaves the ORM listeners switched off."""
    register_ledger_mirror()
    register_immutability_listeners()
    yield
    register_ledger_mirror()
    register_immutability_listeners()


@pytest.fixture
def engine():
    eng = install_sqlite_pragmas(
        create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session(engine):
    sess = Session(bind=engine, expire_on_commit=False)
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc))


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def auditor(session, clock):
    return AuditorService(session, clock)


@pytest.fixture
def config_service(session, clock):
    return ConfigService(session, clock)


@pytest.fixture
def member_service(session, clock):
    return MemberService(session, clock)


@pytest.fixture
def ledger_service(session, clock):
    return LedgerService(session, clock)


@pytest.fixture
def loan_service(session, clock):
    return LoanService(session, clock)


@pytest.fixture
def meeting_service(session, clock):
    return MeetingService(session, clock)


# =============================================================================
# Data
# =============================================================================


@pytest.fixture
def snapshot(config_service):
    """Default parameters seeded and frozen."""
    config_service.seed_defaults(DEFAULT_PARAMETERS, ACTOR)
    return config_service.snapshot()


@pytest.fixture
def members(member_service):
    """The eight-member group, all joined on JOIN_DATE, in GROUP order."""
    return [
        member_service.create_member(name, phone, email, shares, JOIN_DATE, ACTOR, role=role)
        for name, phone, email, shares, role in GROUP
    ]


@pytest.fixture
def member(members):
    return members[0]


@pytest.fixture
def loan(loan_service, member):
    """10,000 at 12.5% to the first member, due 2025-06-01."""
    return loan_service.issue_loan(
        member.id,
        Decimal("10000"),
        date(2024, 12, 1),
        date(2025, 6, 1),
        ACTOR,
        interest_rate=Decimal("12.5"),
    )


@pytest.fixture
def seeded(session, clock):
    """The sample history from scripts/seed_data.py, flushed but not committed."""
    from scripts.seed_data import seed_group

    return seed_group(session, clock)
