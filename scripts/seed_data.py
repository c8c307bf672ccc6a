#!/usr/bin/env python3
"""
Seed the database with a realistic chama history.

Creates the configuration parameters, eight members, three loans, four
repayments, two penalties and two meetings, then runs the monthly
contribution job for December 2024 through May 2025.  Everything goes
through the kernel services, so every financial record is mirrored into
the ledger and audited.

Usage:
    python3 scripts/seed_data.py [--db-url sqlite:///chama.db] [--reset]
"""

import argparse
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from chama_batch.jobs.monthly_contributions import MonthlyContributionJob  # noqa: E402
from chama_config import get_active_config  # noqa: E402
from chama_kernel.domain.clock import Clock, SystemClock  # noqa: E402
from chama_kernel.models.member import MemberRole  # noqa: E402
from chama_kernel.services.config_service import ConfigService  # noqa: E402
from chama_kernel.services.ledger_service import LedgerService  # noqa: E402
from chama_kernel.services.loan_service import LoanService  # noqa: E402
from chama_kernel.services.meeting_service import MeetingService  # noqa: E402
from chama_kernel.services.member_service import MemberService  # noqa: E402

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
ACTOR = "seed"
JOIN_DATE = date(2024, 11, 1)
CONTRIBUTIONS_START = date(2024, 12, 1)
CONTRIBUTIONS_END = date(2025, 5, 1)

# (name, phone, email, shares, role)
MEMBERS = [
    ("Florence Otieno", "+254712345678", "florence@chama.co.ke", 2, MemberRole.CHAIR),
    ("Carol Kamau",     "+254723456789", "carol@chama.co.ke",    2, MemberRole.TREASURER),
    ("Susan Wafula",    "+254734567890", "susan@chama.co.ke",    2, MemberRole.SECRETARY),
    ("Mercy Mwangi",    "+254745678901", "mercy@chama.co.ke",    2, MemberRole.MEMBER),
    ("Latipha Oduor",   "+254756789012", "latipha@chama.co.ke",  2, MemberRole.MEMBER),
    ("Mukami Esther",   "+254767890123", "mukami@chama.co.ke",   2, MemberRole.MEMBER),
    ("Milka Karanja",   "+254778901234", "milka@chama.co.ke",    1, MemberRole.MEMBER),
    ("Amina Christine", "+254789012345", "amina@chama.co.ke",    1, MemberRole.MEMBER),
]

# (member index, principal, rate, disbursed, due)
LOANS = [
    (0, Decimal("10000.00"), Decimal("12.50"), date(2024, 12, 1), date(2025, 6, 1)),
    (1, Decimal("15000.00"), Decimal("12.50"), date(2024, 12, 15), date(2025, 6, 15)),
    (5, Decimal("40000.00"), Decimal("15.00"), date(2025, 2, 15), date(2025, 8, 15)),
]

# (loan index, amount, paid on)
REPAYMENTS = [
    (0, Decimal("5000.00"), date(2025, 1, 5)),
    (0, Decimal("6000.00"), date(2025, 2, 5)),
    (1, Decimal("8000.00"), date(2025, 1, 20)),
    (1, Decimal("9000.00"), date(2025, 2, 20)),
]

# (member index, loan index, amount, date, reason)
PENALTIES = [
    (5, 2, Decimal("1500.00"), date(2025, 3, 1), "Late payment penalty"),
    (1, 1, Decimal("500.00"), date(2025, 2, 21), "Partial payment penalty"),
]

# (date, agenda, minutes, attendee member indexes)
MEETINGS = [
    (date(2024, 12, 5), "Year-End Strategy", "Approved loan policy updates", range(8)),
    (date(2025, 1, 10), "Financial Review", "Reviewed December transactions", range(6)),
]


def seed_group(session, clock: Clock | None = None, config=None) -> dict:
    """
    Write the seed history into ``session`` without committing.

    Returns:
        Dict with the created ``members``, ``loans`` and ``meetings`` and
        the monthly contribution run result under ``contribution_run``.
    """
    clock = clock or SystemClock()
    config = config or get_active_config()

    config_service = ConfigService(session, clock)
    config_service.seed_defaults(config.parameters, ACTOR)
    snapshot = config_service.snapshot()

    member_service = MemberService(session, clock)
    members = [
        member_service.create_member(name, phone, email, shares, JOIN_DATE, ACTOR, role=role)
        for name, phone, email, shares, role in MEMBERS
    ]

    loan_service = LoanService(session, clock)
    loans = [
        loan_service.issue_loan(
            members[member_index].id, principal, disbursed, due, ACTOR, interest_rate=rate
        )
        for member_index, principal, rate, disbursed, due in LOANS
    ]

    ledger = LedgerService(session, clock)
    for loan_index, amount, paid_on in REPAYMENTS:
        ledger.record_repayment(loans[loan_index].id, amount, paid_on, ACTOR)
    for member_index, loan_index, amount, charged_on, reason in PENALTIES:
        ledger.record_penalty(
            members[member_index].id,
            amount,
            charged_on,
            ACTOR,
            reason=reason,
            loan_id=loans[loan_index].id,
        )

    meeting_service = MeetingService(session, clock)
    meetings = [
        meeting_service.record_meeting(
            held_on,
            agenda,
            ACTOR,
            attendee_ids=[members[i].id for i in attendees],
            minutes=minutes,
        )
        for held_on, agenda, minutes, attendees in MEETINGS
    ]

    run = MonthlyContributionJob(session, clock).run(
        CONTRIBUTIONS_START, CONTRIBUTIONS_END, snapshot, ACTOR
    )
    return {"members": members, "loans": loans, "meetings": meetings, "contribution_run": run}


def main() -> int:
    from chama_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, session_scope
    from chama_kernel.logging_config import LogContext, configure_logging

    config = get_active_config()
    parser = argparse.ArgumentParser(description="Seed the chama database.")
    parser.add_argument(
        "--db-url", type=str, default=config.database_url,
        help=f"Database URL (default: {config.database_url})",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Drop and recreate every table first",
    )
    args = parser.parse_args()

    configure_logging(level=config.log_level)
    init_engine_from_url(args.db_url)
    if args.reset:
        drop_tables()
    create_tables()

    with LogContext.bind(correlation_id=uuid4().hex, actor=ACTOR), session_scope() as session:
        seeded = seed_group(session, config=config)

    run = seeded["contribution_run"]
    print(f"  Members:        {len(seeded['members'])}")
    print(f"  Loans:          {len(seeded['loans'])}")
    print(f"  Meetings:       {len(seeded['meetings'])}")
    print(f"  Contributions:  {run.created_count} created, {run.skipped_count} skipped")
    print(f"  Total:          {config.currency} {run.total_amount:,.2f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
