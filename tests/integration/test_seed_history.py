"""
End to end over the sample history, committed to the database.

Verifies that after seeding and a dividend run every consistency check
passes: mirroring, member running totals and the audit chain.
"""

from decimal import Decimal

from sqlalchemy import func, select

from chama_batch import DividendDistributionJob
from chama_batch.models.batch import BatchRunModel
from chama_kernel.models.meeting import Meeting
from chama_kernel.selectors.ledger_selector import LedgerSelector
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.config_service import ConfigService


def test_seeded_history_is_consistent(session, clock, seeded):
    session.commit()

    assert seeded["contribution_run"].created_count == 48
    assert session.execute(select(func.count()).select_from(Meeting)).scalar() == 2

    snapshot = ConfigService(session, clock).snapshot()
    result = DividendDistributionJob(session, clock).run(Decimal("10"), snapshot, "treasurer", cap_to_profit=True)
    session.commit()

    assert result.total_amount == Decimal("2800.00")
    assert result.total_profit == Decimal("9125.00")

    ledger = LedgerSelector(session)
    assert ledger.verify_mirroring().is_consistent
    assert ledger.reconcile_member_totals() == ()
    assert AuditorService(session, clock).validate_chain()
    assert session.execute(select(func.count()).select_from(BatchRunModel)).scalar() == 2


def test_seeding_twice_adds_no_contributions(session, clock, seeded):
    from chama_batch import MonthlyContributionJob
    from scripts.seed_data import CONTRIBUTIONS_END, CONTRIBUTIONS_START

    snapshot = ConfigService(session, clock).snapshot()
    rerun = MonthlyContributionJob(session, clock).run(CONTRIBUTIONS_START, CONTRIBUTIONS_END, snapshot, "seed")

    assert rerun.created_count == 0
    assert rerun.skipped_count == 48
