"""
MonthlyContributionJob -- generate one contribution per member per month.

Contract:
    For every calendar month whose first day lies between the first of the
    month containing ``start`` and ``end`` (inclusive), and every member who
    is not archived and had joined by that first day, record a contribution
    of shares_owned x share_value dated the first of the month with period
    key ``YYYY-MM``.

Invariants enforced:
    - Idempotent: a member+month that already has a contribution is skipped,
      so re-running a range creates nothing new.  The UNIQUE (member_id,
      period_key) constraint backs the check.
    - Atomic: the whole range is one SAVEPOINT (jobs/base.py).
    - Every contribution goes through LedgerService, so each one is
      mirrored into the ledger.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select

from chama_batch.domain.types import BatchRunResult, JobName
from chama_batch.jobs.base import BatchJob, RunTally
from chama_kernel.domain.loan_math import contribution_amount, month_period_key, month_starts
from chama_kernel.domain.validation import require_positive_amount
from chama_kernel.domain.values import ConfigSnapshot
from chama_kernel.exceptions import InvalidDateOrderError
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.contribution import Contribution
from chama_kernel.models.member import Member
from chama_kernel.services.ledger_service import LedgerService


class MonthlyContributionJob(BatchJob):
    """Generates the monthly share contributions for a date range."""

    job_name = JobName.MONTHLY_CONTRIBUTIONS
    audit_action = AuditAction.CONTRIBUTION_RUN_COMPLETED

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._ledger = LedgerService(session, self.clock)

    def run(self, start: date, end: date, snapshot: ConfigSnapshot, actor: str) -> BatchRunResult:
        """
        Generate contributions for every month in [start, end].

        Raises:
            InvalidDateOrderError: end is before start.
            ConfigParameterNotFoundError: snapshot has no share_value.
            BatchRunFailedError: any write failed; nothing was kept.
        """
        if end < start:
            raise InvalidDateOrderError("start", start, "end", end)
        share_value = require_positive_amount(snapshot.share_value, "share_value")
        months = month_starts(start, end)
        period_keys = [month_period_key(month) for month in months]
        run_key = f"{period_keys[0]}..{period_keys[-1]}"

        def body(tally: RunTally) -> None:
            members = self.session.execute(
                select(Member).where(Member.archived_at.is_(None)).order_by(Member.join_date, Member.name)
            ).scalars().all()
            existing = set(
                self.session.execute(
                    select(Contribution.member_id, Contribution.period_key).where(
                        Contribution.period_key.in_(period_keys)
                    )
                ).all()
            )

            for month, period_key in zip(months, period_keys):
                for member in members:
                    if member.join_date > month:
                        continue
                    if (member.id, period_key) in existing:
                        tally.skipped()
                        continue
                    amount = contribution_amount(member.shares_owned, share_value)
                    self._ledger.record_contribution(
                        member.id,
                        amount,
                        month,
                        actor,
                        period_key=period_key,
                    )
                    tally.created(amount)

        return self._execute(
            run_key,
            {"start": start, "end": end, "share_value": share_value},
            snapshot,
            actor,
            body,
        )
