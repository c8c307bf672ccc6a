"""
DividendDistributionJob -- pay a dividend to every member.

Contract:
    For every member who is not archived, record a ``dividend`` ledger row of
    round(shares_owned x share_value x rate / 100, 2), dated the run date
    from the clock, under a period key (default: the run year).

    Total profit, the flat interest over every loan ever issued
    (sum of principal x interest_rate / 100), is computed and reported with
    the run.  With ``cap_to_profit=True`` a distribution larger than that
    profit is refused before anything is written.

Invariants enforced:
    - Idempotent: members already paid for the period are skipped.  The
      UNIQUE (transaction_type, member_id, period_key) ledger constraint
      backs the check.
    - Atomic: every dividend row is in one SAVEPOINT (jobs/base.py).
    - Dividends are ledger rows only; they are never written to the
      contributions table.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select

from chama_batch.domain.types import BatchRunResult, DividendLine, JobName
from chama_batch.jobs.base import BatchJob, RunTally
from chama_kernel.db.types import ZERO
from chama_kernel.domain.loan_math import dividend_amount
from chama_kernel.domain.validation import require_non_negative
from chama_kernel.domain.values import ConfigSnapshot
from chama_kernel.exceptions import DividendExceedsProfitError
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.ledger import LedgerTransaction, TransactionType
from chama_kernel.models.member import Member
from chama_kernel.selectors.ledger_selector import LedgerSelector
from chama_kernel.selectors.loan_selector import LoanSelector

logger = get_logger("batch.dividends")


class DividendDistributionJob(BatchJob):
    """Distributes dividends as ledger rows."""

    job_name = JobName.DIVIDEND_DISTRIBUTION
    audit_action = AuditAction.DIVIDEND_RUN_COMPLETED

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._ledger = LedgerSelector(session)
        self._loans = LoanSelector(session, self.clock)

    def preview(
        self,
        rate: Decimal | int | str,
        snapshot: ConfigSnapshot,
        period_key: str | None = None,
    ) -> tuple[DividendLine, ...]:
        """Dividend per member without writing anything."""
        rate = self._validate_rate(rate)
        period_key = period_key or str(self.clock.today().year)
        share_value = snapshot.share_value
        already_paid = self._ledger.dividend_paid_member_ids(period_key)

        members = self.session.execute(
            select(Member).where(Member.archived_at.is_(None)).order_by(Member.name)
        ).scalars().all()
        return tuple(
            DividendLine(
                member_id=member.id,
                member_name=member.name,
                shares_owned=member.shares_owned,
                amount=dividend_amount(member.shares_owned, share_value, rate),
                skipped=member.id in already_paid,
            )
            for member in members
        )

    @staticmethod
    def _validate_rate(rate) -> Decimal:
        return require_non_negative(rate, "rate")

    def run(
        self,
        rate: Decimal | int | str,
        snapshot: ConfigSnapshot,
        actor: str,
        period_key: str | None = None,
        cap_to_profit: bool = False,
    ) -> BatchRunResult:
        """
        Distribute dividends at ``rate`` percent of each member's share value.

        Raises:
            InvalidFieldError: rate is negative or not a number.
            DividendExceedsProfitError: cap_to_profit and the new dividends
                exceed total profit.  Nothing is written.
            BatchRunFailedError: any write failed; nothing was kept.
        """
        rate = self._validate_rate(rate)
        run_date = self.clock.today()
        period_key = period_key or str(run_date.year)
        lines = self.preview(rate, snapshot, period_key)
        total_profit = self._loans.total_interest_income()
        to_pay = sum((line.amount for line in lines if not line.skipped), ZERO)

        if cap_to_profit and to_pay > total_profit:
            logger.warning(
                "dividend_exceeds_profit",
                extra={"total_dividend": str(to_pay), "total_profit": str(total_profit)},
            )
            raise DividendExceedsProfitError(to_pay, total_profit)

        def body(tally: RunTally) -> None:
            tally.total_profit = total_profit
            for line in lines:
                tally.dividend_lines.append(line)
                if line.skipped:
                    tally.skipped()
                    continue
                if line.amount <= 0:
                    continue
                self.session.add(
                    LedgerTransaction(
                        transaction_type=TransactionType.DIVIDEND.value,
                        member_id=line.member_id,
                        amount=line.amount,
                        transaction_date=run_date,
                        period_key=period_key,
                    )
                )
                tally.created(line.amount)
            self.session.flush()

        return self._execute(
            period_key,
            {
                "rate": rate,
                "period_key": period_key,
                "run_date": run_date,
                "cap_to_profit": cap_to_profit,
                "total_profit": total_profit,
            },
            snapshot,
            actor,
            body,
        )
