"""
chama_batch -- atomic, idempotent batch jobs over the chama kernel.

Jobs:
    MonthlyContributionJob     one contribution per member per month
    DividendDistributionJob    one dividend per member per period

Every run executes inside one SAVEPOINT and either writes everything plus a
BatchRunModel history row, or writes nothing and raises BatchRunFailedError.
"""

from chama_batch.domain.types import BatchRunResult, BatchRunStatus, DividendLine
from chama_batch.jobs.dividends import DividendDistributionJob
from chama_batch.jobs.monthly_contributions import MonthlyContributionJob

__all__ = [
    "BatchRunResult",
    "BatchRunStatus",
    "DividendDistributionJob",
    "DividendLine",
    "MonthlyContributionJob",
]
