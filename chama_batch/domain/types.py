"""
chama_batch.domain.types -- Pure frozen dataclasses for the batch jobs.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class BatchRunStatus(str, Enum):
    """Outcome of one batch run."""

    COMPLETED = "completed"  # Every row written
    FAILED = "failed"  # Rolled back, nothing written


class JobName(str, Enum):
    MONTHLY_CONTRIBUTIONS = "monthly_contributions"
    DIVIDEND_DISTRIBUTION = "dividend_distribution"


@dataclass(frozen=True)
class DividendLine:
    """Dividend computed for one member."""

    member_id: UUID
    member_name: str
    shares_owned: int
    amount: Decimal
    skipped: bool = False  # Already paid for this period


@dataclass(frozen=True)
class BatchRunResult:
    """Immutable summary of a completed batch run."""

    run_id: UUID
    job_name: JobName
    run_key: str
    status: BatchRunStatus
    created_count: int
    skipped_count: int
    total_amount: Decimal
    config_fingerprint: str
    started_at: datetime
    completed_at: datetime | None
    parameters: dict[str, Any] = field(default_factory=dict)
    dividend_lines: tuple[DividendLine, ...] = ()
    total_profit: Decimal | None = None  # Dividend runs only
