"""
Shared run wrapper for the batch jobs.

Contract:
    ``_execute()`` runs a job body inside one SAVEPOINT.  On success the body's
    rows, a completed BatchRunModel row and an audit entry are flushed
    together.  On any failure the SAVEPOINT is rolled back, so no row the
    body wrote survives, a failed BatchRunModel row is flushed in its place,
    and BatchRunFailedError is raised with the original error chained.

Architecture:
    chama_batch/jobs.  Uses chama_kernel services for every write.

Non-goals:
    - Does NOT commit.  The caller owns the outer transaction.
    - Does NOT retry.  Re-running is safe because each job skips rows it
      has already created.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from chama_batch.domain.types import BatchRunResult, BatchRunStatus, DividendLine, JobName
from chama_batch.models.batch import BatchRunModel
from chama_kernel.db.types import ZERO
from chama_kernel.domain.clock import Clock, SystemClock
from chama_kernel.domain.values import ConfigSnapshot
from chama_kernel.exceptions import BatchRunFailedError
from chama_kernel.logging_config import LogContext, get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.utils.hashing import to_json_safe

logger = get_logger("batch.jobs")


@dataclass
class RunTally:
    """Counts accumulated by a job body while it runs."""

    created_count: int = 0
    skipped_count: int = 0
    total_amount: Decimal = ZERO
    dividend_lines: list[DividendLine] = field(default_factory=list)
    total_profit: Decimal | None = None

    def created(self, amount: Decimal) -> None:
        self.created_count += 1
        self.total_amount += amount

    def skipped(self) -> None:
        self.skipped_count += 1


class BatchJob:
    """Base class for the batch jobs."""

    job_name: JobName
    audit_action: AuditAction

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
        self._auditor = AuditorService(session, self.clock)

    def _execute(
        self,
        run_key: str,
        parameters: dict[str, Any],
        snapshot: ConfigSnapshot,
        actor: str,
        body: Callable[[RunTally], None],
    ) -> BatchRunResult:
        run_id = uuid4()
        started_at = self.clock.now()
        parameters = to_json_safe(parameters)
        tally = RunTally()

        with LogContext.bind(batch_run_id=str(run_id), actor=actor):
            logger.info(
                "batch_run_started",
                extra={
                    "job_name": self.job_name.value,
                    "run_key": run_key,
                    "config_fingerprint": snapshot.fingerprint,
                },
            )
            try:
                with self.session.begin_nested():
                    body(tally)
                    completed_at = self.clock.now()
                    self.session.add(
                        BatchRunModel(
                            id=run_id,
                            job_name=self.job_name.value,
                            run_key=run_key,
                            parameters=parameters,
                            status=BatchRunStatus.COMPLETED.value,
                            created_count=tally.created_count,
                            skipped_count=tally.skipped_count,
                            total_amount=tally.total_amount,
                            config_fingerprint=snapshot.fingerprint,
                            started_at=started_at,
                            completed_at=completed_at,
                            created_by=actor,
                        )
                    )
                    self.session.flush()
                    self._auditor.record(
                        self.audit_action,
                        table_name="batch_runs",
                        record_id=run_id,
                        user=actor,
                        details=(
                            f"{self.job_name.value} [{run_key}]: "
                            f"{tally.created_count} created, {tally.skipped_count} skipped"
                        ),
                        payload={
                            "run_key": run_key,
                            "parameters": parameters,
                            "created_count": tally.created_count,
                            "skipped_count": tally.skipped_count,
                            "total_amount": tally.total_amount,
                            "config_fingerprint": snapshot.fingerprint,
                        },
                    )
            except Exception as exc:
                logger.error(
                    "batch_run_failed",
                    exc_info=True,
                    extra={"job_name": self.job_name.value, "run_key": run_key},
                )
                self._record_failure(run_id, run_key, parameters, snapshot, actor, started_at, exc)
                raise BatchRunFailedError(self.job_name.value, run_key, str(exc)) from exc

            logger.info(
                "batch_run_completed",
                extra={
                    "job_name": self.job_name.value,
                    "run_key": run_key,
                    "created_count": tally.created_count,
                    "skipped_count": tally.skipped_count,
                    "total_amount": str(tally.total_amount),
                },
            )

        return BatchRunResult(
            run_id=run_id,
            job_name=self.job_name,
            run_key=run_key,
            status=BatchRunStatus.COMPLETED,
            created_count=tally.created_count,
            skipped_count=tally.skipped_count,
            total_amount=tally.total_amount,
            config_fingerprint=snapshot.fingerprint,
            started_at=started_at,
            completed_at=completed_at,
            parameters=parameters,
            dividend_lines=tuple(tally.dividend_lines),
            total_profit=tally.total_profit,
        )

    def _record_failure(self, run_id, run_key, parameters, snapshot, actor, started_at, exc) -> None:
        """Flush a failed-run history row after the run's SAVEPOINT was rolled back."""
        with self.session.begin_nested():
            self.session.add(
                BatchRunModel(
                    id=run_id,
                    job_name=self.job_name.value,
                    run_key=run_key,
                    parameters=parameters,
                    status=BatchRunStatus.FAILED.value,
                    config_fingerprint=snapshot.fingerprint,
                    started_at=started_at,
                    completed_at=self.clock.now(),
                    error_summary=f"{type(exc).__name__}: {exc}"[:2000],
                    created_by=actor,
                )
            )
            self.session.flush()
