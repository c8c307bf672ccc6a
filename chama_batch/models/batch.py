"""
ORM model for batch run history.

Contract:
    One BatchRunModel row per run.  A completed run's row is written in the
    same SAVEPOINT as the rows the run created; a failed run's row is written
    after that SAVEPOINT is rolled back and carries the error.

Architecture: chama_batch/models.  Imports from chama_kernel.db only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import TrackedBase
from chama_kernel.db.types import Money


class BatchRunModel(TrackedBase):
    """Persistent record of one batch run."""

    __tablename__ = "batch_runs"

    __table_args__ = (
        Index("ix_batch_runs_job_key", "job_name", "run_key"),
        Index("ix_batch_runs_status", "status"),
    )

    job_name: Mapped[str] = mapped_column(String(50), nullable=False)
    # e.g. "2024-12..2025-05" or "2025"
    run_key: Mapped[str] = mapped_column(String(50), nullable=False)
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    created_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount: Mapped[Money] = mapped_column(nullable=False, default=Decimal("0.00"))
    config_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<BatchRun {self.job_name} [{self.run_key}] {self.status}>"
