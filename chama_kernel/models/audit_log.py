"""
Module: chama_kernel.models.audit_log
Responsibility: ORM persistence for the tamper-evident audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only; no UPDATE or DELETE (db/immutability.py).
    - seq is unique and monotonically increasing, allocated by
      SequenceService.
    - hash = H(table_name | record_id | action_type | payload_hash | prev_hash),
      validated by AuditorService.validate_chain().

Audit relevance:
    AuditLogEntry IS the audit trail.  Every service write (member changes,
    contributions, loans, repayments, penalties, status changes, config
    changes, meetings, batch runs) produces one entry naming the acting user.
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import Base


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Directory
    MEMBER_CREATED = "member_created"
    MEMBER_UPDATED = "member_updated"
    MEMBER_ARCHIVED = "member_archived"
    MEMBER_DELETED = "member_deleted"

    # Ledger sources
    CONTRIBUTION_RECORDED = "contribution_recorded"
    REPAYMENT_RECORDED = "repayment_recorded"
    PENALTY_RECORDED = "penalty_recorded"

    # Loans
    LOAN_ISSUED = "loan_issued"
    LOAN_STATUS_CHANGED = "loan_status_changed"

    # Batch
    CONTRIBUTION_RUN_COMPLETED = "contribution_run_completed"
    DIVIDEND_RUN_COMPLETED = "dividend_run_completed"

    # Configuration and meetings
    CONFIG_CHANGED = "config_changed"
    MEETING_RECORDED = "meeting_recorded"
    MEETING_MINUTES_UPDATED = "meeting_minutes_updated"


class AuditLogEntry(Base):
    """
    One audit log entry, hash-chained to its predecessor.

    Guarantees:
        - prev_hash is None only for the first entry.

    Non-goals:
        - This model does NOT check hash correctness at INSERT time;
          that is the responsibility of AuditorService.
    """

    __tablename__ = "audit_log"

    __table_args__ = (
        Index("idx_audit_record", "table_name", "record_id"),
        Index("idx_audit_action", "action_type"),
        Index("idx_audit_timestamp", "action_timestamp"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    action_type: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    table_name: Mapped[str] = mapped_column(String(50), nullable=False)

    record_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # Acting user
    user: Mapped[str] = mapped_column(String(100), nullable=False)

    action_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    details: Mapped[str | None] = mapped_column(Text, nullable=True)

    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.action_type} on {self.table_name}:{self.record_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
