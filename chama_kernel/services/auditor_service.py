"""
AuditorService -- tamper-evident audit trail and hash chain maintenance.

Responsibility:
    Appends one hash-chained AuditLogEntry for every service write, naming
    the acting user.  Provides chain validation for tamper detection and
    per-record trace queries.

Architecture position:
    Kernel > Services.  Called by every other write service and by the
    batch jobs.

Invariants enforced:
    - seq allocated via SequenceService (never raw SQL max+1).
    - hash = H(table_name | record_id | action | payload_hash | prev_hash),
      where payload_hash covers the user, details and payload.
    - Append-only: entries are never modified or deleted (ORM listeners
      in db/immutability.py).

Failure modes:
    - AuditChainBrokenError: a recomputed hash does not match the stored
      one, or prev_hash does not match the predecessor's hash.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from chama_kernel.domain.clock import Clock, SystemClock
from chama_kernel.exceptions import AuditChainBrokenError
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction, AuditLogEntry
from chama_kernel.services.sequence_service import SequenceService
from chama_kernel.utils.hashing import hash_audit_event, hash_payload, to_json_safe

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    user: str
    occurred_at: datetime
    details: str | None
    payload: dict[str, Any]


def _entry_payload_hash(user: str, details: str | None, payload: dict | None) -> str:
    return hash_payload({"user": user, "details": details, "payload": payload or {}})


class AuditorService:
    """
    Service for creating and validating audit log entries.

    Non-goals:
        - Does NOT call ``session.commit()``; caller controls boundaries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._sequence_service = SequenceService(session)

    def _get_last_hash(self) -> str | None:
        last_entry = self._session.execute(
            select(AuditLogEntry)
            .order_by(AuditLogEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

        return last_entry.hash if last_entry else None

    def record(
        self,
        action: AuditAction,
        table_name: str,
        record_id: Any,
        user: str,
        details: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> AuditLogEntry:
        """
        Append an audit entry linked to the current chain head.

        Args:
            action: What happened.
            table_name: Table of the affected record.
            record_id: Id of the affected record.
            user: Acting user.
            details: Human-readable summary.
            payload: Structured context; Decimal, date and UUID values are
                stored in their canonical string form.

        Returns:
            The flushed AuditLogEntry.
        """
        seq = self._sequence_service.next_value(SequenceService.AUDIT_EVENT)
        prev_hash = self._get_last_hash()

        payload_data = to_json_safe(payload or {})
        payload_hash = _entry_payload_hash(user, details, payload_data)
        entry_hash = hash_audit_event(
            table_name=table_name,
            record_id=str(record_id),
            action=AuditAction(action).value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditLogEntry(
            seq=seq,
            action_type=AuditAction(action).value,
            table_name=table_name,
            record_id=str(record_id),
            user=user,
            action_timestamp=self._clock.now(),
            details=details,
            payload=payload_data,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()

        logger.info(
            "audit_event_created",
            extra={
                "table_name": table_name,
                "record_id": str(record_id),
                "action": AuditAction(action).value,
                "seq": seq,
                "user": user,
            },
        )
        return entry

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Returns:
            True when every stored hash matches its recomputed value and
            every prev_hash matches its predecessor.

        Raises:
            AuditChainBrokenError: At the first entry that fails.
        """
        entries = self._session.execute(
            select(AuditLogEntry).order_by(AuditLogEntry.seq)
        ).scalars().all()

        prev_hash = None
        for entry in entries:
            if entry.prev_hash != prev_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(entry.seq, prev_hash or "None", entry.prev_hash or "None")

            expected_payload_hash = _entry_payload_hash(entry.user, entry.details, entry.payload)
            expected_hash = hash_audit_event(
                table_name=entry.table_name,
                record_id=entry.record_id,
                action=AuditAction(entry.action_type).value,
                payload_hash=expected_payload_hash,
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(entry.seq, expected_hash, entry.hash)

            prev_hash = entry.hash

        logger.info(
            "audit_chain_valid",
            extra={"entry_count": len(entries)},
        )
        return True

    def get_trace(self, table_name: str, record_id: Any) -> tuple[AuditTraceEntry, ...]:
        """All entries for one record, oldest first."""
        entries = self._session.execute(
            select(AuditLogEntry)
            .where(
                AuditLogEntry.table_name == table_name,
                AuditLogEntry.record_id == str(record_id),
            )
            .order_by(AuditLogEntry.seq)
        ).scalars().all()

        return tuple(
            AuditTraceEntry(
                seq=entry.seq,
                action=AuditAction(entry.action_type),
                user=entry.user,
                occurred_at=entry.action_timestamp,
                details=entry.details,
                payload=entry.payload or {},
            )
            for entry in entries
        )

    def get_recent_entries(self, limit: int = 100) -> list[AuditLogEntry]:
        """Most recent audit entries, newest first."""
        result = self._session.execute(
            select(AuditLogEntry)
            .order_by(AuditLogEntry.seq.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
