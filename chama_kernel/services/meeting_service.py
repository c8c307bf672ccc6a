"""
MeetingService -- meeting records and attendance.

Responsibility:
    Records meetings with their agenda and attendees and lets the secretary
    add minutes afterwards.  Attendance has no financial effect.

Architecture position:
    Kernel > Services.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from chama_kernel.domain.validation import require_text
from chama_kernel.exceptions import MeetingNotFoundError, MemberNotFoundError
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.meeting import Meeting
from chama_kernel.models.member import Member
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.base import BaseService

logger = get_logger("services.meeting")


class MeetingService(BaseService):
    """Write and lookup operations on meetings."""

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._auditor = AuditorService(session, self.clock)

    def _attendee_ids(self, attendee_ids) -> list[str]:
        ids = sorted({str(member_id) for member_id in attendee_ids or ()})
        for member_id in ids:
            try:
                member = self.session.get(Member, UUID(member_id))
            except ValueError as exc:
                raise MemberNotFoundError(member_id) from exc
            if member is None:
                raise MemberNotFoundError(member_id)
        return ids

    def record_meeting(
        self,
        meeting_date: date,
        agenda: str,
        actor: str,
        attendee_ids=None,
        minutes: str | None = None,
    ) -> Meeting:
        """Record a meeting.  Every attendee must be a registered member."""
        agenda = require_text(agenda, "agenda")
        attendees = self._attendee_ids(attendee_ids)

        meeting = Meeting(
            meeting_date=meeting_date,
            agenda=agenda,
            minutes=minutes,
            attendee_ids=attendees,
            created_by=actor,
        )
        with self.session.begin_nested():
            self.session.add(meeting)
            self.session.flush()
            self._auditor.record(
                AuditAction.MEETING_RECORDED,
                table_name="meetings",
                record_id=meeting.id,
                user=actor,
                details=f"Meeting on {meeting_date}: {agenda}",
                payload={"meeting_date": meeting_date, "attendee_ids": attendees},
            )

        logger.info(
            "meeting_recorded",
            extra={"meeting_id": str(meeting.id), "attendees": len(attendees)},
        )
        return meeting

    def update_minutes(self, meeting_id: UUID, minutes: str, actor: str) -> Meeting:
        meeting = self.get(meeting_id)
        minutes = require_text(minutes, "minutes")
        with self.session.begin_nested():
            meeting.minutes = minutes
            meeting.updated_by = actor
            self.session.flush()
            self._auditor.record(
                AuditAction.MEETING_MINUTES_UPDATED,
                table_name="meetings",
                record_id=meeting.id,
                user=actor,
                details=f"Minutes updated for meeting on {meeting.meeting_date}",
            )
        logger.info("meeting_minutes_updated", extra={"meeting_id": str(meeting.id)})
        return meeting

    def get(self, meeting_id: UUID) -> Meeting:
        meeting = self.session.get(Meeting, meeting_id)
        if meeting is None:
            raise MeetingNotFoundError(str(meeting_id))
        return meeting

    def list_meetings(self, start: date | None = None, end: date | None = None) -> list[Meeting]:
        """Meetings in date order, optionally within [start, end]."""
        stmt = select(Meeting).order_by(Meeting.meeting_date)
        if start is not None:
            stmt = stmt.where(Meeting.meeting_date >= start)
        if end is not None:
            stmt = stmt.where(Meeting.meeting_date <= end)
        return list(self.session.execute(stmt).scalars().all())

    def attendance_count(self, member_id: UUID) -> int:
        """Number of recorded meetings the member attended."""
        member_key = str(member_id)
        return sum(
            1 for meeting in self.list_meetings()
            if member_key in (meeting.attendee_ids or [])
        )
