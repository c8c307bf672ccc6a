"""
Module: chama_kernel.models.meeting
Responsibility: ORM persistence for group meetings and attendance.
Architecture position: Kernel > Models.  Independent of the financial model.
"""

from datetime import date

from sqlalchemy import JSON, Date, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from chama_kernel.db.base import TrackedBase


class Meeting(TrackedBase):
    """A meeting with its agenda, minutes and attending member ids."""

    __tablename__ = "meetings"

    __table_args__ = (
        Index("idx_meetings_date", "meeting_date"),
    )

    meeting_date: Mapped[date] = mapped_column(Date, nullable=False)

    agenda: Mapped[str] = mapped_column(Text, nullable=False)

    minutes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Member ids as strings, sorted and de-duplicated by MeetingService
    attendee_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return f"<Meeting {self.meeting_date} attendees={len(self.attendee_ids or [])}>"
