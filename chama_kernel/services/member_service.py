"""
MemberService -- the member directory.

Responsibility:
    Registers members, updates their contact details, shares and role,
    archives them, and deletes them when they have no financial history.

Architecture position:
    Kernel > Services.  Writes Member rows and their audit entries.

Invariants enforced:
    - phone matches ``+`` and 7 to 15 digits; email contains ``@``;
      shares_owned >= 1; role is one of MemberRole.
    - phone and email are unique across members (pre-checked, and backed
      by UNIQUE constraints).
    - A member with contributions, loans, penalties or ledger rows is never
      deleted; archive_member keeps their history (db/immutability.py).

Failure modes:
    - MissingFieldError / InvalidFieldError on malformed input.
    - DuplicateMemberError on a phone or email already in use.
    - MemberNotFoundError for an unknown id.
    - MemberHasFinancialHistoryError from delete_member.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from chama_kernel.exceptions import DuplicateMemberError, InvalidFieldError, MemberNotFoundError
from chama_kernel.domain.validation import require_text, validate_email, validate_phone, validate_shares
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.member import Member, MemberRole
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.base import BaseService

logger = get_logger("services.member")


def _validate_role(role) -> str:
    try:
        return MemberRole(role).value
    except ValueError as exc:
        raise InvalidFieldError("role", role, "unknown role") from exc


class MemberService(BaseService):
    """
    Write operations on the member directory.

    Non-goals:
        - Does NOT authenticate the acting user; ``actor`` is recorded as given.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._auditor = AuditorService(session, self.clock)

    def _check_unique(self, field: str, value: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Member.id).where(getattr(Member, field) == value)
        if exclude_id is not None:
            stmt = stmt.where(Member.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateMemberError(field, value)

    def get(self, member_id: UUID) -> Member:
        member = self.session.get(Member, member_id)
        if member is None:
            raise MemberNotFoundError(str(member_id))
        return member

    def list_members(self, include_archived: bool = False) -> list[Member]:
        stmt = select(Member).order_by(Member.name)
        if not include_archived:
            stmt = stmt.where(Member.archived_at.is_(None))
        return list(self.session.execute(stmt).scalars().all())

    def create_member(
        self,
        name: str,
        phone: str,
        email: str,
        shares_owned: int,
        join_date: date,
        actor: str,
        role: MemberRole | str = MemberRole.MEMBER,
    ) -> Member:
        """
        Register a new member.

        Returns:
            The flushed Member.
        """
        name = require_text(name, "name")
        phone = validate_phone(phone)
        email = validate_email(email)
        shares_owned = validate_shares(shares_owned)
        role = _validate_role(role)
        if join_date is None:
            raise InvalidFieldError("join_date", join_date, "required")

        self._check_unique("phone", phone)
        self._check_unique("email", email)

        member = Member(
            name=name,
            phone=phone,
            email=email,
            shares_owned=shares_owned,
            role=role,
            join_date=join_date,
            created_by=actor,
        )
        try:
            with self.session.begin_nested():
                self.session.add(member)
                self.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent registration
            raise DuplicateMemberError("phone/email", f"{phone}/{email}") from exc

        self._auditor.record(
            AuditAction.MEMBER_CREATED,
            table_name="members",
            record_id=member.id,
            user=actor,
            details=f"Registered member {name}",
            payload={
                "name": name,
                "phone": phone,
                "email": email,
                "shares_owned": shares_owned,
                "role": role,
                "join_date": join_date,
            },
        )
        logger.info(
            "member_created",
            extra={"member_id": str(member.id), "shares_owned": shares_owned, "role": role},
        )
        return member

    def update_member(
        self,
        member_id: UUID,
        actor: str,
        *,
        name: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        shares_owned: int | None = None,
        role: MemberRole | str | None = None,
    ) -> Member:
        """Change contact details, shares or role.  Omitted fields are kept."""
        member = self.get(member_id)
        changes = {}

        if name is not None:
            changes["name"] = require_text(name, "name")
        if phone is not None:
            changes["phone"] = validate_phone(phone)
            self._check_unique("phone", changes["phone"], exclude_id=member.id)
        if email is not None:
            changes["email"] = validate_email(email)
            self._check_unique("email", changes["email"], exclude_id=member.id)
        if shares_owned is not None:
            changes["shares_owned"] = validate_shares(shares_owned)
        if role is not None:
            changes["role"] = _validate_role(role)

        if not changes:
            return member

        for field, value in changes.items():
            setattr(member, field, value)
        member.updated_by = actor
        self.session.flush()

        self._auditor.record(
            AuditAction.MEMBER_UPDATED,
            table_name="members",
            record_id=member.id,
            user=actor,
            details=f"Updated {', '.join(sorted(changes))}",
            payload=changes,
        )
        logger.info(
            "member_updated",
            extra={"member_id": str(member.id), "fields": sorted(changes)},
        )
        return member

    def archive_member(self, member_id: UUID, actor: str) -> Member:
        """
        Soft-delete a member.

        The member keeps all financial history and stays visible to reports,
        but is skipped by future batch runs.  Archiving twice is a no-op.
        """
        member = self.get(member_id)
        if member.is_archived:
            return member

        member.archived_at = self.clock.now()
        member.updated_by = actor
        self.session.flush()

        self._auditor.record(
            AuditAction.MEMBER_ARCHIVED,
            table_name="members",
            record_id=member.id,
            user=actor,
            details=f"Archived member {member.name}",
        )
        logger.info("member_archived", extra={"member_id": str(member.id)})
        return member

    def delete_member(self, member_id: UUID, actor: str) -> None:
        """
        Hard-delete a member with no financial records.

        Raises:
            MemberHasFinancialHistoryError: The member has contributions,
                loans, penalties or ledger rows.  Nothing is deleted.
        """
        member = self.get(member_id)
        name = member.name

        with self.session.begin_nested():
            self.session.delete(member)
            self.session.flush()

        self._auditor.record(
            AuditAction.MEMBER_DELETED,
            table_name="members",
            record_id=member_id,
            user=actor,
            details=f"Deleted member {name}",
        )
        logger.info("member_deleted", extra={"member_id": str(member_id)})
