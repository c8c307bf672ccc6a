"""
LedgerService -- records contributions, loan repayments and penalties.

Responsibility:
    Validates each financial event and writes its source record.  The
    matching ledger row is attached in the same flush by the ledger mirror
    (db/ledger_mirror.py); this service never builds ledger rows itself.

Architecture position:
    Kernel > Services.  Called by the CLI, the seed script and the monthly
    contribution job.

Invariants enforced:
    - Single-event amounts are strictly positive.
    - No record predates its member's join date; repayments do not predate
      the loan's disbursement.
    - Repayments are accepted for active loans only.
    - External references are unique across the whole ledger.
    - Each record call runs in its own SAVEPOINT: the source row, its ledger
      row and its audit entry are kept together or not at all.

Failure modes:
    - InvalidAmountError, InvalidFieldError, InvalidDateOrderError,
      PredatesMembershipError on invalid input.
    - MemberNotFoundError, LoanNotFoundError for unknown references.
    - LoanNotActiveError for repayments against paid or defaulted loans.
    - DuplicateExternalReferenceError when the reference is already recorded.
    - LedgerWriteError when the database rejects the source or mirror row.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from chama_kernel.domain.validation import (
    require_not_before_join,
    require_positive_amount,
    validate_external_ref,
)
from chama_kernel.exceptions import (
    DuplicateExternalReferenceError,
    InvalidDateOrderError,
    InvalidFieldError,
    LedgerWriteError,
    LoanNotActiveError,
    LoanNotFoundError,
    MemberNotFoundError,
)
from chama_kernel.logging_config import get_logger
from chama_kernel.models.audit_log import AuditAction
from chama_kernel.models.contribution import Contribution
from chama_kernel.models.ledger import LedgerTransaction
from chama_kernel.models.loan import Loan, LoanRepayment
from chama_kernel.models.member import Member
from chama_kernel.models.penalty import Penalty
from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class LedgerService(BaseService):
    """
    Write path for every ledger-mirrored financial event.

    Contract:
        Each ``record_*`` method either returns the flushed source record,
        with its ledger row and audit entry flushed alongside, or raises and
        leaves the session as it was before the call.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        self._auditor = AuditorService(session, self.clock)

    def _get_member(self, member_id: UUID) -> Member:
        member = self.session.get(Member, member_id)
        if member is None:
            raise MemberNotFoundError(str(member_id))
        return member

    def _get_loan(self, loan_id: UUID) -> Loan:
        loan = self.session.get(Loan, loan_id)
        if loan is None:
            raise LoanNotFoundError(str(loan_id))
        return loan

    def _check_external_ref(self, external_ref: str | None) -> None:
        if external_ref is not None and self.external_ref_exists(external_ref):
            raise DuplicateExternalReferenceError(external_ref)

    def _write(self, source_type: str, record, audit_action: AuditAction, actor: str, details: str, payload: dict):
        """Flush the source record (and, via the mirror, its ledger row) plus its audit entry."""
        try:
            with self.session.begin_nested():
                self.session.add(record)
                self.session.flush()
                self._auditor.record(
                    audit_action,
                    table_name=record.__tablename__,
                    record_id=record.id,
                    user=actor,
                    details=details,
                    payload=payload,
                )
        except IntegrityError as exc:
            logger.error(
                "ledger_write_failed",
                extra={"source_type": source_type, "error": str(exc.orig)},
            )
            raise LedgerWriteError(source_type, str(exc.orig)) from exc

        logger.info(
            f"{source_type}_recorded",
            extra={
                "record_id": str(record.id),
                "amount": str(record.amount),
                "member_id": str(payload.get("member_id")),
            },
        )
        return record

    def record_contribution(
        self,
        member_id: UUID,
        amount: Decimal | int | str,
        contribution_date: date,
        actor: str,
        external_ref: str | None = None,
        period_key: str | None = None,
    ) -> Contribution:
        """
        Record a share contribution.

        ``period_key`` is set by the monthly contribution run; at most one
        contribution per member carries a given key.
        """
        amount = require_positive_amount(amount)
        external_ref = validate_external_ref(external_ref)
        member = self._get_member(member_id)
        require_not_before_join(member.id, contribution_date, member.join_date)
        self._check_external_ref(external_ref)

        contribution = Contribution(
            member_id=member.id,
            amount=amount,
            contribution_date=contribution_date,
            external_ref=external_ref,
            period_key=period_key,
            recorded_by=actor,
        )
        return self._write(
            "contribution",
            contribution,
            AuditAction.CONTRIBUTION_RECORDED,
            actor,
            details=f"Contribution of {amount} by {member.name}",
            payload={
                "member_id": member.id,
                "amount": amount,
                "contribution_date": contribution_date,
                "external_ref": external_ref,
                "period_key": period_key,
            },
        )

    def record_repayment(
        self,
        loan_id: UUID,
        amount: Decimal | int | str,
        payment_date: date,
        actor: str,
        external_ref: str | None = None,
    ) -> LoanRepayment:
        """
        Record a repayment against an active loan.

        Overpayment is accepted; the outstanding balance then goes negative.
        The loan's status is not changed here.
        """
        amount = require_positive_amount(amount)
        external_ref = validate_external_ref(external_ref)
        loan = self._get_loan(loan_id)
        if not loan.is_active:
            raise LoanNotActiveError(str(loan.id), str(loan.status))
        if payment_date < loan.disbursement_date:
            raise InvalidDateOrderError(
                "disbursement_date", loan.disbursement_date, "payment_date", payment_date
            )
        self._check_external_ref(external_ref)

        repayment = LoanRepayment(
            loan_id=loan.id,
            amount=amount,
            payment_date=payment_date,
            external_ref=external_ref,
            recorded_by=actor,
        )
        return self._write(
            "loan_repayment",
            repayment,
            AuditAction.REPAYMENT_RECORDED,
            actor,
            details=f"Repayment of {amount} on loan {loan.id}",
            payload={
                "loan_id": loan.id,
                "member_id": loan.member_id,
                "amount": amount,
                "payment_date": payment_date,
                "external_ref": external_ref,
            },
        )

    def record_penalty(
        self,
        member_id: UUID,
        amount: Decimal | int | str,
        penalty_date: date,
        actor: str,
        reason: str | None = None,
        loan_id: UUID | None = None,
    ) -> Penalty:
        """Charge a penalty to a member, optionally against one of their loans."""
        amount = require_positive_amount(amount)
        member = self._get_member(member_id)
        require_not_before_join(member.id, penalty_date, member.join_date)
        if loan_id is not None:
            loan = self._get_loan(loan_id)
            if loan.member_id != member.id:
                raise InvalidFieldError("loan_id", loan_id, "loan belongs to another member")

        penalty = Penalty(
            member_id=member.id,
            loan_id=loan_id,
            amount=amount,
            penalty_date=penalty_date,
            reason=reason,
            recorded_by=actor,
        )
        return self._write(
            "penalty",
            penalty,
            AuditAction.PENALTY_RECORDED,
            actor,
            details=f"Penalty of {amount} on {member.name}: {reason or 'no reason given'}",
            payload={
                "member_id": member.id,
                "loan_id": loan_id,
                "amount": amount,
                "penalty_date": penalty_date,
                "reason": reason,
            },
        )

    def external_ref_exists(self, external_ref: str) -> bool:
        """True when the reference is already held by any ledger or source row."""
        # Source tables are checked too: a source row may predate its mirror in this flush
        for model in (LedgerTransaction, Contribution, LoanRepayment):
            stmt = select(model.id).where(model.external_ref == external_ref)
            if self.session.execute(stmt).first() is not None:
                return True
        return False
