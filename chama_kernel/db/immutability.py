"""
ORM-level immutability enforcement.

===============================================================================
WHAT THIS PROTECTS
===============================================================================

Financial history is append-only.  A recorded contribution, repayment,
penalty or ledger row is never edited or removed; a mistake is corrected by
recording a new event.  These listeners fire before SQL reaches the
database:

    session.flush()
         |
         v
    [before_flush]  --> _check_member_deletion()  --> MemberHasFinancialHistoryError
         |
         v
    [before_update] --> _check_*_update() ------+
         |                                       |
         v                                       v
    [before_delete] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable                | Notes
--------------------|-------------------------------|-------------------------------
LedgerTransaction   | ALWAYS                        | Source of truth for reports
Contribution        | ALWAYS                        | Mirrored into the ledger
LoanRepayment       | ALWAYS                        | Mirrored into the ledger
Penalty             | ALWAYS                        | Mirrored into the ledger
AuditLogEntry       | ALWAYS                        | Hash chained
Loan                | Terms always; status one step | active -> paid | defaulted
Member              | Delete only without history   | Archive otherwise

Bulk ``UPDATE``/``DELETE`` statements bypass ORM events.  No service in this
package issues them against protected tables.

===============================================================================
USAGE
===============================================================================

Registered automatically when ``chama_kernel.models`` is imported.  To
temporarily disable (TESTS ONLY):

    from chama_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
    # ... tamper ...
    register_immutability_listeners()

===============================================================================
"""

from sqlalchemy import event, exists, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from chama_kernel.exceptions import (
    ImmutabilityViolationError,
    InvalidLoanTransitionError,
    MemberHasFinancialHistoryError,
)
from chama_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# =============================================================================
# Append-only records
# =============================================================================


def _check_ledger_transaction_update(mapper, connection, target):
    _block("LedgerTransaction", target, "UPDATE", "Ledger transactions cannot be modified")


def _check_ledger_transaction_delete(mapper, connection, target):
    _block("LedgerTransaction", target, "DELETE", "Ledger transactions cannot be deleted")


def _check_contribution_update(mapper, connection, target):
    _block("Contribution", target, "UPDATE", "Contributions cannot be modified")


def _check_contribution_delete(mapper, connection, target):
    _block("Contribution", target, "DELETE", "Contributions cannot be deleted")


def _check_repayment_update(mapper, connection, target):
    _block("LoanRepayment", target, "UPDATE", "Loan repayments cannot be modified")


def _check_repayment_delete(mapper, connection, target):
    _block("LoanRepayment", target, "DELETE", "Loan repayments cannot be deleted")


def _check_penalty_update(mapper, connection, target):
    _block("Penalty", target, "UPDATE", "Penalties cannot be modified")


def _check_penalty_delete(mapper, connection, target):
    _block("Penalty", target, "DELETE", "Penalties cannot be deleted")


def _check_audit_entry_update(mapper, connection, target):
    _block("AuditLogEntry", target, "UPDATE", "Audit entries are immutable and cannot be modified")


def _check_audit_entry_delete(mapper, connection, target):
    _block("AuditLogEntry", target, "DELETE", "Audit entries cannot be deleted")


# =============================================================================
# Loans
# =============================================================================
#
# Loan terms are fixed at issuance.  Only status (and its timestamp plus the
# TrackedBase metadata) may change, and status only along
# VALID_LOAN_TRANSITIONS.
# =============================================================================


def _check_loan_update(mapper, connection, target):
    """
    Block changes to loan terms and invalid status transitions.

    Status history:
        history.deleted = value in the database before this flush
        history.added   = value being written
    """
    from chama_kernel.models.loan import LOAN_TERM_FIELDS, VALID_LOAN_TRANSITIONS, LoanStatus

    for field in LOAN_TERM_FIELDS:
        if get_history(target, field).has_changes():
            _block("Loan", target, "UPDATE", f"Loan term '{field}' cannot change after issuance")

    status_history = get_history(target, "status")
    if not status_history.has_changes() or not status_history.deleted:
        return

    old_status = LoanStatus(status_history.deleted[0])
    new_status = LoanStatus(status_history.added[0])

    if new_status not in VALID_LOAN_TRANSITIONS[old_status]:
        logger.error(
            "loan_transition_blocked",
            extra={
                "loan_id": str(target.id),
                "from_status": old_status.value,
                "to_status": new_status.value,
            },
        )
        raise InvalidLoanTransitionError(
            loan_id=str(target.id),
            from_status=old_status.value,
            to_status=new_status.value,
        )


def _check_loan_delete(mapper, connection, target):
    _block("Loan", target, "DELETE", "Loans cannot be deleted")


# =============================================================================
# Members
# =============================================================================


def _member_has_financial_history(session, member_id) -> bool:
    from chama_kernel.models.contribution import Contribution
    from chama_kernel.models.ledger import LedgerTransaction
    from chama_kernel.models.loan import Loan
    from chama_kernel.models.penalty import Penalty

    stmt = select(
        or_(
            exists().where(LedgerTransaction.member_id == member_id),
            exists().where(Contribution.member_id == member_id),
            exists().where(Loan.member_id == member_id),
            exists().where(Penalty.member_id == member_id),
        )
    )
    return bool(session.execute(stmt).scalar())


def _check_member_deletion(session, flush_context, instances):
    """
    Refuse to delete members referenced by financial records.

    Runs in SessionEvents.before_flush, before the flush plan is finalized.
    Deleting a member does not cascade; such members are archived instead.
    """
    from chama_kernel.models.member import Member

    for obj in list(session.deleted):
        if not isinstance(obj, Member):
            continue

        with session.no_autoflush:
            has_history = _member_has_financial_history(session, obj.id)

        if has_history:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Member",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "member_has_financial_history",
                },
            )
            raise MemberHasFinancialHistoryError(member_id=str(obj.id))


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from chama_kernel.models.audit_log import AuditLogEntry
    from chama_kernel.models.contribution import Contribution
    from chama_kernel.models.ledger import LedgerTransaction
    from chama_kernel.models.loan import Loan, LoanRepayment
    from chama_kernel.models.penalty import Penalty

    return [
        (Session, "before_flush", _check_member_deletion),
        (LedgerTransaction, "before_update", _check_ledger_transaction_update),
        (LedgerTransaction, "before_delete", _check_ledger_transaction_delete),
        (Contribution, "before_update", _check_contribution_update),
        (Contribution, "before_delete", _check_contribution_delete),
        (LoanRepayment, "before_update", _check_repayment_update),
        (LoanRepayment, "before_delete", _check_repayment_delete),
        (Penalty, "before_update", _check_penalty_update),
        (Penalty, "before_delete", _check_penalty_delete),
        (AuditLogEntry, "before_update", _check_audit_entry_update),
        (AuditLogEntry, "before_delete", _check_audit_entry_delete),
        (Loan, "before_update", _check_loan_update),
        (Loan, "before_delete", _check_loan_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Called once when ``chama_kernel.models`` is imported; calling it again
    is a no-op.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        _safe_remove_listener(target, event_name, listener_fn)
