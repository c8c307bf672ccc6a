"""
ORM-level ledger mirroring.

===============================================================================
WHAT THIS DOES
===============================================================================

Every contribution, loan repayment and penalty must appear in the
transaction ledger exactly once, with the same member, amount, date and
external reference as its source record.  Reports read the ledger only, so
a source row without its ledger row would silently vanish from every total.

A single Session ``before_flush`` listener attaches the ledger row:

    session.add(Contribution(...))
    session.flush()
         |
         v
    [before_flush] --> _attach_ledger_mirrors()
         |                 |
         |                 +-- rejects hand-made contribution/repayment/penalty
         |                 |   ledger rows (LedgerWriteError)
         |                 +-- adds one LedgerTransaction per new source row
         |                 +-- bumps Member.total_contributed for contributions
         v
    INSERT source rows and ledger rows in the same flush

Because source and mirror share one flush, they share one database
transaction.  If either INSERT fails (a duplicate external reference, a
missing loan) neither is written.  LedgerService additionally wraps each
record call in a SAVEPOINT so the failure is contained even inside a larger
caller transaction.

Dividend rows have no source record and are added directly by the dividend
distribution job; they pass through this listener untouched.

===============================================================================
USAGE
===============================================================================

Registered automatically when ``chama_kernel.models`` is imported.  Tests
that need to create an orphan ledger row to exercise the reconciliation
report can unregister it:

    from chama_kernel.db.ledger_mirror import unregister_ledger_mirror
    unregister_ledger_mirror()
    # ... write an unmirrored row ...
    register_ledger_mirror()

===============================================================================
"""

from uuid import uuid4

from sqlalchemy import event
from sqlalchemy.orm import Session

from chama_kernel.exceptions import LedgerWriteError, LoanNotFoundError, MemberNotFoundError
from chama_kernel.logging_config import get_logger

logger = get_logger("db.ledger_mirror")


def _reject_direct_ledger_writes(new_objects):
    from chama_kernel.models.ledger import MIRRORED_TYPES, LedgerTransaction, TransactionType

    for obj in new_objects:
        if not isinstance(obj, LedgerTransaction):
            continue
        if TransactionType(obj.transaction_type) not in MIRRORED_TYPES:
            continue

        logger.error(
            "ledger_direct_write_blocked",
            extra={
                "transaction_type": TransactionType(obj.transaction_type).value,
                "member_id": str(obj.member_id),
            },
        )
        raise LedgerWriteError(
            source_type=TransactionType(obj.transaction_type).value,
            reason="ledger rows of this type are only written alongside their source record",
        )


def _ensure_id(obj):
    # source_ref needs the id before INSERT applies the column default
    if obj.id is None:
        obj.id = uuid4()


def _mirror_for(session, obj):
    """Build the ledger row for one new source object, or None."""
    from chama_kernel.models.contribution import Contribution
    from chama_kernel.models.ledger import LedgerTransaction, TransactionType
    from chama_kernel.models.loan import Loan, LoanRepayment
    from chama_kernel.models.member import Member
    from chama_kernel.models.penalty import Penalty

    if isinstance(obj, Contribution):
        _ensure_id(obj)
        member = obj.member if obj.member is not None else session.get(Member, obj.member_id)
        if member is None:
            raise MemberNotFoundError(str(obj.member_id))
        member.total_contributed = (member.total_contributed or 0) + obj.amount
        return LedgerTransaction(
            transaction_type=TransactionType.CONTRIBUTION.value,
            source_ref=obj.id,
            member_id=member.id,
            amount=obj.amount,
            transaction_date=obj.contribution_date,
            external_ref=obj.external_ref,
            period_key=obj.period_key,
        )

    if isinstance(obj, LoanRepayment):
        _ensure_id(obj)
        # The ledger member of a repayment is always the loan's member
        loan = obj.loan if obj.loan is not None else session.get(Loan, obj.loan_id)
        if loan is None:
            raise LoanNotFoundError(str(obj.loan_id))
        return LedgerTransaction(
            transaction_type=TransactionType.LOAN_REPAYMENT.value,
            source_ref=obj.id,
            member_id=loan.member_id,
            loan_id=loan.id,
            amount=obj.amount,
            transaction_date=obj.payment_date,
            external_ref=obj.external_ref,
        )

    if isinstance(obj, Penalty):
        _ensure_id(obj)
        return LedgerTransaction(
            transaction_type=TransactionType.PENALTY.value,
            source_ref=obj.id,
            member_id=obj.member_id,
            loan_id=obj.loan_id,
            amount=obj.amount,
            transaction_date=obj.penalty_date,
        )

    return None


def _attach_ledger_mirrors(session, flush_context, instances):
    """
    Add one LedgerTransaction for every new Contribution, LoanRepayment and
    Penalty in this flush.

    Runs in SessionEvents.before_flush so the mirrors join the flush plan.
    """
    pending = list(session.new)

    _reject_direct_ledger_writes(pending)

    with session.no_autoflush:
        for obj in pending:
            mirror = _mirror_for(session, obj)
            if mirror is None:
                continue

            session.add(mirror)
            logger.debug(
                "ledger_mirror_attached",
                extra={
                    "transaction_type": mirror.transaction_type,
                    "source_ref": str(obj.id),
                    "member_id": str(mirror.member_id),
                    "amount": str(mirror.amount),
                },
            )


def register_ledger_mirror():
    """Register the ledger mirror listener.  Safe to call more than once."""
    if not event.contains(Session, "before_flush", _attach_ledger_mirrors):
        event.listen(Session, "before_flush", _attach_ledger_mirrors)


def unregister_ledger_mirror():
    """
    Remove the ledger mirror listener.

    WARNING: Only use this in tests that deliberately create unmirrored
    ledger state.
    """
    if event.contains(Session, "before_flush", _attach_ledger_mirrors):
        event.remove(Session, "before_flush", _attach_ledger_mirrors)
