"""
Module: chama_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: filtered entry listings, totals by
    type, repaid amount per loan, and the reconciliation checks that prove
    the ledger mirrors its source tables exactly once.
Architecture position: Kernel > Selectors.  May import from models/, db/ and
    selectors/base.py.

Invariants enforced:
    - No stored balances.  Every total is a SUM over LedgerTransaction rows
      at query time.
    - verify_mirroring() reports, never repairs.

Failure modes:
    - Returns zero totals and empty reports when the ledger is empty.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from chama_kernel.db.types import ZERO, round_money
from chama_kernel.models.contribution import Contribution
from chama_kernel.models.ledger import MIRRORED_TYPES, LedgerTransaction, TransactionType
from chama_kernel.models.loan import Loan, LoanRepayment
from chama_kernel.models.member import Member
from chama_kernel.models.penalty import Penalty
from chama_kernel.selectors.base import BaseSelector


def as_money(value) -> Decimal:
    """Normalize a SUM result (None on no rows) to a 2-place Decimal."""
    if value is None:
        return ZERO
    return round_money(Decimal(str(value)))


@dataclass(frozen=True)
class LedgerEntry:
    """One ledger row."""

    id: UUID
    transaction_type: TransactionType
    member_id: UUID
    loan_id: UUID | None
    source_ref: UUID | None
    amount: Decimal
    transaction_date: date
    external_ref: str | None
    period_key: str | None


@dataclass(frozen=True)
class MirrorMismatch:
    """A source row whose ledger row disagrees on one field."""

    transaction_type: TransactionType
    source_ref: UUID
    field: str
    source_value: str
    ledger_value: str


@dataclass(frozen=True)
class MirroringReport:
    """Result of comparing every source table with the ledger."""

    missing: tuple[tuple[TransactionType, UUID], ...]
    orphaned: tuple[UUID, ...]
    duplicated: tuple[tuple[TransactionType, UUID], ...]
    mismatches: tuple[MirrorMismatch, ...]
    sources_checked: int

    @property
    def is_consistent(self) -> bool:
        return not (self.missing or self.orphaned or self.duplicated or self.mismatches)


@dataclass(frozen=True)
class MemberTotalDiscrepancy:
    """Member.total_contributed disagrees with the ledger."""

    member_id: UUID
    recorded_total: Decimal
    ledger_total: Decimal


class LedgerSelector(BaseSelector):
    """
    Selector for ledger queries.

    Contract:
        Entries are ordered by transaction_date, then recorded_at.
    """

    def entries(
        self,
        member_id: UUID | None = None,
        transaction_type: TransactionType | str | None = None,
        loan_id: UUID | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> tuple[LedgerEntry, ...]:
        """Ledger rows matching every given filter."""
        stmt = select(LedgerTransaction)
        if member_id is not None:
            stmt = stmt.where(LedgerTransaction.member_id == member_id)
        if transaction_type is not None:
            stmt = stmt.where(
                LedgerTransaction.transaction_type == TransactionType(transaction_type).value
            )
        if loan_id is not None:
            stmt = stmt.where(LedgerTransaction.loan_id == loan_id)
        if start is not None:
            stmt = stmt.where(LedgerTransaction.transaction_date >= start)
        if end is not None:
            stmt = stmt.where(LedgerTransaction.transaction_date <= end)
        stmt = stmt.order_by(
            LedgerTransaction.transaction_date,
            LedgerTransaction.recorded_at,
            LedgerTransaction.id,
        )

        return tuple(
            LedgerEntry(
                id=row.id,
                transaction_type=TransactionType(row.transaction_type),
                member_id=row.member_id,
                loan_id=row.loan_id,
                source_ref=row.source_ref,
                amount=as_money(row.amount),
                transaction_date=row.transaction_date,
                external_ref=row.external_ref,
                period_key=row.period_key,
            )
            for row in self.session.execute(stmt).scalars()
        )

    def total(
        self,
        transaction_type: TransactionType | str,
        member_id: UUID | None = None,
        loan_id: UUID | None = None,
    ) -> Decimal:
        stmt = select(func.sum(LedgerTransaction.amount)).where(
            LedgerTransaction.transaction_type == TransactionType(transaction_type).value
        )
        if member_id is not None:
            stmt = stmt.where(LedgerTransaction.member_id == member_id)
        if loan_id is not None:
            stmt = stmt.where(LedgerTransaction.loan_id == loan_id)
        return as_money(self.session.execute(stmt).scalar())

    def totals_by_type(self, member_id: UUID | None = None) -> dict[TransactionType, Decimal]:
        """Sum per transaction type; every type is present, zero if unused."""
        stmt = select(
            LedgerTransaction.transaction_type,
            func.sum(LedgerTransaction.amount),
        ).group_by(LedgerTransaction.transaction_type)
        if member_id is not None:
            stmt = stmt.where(LedgerTransaction.member_id == member_id)

        totals = {transaction_type: ZERO for transaction_type in TransactionType}
        for transaction_type, amount in self.session.execute(stmt):
            totals[TransactionType(transaction_type)] = as_money(amount)
        return totals

    def totals_by_member(self) -> dict[UUID, dict[TransactionType, Decimal]]:
        """Sum per member and transaction type, for members with ledger rows."""
        stmt = select(
            LedgerTransaction.member_id,
            LedgerTransaction.transaction_type,
            func.sum(LedgerTransaction.amount),
        ).group_by(LedgerTransaction.member_id, LedgerTransaction.transaction_type)

        totals: dict[UUID, dict[TransactionType, Decimal]] = {}
        for member_id, transaction_type, amount in self.session.execute(stmt):
            member_totals = totals.setdefault(
                member_id, {transaction_type: ZERO for transaction_type in TransactionType}
            )
            member_totals[TransactionType(transaction_type)] = as_money(amount)
        return totals

    def repaid_for_loan(self, loan_id: UUID) -> Decimal:
        """Sum of ledger repayments recorded against one loan."""
        return self.total(TransactionType.LOAN_REPAYMENT, loan_id=loan_id)

    def repaid_by_loan(self) -> dict[UUID, Decimal]:
        stmt = (
            select(LedgerTransaction.loan_id, func.sum(LedgerTransaction.amount))
            .where(LedgerTransaction.transaction_type == TransactionType.LOAN_REPAYMENT.value)
            .group_by(LedgerTransaction.loan_id)
        )
        return {loan_id: as_money(amount) for loan_id, amount in self.session.execute(stmt)}

    def dividend_paid_member_ids(self, period_key: str) -> set[UUID]:
        stmt = select(LedgerTransaction.member_id).where(
            LedgerTransaction.transaction_type == TransactionType.DIVIDEND.value,
            LedgerTransaction.period_key == period_key,
        )
        return set(self.session.execute(stmt).scalars())

    # Reconciliation

    def _expected_mirrors(self) -> dict[tuple[TransactionType, UUID], dict]:
        expected = {}
        for row in self.session.execute(select(Contribution)).scalars():
            expected[(TransactionType.CONTRIBUTION, row.id)] = {
                "member_id": row.member_id,
                "loan_id": None,
                "amount": as_money(row.amount),
                "transaction_date": row.contribution_date,
                "external_ref": row.external_ref,
            }

        loan_members = dict(self.session.execute(select(Loan.id, Loan.member_id)).all())
        for row in self.session.execute(select(LoanRepayment)).scalars():
            expected[(TransactionType.LOAN_REPAYMENT, row.id)] = {
                "member_id": loan_members.get(row.loan_id),
                "loan_id": row.loan_id,
                "amount": as_money(row.amount),
                "transaction_date": row.payment_date,
                "external_ref": row.external_ref,
            }

        for row in self.session.execute(select(Penalty)).scalars():
            expected[(TransactionType.PENALTY, row.id)] = {
                "member_id": row.member_id,
                "loan_id": row.loan_id,
                "amount": as_money(row.amount),
                "transaction_date": row.penalty_date,
                "external_ref": None,
            }
        return expected

    def verify_mirroring(self) -> MirroringReport:
        """
        Compare every contribution, repayment and penalty with the ledger.

        Reports source rows without a ledger row, mirrored-type ledger rows
        without a source, sources mirrored more than once, and field
        mismatches (member, loan, amount, date, external reference).
        """
        expected = self._expected_mirrors()
        mirrored_values = [transaction_type.value for transaction_type in MIRRORED_TYPES]
        ledger_rows = self.session.execute(
            select(LedgerTransaction).where(
                LedgerTransaction.transaction_type.in_(mirrored_values)
            )
        ).scalars().all()

        seen: dict[tuple[TransactionType, UUID], int] = {}
        orphaned = []
        mismatches = []
        for row in ledger_rows:
            key = (TransactionType(row.transaction_type), row.source_ref)
            if row.source_ref is None or key not in expected:
                orphaned.append(row.id)
                continue
            seen[key] = seen.get(key, 0) + 1

            actual = {
                "member_id": row.member_id,
                "loan_id": row.loan_id,
                "amount": as_money(row.amount),
                "transaction_date": row.transaction_date,
                "external_ref": row.external_ref,
            }
            for field, source_value in expected[key].items():
                if actual[field] != source_value:
                    mismatches.append(
                        MirrorMismatch(
                            transaction_type=key[0],
                            source_ref=row.source_ref,
                            field=field,
                            source_value=str(source_value),
                            ledger_value=str(actual[field]),
                        )
                    )

        missing = tuple(key for key in expected if key not in seen)
        duplicated = tuple(key for key, count in seen.items() if count > 1)

        return MirroringReport(
            missing=missing,
            orphaned=tuple(orphaned),
            duplicated=duplicated,
            mismatches=tuple(mismatches),
            sources_checked=len(expected),
        )

    def reconcile_member_totals(self) -> tuple[MemberTotalDiscrepancy, ...]:
        """Members whose running total_contributed differs from the ledger."""
        ledger_totals = dict(
            self.session.execute(
                select(LedgerTransaction.member_id, func.sum(LedgerTransaction.amount))
                .where(LedgerTransaction.transaction_type == TransactionType.CONTRIBUTION.value)
                .group_by(LedgerTransaction.member_id)
            ).all()
        )

        discrepancies = []
        for member_id, recorded in self.session.execute(
            select(Member.id, Member.total_contributed).order_by(Member.name)
        ):
            ledger_total = as_money(ledger_totals.get(member_id))
            if as_money(recorded) != ledger_total:
                discrepancies.append(
                    MemberTotalDiscrepancy(
                        member_id=member_id,
                        recorded_total=as_money(recorded),
                        ledger_total=ledger_total,
                    )
                )
        return tuple(discrepancies)
