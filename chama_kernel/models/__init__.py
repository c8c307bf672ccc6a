"""Domain models for the chama kernel.

Importing this package registers the ledger mirror and the immutability
listeners, so every session that sees these models enforces them.
"""

from chama_kernel.models.audit_log import AuditAction, AuditLogEntry
from chama_kernel.models.config_parameter import ConfigParameter
from chama_kernel.models.contribution import Contribution
from chama_kernel.models.ledger import MIRRORED_TYPES, LedgerTransaction, TransactionType
from chama_kernel.models.loan import (
    LOAN_TERM_FIELDS,
    VALID_LOAN_TRANSITIONS,
    Loan,
    LoanRepayment,
    LoanStatus,
)
from chama_kernel.models.meeting import Meeting
from chama_kernel.models.member import Member, MemberRole
from chama_kernel.models.penalty import Penalty
from chama_kernel.models.sequence import SequenceCounter

from chama_kernel.db.immutability import register_immutability_listeners
from chama_kernel.db.ledger_mirror import register_ledger_mirror

register_ledger_mirror()
register_immutability_listeners()

__all__ = [
    "AuditAction",
    "AuditLogEntry",
    "ConfigParameter",
    "Contribution",
    "LedgerTransaction",
    "TransactionType",
    "MIRRORED_TYPES",
    "Loan",
    "LoanRepayment",
    "LoanStatus",
    "VALID_LOAN_TRANSITIONS",
    "LOAN_TERM_FIELDS",
    "Meeting",
    "Member",
    "MemberRole",
    "Penalty",
    "SequenceCounter",
]
