"""Services for the chama kernel (write side)."""

from chama_kernel.services.auditor_service import AuditorService
from chama_kernel.services.config_service import ConfigService
from chama_kernel.services.ledger_service import LedgerService
from chama_kernel.services.loan_service import LoanService
from chama_kernel.services.meeting_service import MeetingService
from chama_kernel.services.member_service import MemberService
from chama_kernel.services.sequence_service import SequenceService

__all__ = [
    "AuditorService",
    "ConfigService",
    "LedgerService",
    "LoanService",
    "MeetingService",
    "MemberService",
    "SequenceService",
]
