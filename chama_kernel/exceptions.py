"""
Typed exception hierarchy for the chama kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers must be able to tell a rejected input from a missing reference from
a failed batch run without parsing message strings.  Every exception here:
  1. Has its own class (catch by type, not by message)
  2. Carries a class-level ``code`` (machine-readable, API-safe)
  3. Stores its context as attributes (member_id, amount, ...)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ChamaKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidDateOrderError
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- PredatesMembershipError
    |
    +-- ReferentialError
    |   +-- MemberNotFoundError
    |   +-- LoanNotFoundError
    |   +-- MeetingNotFoundError
    |   +-- DuplicateMemberError
    |   +-- DuplicateExternalReferenceError
    |
    +-- LoanError
    |   +-- InvalidLoanTransitionError
    |   +-- LoanNotActiveError
    |   +-- LoanNotSettledError
    |
    +-- LedgerError
    |   +-- LedgerWriteError
    |
    +-- BatchError
    |   +-- BatchRunFailedError
    |   +-- DividendExceedsProfitError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- MemberHasFinancialHistoryError
    |
    +-- ConfigError
    |   +-- ConfigParameterNotFoundError
    |
    +-- AuditError
        +-- AuditChainBrokenError

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger.record_contribution(member_id, amount, on, actor="treasurer")
    except InvalidAmountError as e:
        reject(field=e.field, value=e.amount)
    except MemberNotFoundError as e:
        reject(member=e.member_id)

    try:
        job.run(start, end, snapshot, actor="treasurer")
    except BatchRunFailedError as e:
        # Nothing from the run was kept; e.__cause__ holds the original error.
        alert(e.job_name, e.reason)

No exception in this module is ever retried automatically; a retry after a
clean failure is the caller's decision.
"""


class ChamaKernelError(Exception):
    """
    Base exception for all chama kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "CHAMA_KERNEL_ERROR"


# Validation


class ValidationError(ChamaKernelError):
    """Input rejected at the point of record creation."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """A single-event monetary amount was zero, negative or finer than a cent."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: object, reason: str = "must be greater than zero"):
        self.field = field
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"{field} {reason}, got {amount}")


class InvalidDateOrderError(ValidationError):
    """Two dates are in the wrong order (e.g. due date not after disbursement)."""

    code: str = "INVALID_DATE_ORDER"

    def __init__(self, earlier_field: str, earlier: object, later_field: str, later: object):
        self.earlier_field = earlier_field
        self.earlier = str(earlier)
        self.later_field = later_field
        self.later = str(later)
        super().__init__(
            f"{later_field} ({later}) must be after {earlier_field} ({earlier})"
        )


class MissingFieldError(ValidationError):
    """A required field was empty."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Required field is missing: {field}")


class InvalidFieldError(ValidationError):
    """A field value is malformed or outside its allowed set."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} '{value}': {reason}")


class PredatesMembershipError(ValidationError):
    """A financial record is dated before the member joined."""

    code: str = "PREDATES_MEMBERSHIP"

    def __init__(self, member_id: str, record_date: object, join_date: object):
        self.member_id = member_id
        self.record_date = str(record_date)
        self.join_date = str(join_date)
        super().__init__(
            f"Record dated {record_date} predates member {member_id} "
            f"joining on {join_date}"
        )


# Referential


class ReferentialError(ChamaKernelError):
    """A referenced record does not exist or conflicts with an existing one."""

    code: str = "REFERENTIAL_ERROR"


class MemberNotFoundError(ReferentialError):
    """Member with given ID was not found."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(f"Member not found: {member_id}")


class LoanNotFoundError(ReferentialError):
    """Loan with given ID was not found."""

    code: str = "LOAN_NOT_FOUND"

    def __init__(self, loan_id: str):
        self.loan_id = loan_id
        super().__init__(f"Loan not found: {loan_id}")


class MeetingNotFoundError(ReferentialError):
    """Meeting with given ID was not found."""

    code: str = "MEETING_NOT_FOUND"

    def __init__(self, meeting_id: str):
        self.meeting_id = meeting_id
        super().__init__(f"Meeting not found: {meeting_id}")


class DuplicateMemberError(ReferentialError):
    """Phone or email already belongs to another member."""

    code: str = "DUPLICATE_MEMBER"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"A member with {field} '{value}' already exists")


class DuplicateExternalReferenceError(ReferentialError):
    """External payment reference is already recorded."""

    code: str = "DUPLICATE_EXTERNAL_REFERENCE"

    def __init__(self, external_ref: str):
        self.external_ref = external_ref
        super().__init__(f"External reference already recorded: {external_ref}")


# Loans


class LoanError(ChamaKernelError):
    """Base exception for loan lifecycle errors."""

    code: str = "LOAN_ERROR"


class InvalidLoanTransitionError(LoanError):
    """Loan status change is not an allowed transition."""

    code: str = "INVALID_LOAN_TRANSITION"

    def __init__(self, loan_id: str, from_status: str, to_status: str):
        self.loan_id = loan_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Loan {loan_id} cannot move from {from_status} to {to_status}"
        )


class LoanNotActiveError(LoanError):
    """Operation requires an active loan."""

    code: str = "LOAN_NOT_ACTIVE"

    def __init__(self, loan_id: str, status: str):
        self.loan_id = loan_id
        self.status = status
        super().__init__(f"Loan {loan_id} is {status}, not active")


class LoanNotSettledError(LoanError):
    """Loan cannot be marked paid while a balance is outstanding."""

    code: str = "LOAN_NOT_SETTLED"

    def __init__(self, loan_id: str, outstanding: object):
        self.loan_id = loan_id
        self.outstanding = str(outstanding)
        super().__init__(
            f"Loan {loan_id} still has {outstanding} outstanding"
        )


# Ledger


class LedgerError(ChamaKernelError):
    """Base exception for ledger errors."""

    code: str = "LEDGER_ERROR"


class LedgerWriteError(LedgerError):
    """
    A source record and its ledger entry could not be written together.

    Neither row is kept when this is raised.
    """

    code: str = "LEDGER_WRITE_FAILED"

    def __init__(self, source_type: str, reason: str):
        self.source_type = source_type
        self.reason = reason
        super().__init__(f"Could not record {source_type}: {reason}")


# Batch


class BatchError(ChamaKernelError):
    """Base exception for batch job errors."""

    code: str = "BATCH_ERROR"


class BatchRunFailedError(BatchError):
    """
    A batch run failed part way and was rolled back in full.

    The original exception is chained as ``__cause__``.
    """

    code: str = "BATCH_RUN_FAILED"

    def __init__(self, job_name: str, run_key: str, reason: str):
        self.job_name = job_name
        self.run_key = run_key
        self.reason = reason
        super().__init__(f"Batch run {job_name} [{run_key}] rolled back: {reason}")


class DividendExceedsProfitError(BatchError):
    """Dividend total is larger than the profit it is meant to distribute."""

    code: str = "DIVIDEND_EXCEEDS_PROFIT"

    def __init__(self, total_dividend: object, total_profit: object):
        self.total_dividend = str(total_dividend)
        self.total_profit = str(total_profit)
        super().__init__(
            f"Dividend total {total_dividend} exceeds profit {total_profit}"
        )


# Immutability


class ImmutabilityError(ChamaKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger transactions, contributions, repayments, penalties and audit
    entries are immutable from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class MemberHasFinancialHistoryError(ImmutabilityError):
    """Member cannot be deleted while financial records reference them."""

    code: str = "MEMBER_HAS_FINANCIAL_HISTORY"

    def __init__(self, member_id: str):
        self.member_id = member_id
        super().__init__(
            f"Member {member_id} has financial records; archive instead of deleting"
        )


# Configuration


class ConfigError(ChamaKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class ConfigParameterNotFoundError(ConfigError):
    """Named configuration parameter does not exist."""

    code: str = "CONFIG_PARAMETER_NOT_FOUND"

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Configuration parameter not found: {key}")


# Audit


class AuditError(ChamaKernelError):
    """Base exception for audit-related errors."""

    code: str = "AUDIT_ERROR"


class AuditChainBrokenError(AuditError):
    """Audit hash chain validation failed."""

    code: str = "AUDIT_CHAIN_BROKEN"

    def __init__(self, seq: int, expected_hash: str, actual_hash: str):
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Audit chain broken at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
