"""
Pure money math for loans, monthly contributions and dividends.

Responsibility:
    Every derived amount the kernel reports is computed here from plain
    values, so the same formula serves services, selectors, batch jobs and
    property tests.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Interest is flat: principal x rate / 100, applied once, never
      compounded.
    - outstanding = total_due - repaid.  It may go negative on overpayment.
    - days_overdue is never negative.
"""

from datetime import date
from decimal import Decimal

from chama_kernel.db.types import round_money

HUNDRED = Decimal("100")


def total_due(principal: Decimal, interest_rate: Decimal) -> Decimal:
    """Principal plus flat interest: principal x (1 + rate / 100)."""
    return round_money(principal * (1 + interest_rate / HUNDRED))


def loan_interest(principal: Decimal, interest_rate: Decimal) -> Decimal:
    """Flat interest earned on one loan: principal x rate / 100."""
    return round_money(principal * interest_rate / HUNDRED)


def outstanding_balance(principal: Decimal, interest_rate: Decimal, repaid: Decimal) -> Decimal:
    """Amount still owed on a loan after ``repaid`` has been paid back."""
    return total_due(principal, interest_rate) - round_money(repaid)


def days_overdue(due_date: date, as_of: date) -> int:
    """Whole days past the due date, or 0 when not yet due."""
    return max(0, (as_of - due_date).days)


def is_overdue(due_date: date, as_of: date) -> bool:
    return days_overdue(due_date, as_of) > 0


def first_of_month(day: date) -> date:
    return day.replace(day=1)


def month_starts(start: date, end: date) -> list[date]:
    """
    First days of every month from the month containing ``start`` up to
    and including ``end``.

    >>> month_starts(date(2024, 12, 15), date(2025, 2, 1))
    [datetime.date(2024, 12, 1), datetime.date(2025, 1, 1), datetime.date(2025, 2, 1)]
    """
    months = []
    current = first_of_month(start)
    while current <= end:
        months.append(current)
        if current.month == 12:
            current = current.replace(year=current.year + 1, month=1)
        else:
            current = current.replace(month=current.month + 1)
    return months


def month_period_key(day: date) -> str:
    """Period key of a monthly contribution, e.g. ``2025-01``."""
    return f"{day.year:04d}-{day.month:02d}"


def contribution_amount(shares_owned: int, share_value: Decimal) -> Decimal:
    """Monthly contribution due from a member: shares x share value."""
    return round_money(Decimal(shares_owned) * share_value)


def dividend_amount(shares_owned: int, share_value: Decimal, rate: Decimal) -> Decimal:
    """Dividend for a member: shares x share value x rate / 100, to the cent."""
    return round_money(Decimal(shares_owned) * share_value * rate / HUNDRED)
