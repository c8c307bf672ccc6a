"""
Loan and share arithmetic.

Verifies:
- Flat interest: total due = principal x (1 + rate / 100), to the cent
- Outstanding balance goes negative on overpayment
- Days overdue never negative
- Month enumeration covers every month from the start month to end
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from chama_kernel.domain.loan_math import (
    contribution_amount,
    days_overdue,
    dividend_amount,
    first_of_month,
    is_overdue,
    loan_interest,
    month_period_key,
    month_starts,
    outstanding_balance,
    total_due,
)

principals = st.decimals(min_value=Decimal("1"), max_value=Decimal("10000000"), places=2)
rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2)
dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31))


class TestFlatInterest:
    def test_total_due_examples(self):
        assert total_due(Decimal("10000"), Decimal("12.5")) == Decimal("11250.00")
        assert total_due(Decimal("40000"), Decimal("15")) == Decimal("46000.00")
        assert total_due(Decimal("15000"), Decimal("0")) == Decimal("15000.00")

    def test_interest_examples(self):
        assert loan_interest(Decimal("10000"), Decimal("12.5")) == Decimal("1250.00")
        assert loan_interest(Decimal("333.33"), Decimal("10")) == Decimal("33.33")

    @given(principals, rates)
    def test_total_due_is_principal_plus_interest(self, principal, rate):
        assert abs(total_due(principal, rate) - (principal + loan_interest(principal, rate))) <= Decimal("0.01")

    @given(principals, rates)
    def test_total_due_never_below_principal(self, principal, rate):
        assert total_due(principal, rate) >= principal

    @given(principals, rates)
    def test_results_are_cents(self, principal, rate):
        assert total_due(principal, rate).as_tuple().exponent == -2
        assert loan_interest(principal, rate).as_tuple().exponent == -2


class TestOutstandingBalance:
    def test_partial_repayment(self):
        assert outstanding_balance(Decimal("10000"), Decimal("12.5"), Decimal("11000")) == Decimal("250.00")

    def test_overpayment_goes_negative(self):
        assert outstanding_balance(Decimal("10000"), Decimal("10"), Decimal("12000")) == Decimal("-1000.00")

    @given(principals, rates)
    def test_nothing_repaid_means_total_due(self, principal, rate):
        assert outstanding_balance(principal, rate, Decimal("0")) == total_due(principal, rate)


class TestOverdue:
    def test_not_yet_due(self):
        assert days_overdue(date(2025, 6, 1), date(2025, 5, 20)) == 0
        assert not is_overdue(date(2025, 6, 1), date(2025, 6, 1))

    def test_past_due(self):
        assert days_overdue(date(2025, 6, 1), date(2025, 6, 11)) == 10
        assert is_overdue(date(2025, 6, 1), date(2025, 6, 2))

    @given(dates, st.integers(min_value=-3650, max_value=3650))
    def test_never_negative(self, due, offset):
        assert days_overdue(due, due + timedelta(days=offset)) == max(0, offset)


class TestMonths:
    def test_range_across_year_end(self):
        assert month_starts(date(2024, 12, 15), date(2025, 5, 1)) == [
            date(2024, 12, 1),
            date(2025, 1, 1),
            date(2025, 2, 1),
            date(2025, 3, 1),
            date(2025, 4, 1),
            date(2025, 5, 1),
        ]

    def test_end_before_first_of_next_month(self):
        assert month_starts(date(2025, 1, 1), date(2025, 1, 31)) == [date(2025, 1, 1)]

    def test_period_key(self):
        assert month_period_key(date(2025, 3, 17)) == "2025-03"

    @given(dates, st.integers(min_value=0, max_value=1000))
    def test_every_month_once(self, start, span):
        end = start + timedelta(days=span)
        months = month_starts(start, end)
        assert months[0] == first_of_month(start)
        assert all(m.day == 1 and m <= end for m in months)
        keys = [month_period_key(m) for m in months]
        assert len(keys) == len(set(keys))
        assert keys == sorted(keys)


class TestShareAmounts:
    def test_contribution(self):
        assert contribution_amount(2, Decimal("2000")) == Decimal("4000.00")

    def test_dividend(self):
        assert dividend_amount(2, Decimal("2000"), Decimal("10")) == Decimal("400.00")
        assert dividend_amount(1, Decimal("2000"), Decimal("3.333")) == Decimal("66.66")

    @given(st.integers(min_value=1, max_value=1000), rates)
    def test_dividend_scales_with_shares(self, shares, rate):
        one = dividend_amount(1, Decimal("2000"), rate)
        assert abs(dividend_amount(shares, Decimal("2000"), rate) - one * shares) <= Decimal("0.01") * shares
