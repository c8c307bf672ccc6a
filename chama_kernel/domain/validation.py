"""
Lightweight domain validation helpers.

Pure checks with no I/O, raising the typed validation errors from
``chama_kernel.exceptions``.  Used by the services before anything is
written.
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Any

from chama_kernel.db.types import round_money, to_money
from chama_kernel.exceptions import (
    InvalidAmountError,
    InvalidDateOrderError,
    InvalidFieldError,
    MissingFieldError,
    PredatesMembershipError,
)

PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")
EXTERNAL_REF_MAX_LENGTH = 20


def require_positive_amount(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce to Decimal and reject amounts that are not a positive number of cents.

    A value that rounds to zero is rejected as zero; any other value with
    sub-cent digits is rejected rather than rounded.
    """
    try:
        amount = to_money(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFieldError(field, value, str(exc)) from exc
    if not amount.is_finite():
        raise InvalidAmountError(field, value, "must be a finite number")
    cents = round_money(amount)
    if cents <= 0:
        raise InvalidAmountError(field, value)
    if cents != amount:
        raise InvalidAmountError(field, value, "must not have more than 2 decimal places")
    return cents


def require_non_negative(value: Any, field: str) -> Decimal:
    """Coerce a rate or parameter to Decimal, rejecting NaN, infinity and negatives."""
    try:
        number = to_money(value)
    except (TypeError, ValueError) as exc:
        raise InvalidFieldError(field, value, str(exc)) from exc
    if not number.is_finite():
        raise InvalidFieldError(field, value, "must be a finite number")
    if number < 0:
        raise InvalidFieldError(field, value, "must not be negative")
    return number


def require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise MissingFieldError(field)
    return str(value).strip()


def require_date_after(earlier_field: str, earlier: date, later_field: str, later: date) -> None:
    """``later`` must be strictly after ``earlier``."""
    if later <= earlier:
        raise InvalidDateOrderError(earlier_field, earlier, later_field, later)


def require_not_before_join(member_id: Any, record_date: date, join_date: date) -> None:
    if record_date < join_date:
        raise PredatesMembershipError(str(member_id), record_date, join_date)


def validate_phone(phone: str | None) -> str:
    phone = require_text(phone, "phone")
    if not PHONE_PATTERN.match(phone):
        raise InvalidFieldError("phone", phone, "expected an optional '+' followed by 7 to 15 digits")
    return phone


def validate_email(email: str | None) -> str:
    email = require_text(email, "email")
    if "@" not in email:
        raise InvalidFieldError("email", email, "must contain '@'")
    return email


def validate_shares(shares_owned: Any) -> int:
    if isinstance(shares_owned, bool) or not isinstance(shares_owned, int) or shares_owned < 1:
        raise InvalidFieldError("shares_owned", shares_owned, "must be a whole number of at least 1")
    return shares_owned


def validate_external_ref(external_ref: str | None) -> str | None:
    if external_ref is None:
        return None
    external_ref = require_text(external_ref, "external_ref")
    if len(external_ref) > EXTERNAL_REF_MAX_LENGTH:
        raise InvalidFieldError(
            "external_ref", external_ref, f"longer than {EXTERNAL_REF_MAX_LENGTH} characters"
        )
    return external_ref
