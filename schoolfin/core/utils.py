"""
core/utils.py
─────────────
Value coercion shared by the ledger services.

Records are stored as plain JSON, so amounts are kept as int (or float when
fractional) and dates as ISO ``YYYY-MM-DD`` strings.
"""

import datetime
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.utils.dateparse import parse_date


def as_decimal(value, field='amount'):
    """Parse *value* into a non-negative Decimal.  Empty values count as 0."""
    if value is None or value == '':
        return Decimal(0)
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError({field: f'Enter a number (got {value!r}).'}) from None
    if not number.is_finite():
        raise ValidationError({field: 'Enter a finite number.'})
    if number < 0:
        raise ValidationError({field: 'Amount cannot be negative.'})
    return number


def to_number(number):
    """Decimal → int when whole, float otherwise (JSON friendly)."""
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def as_amount(value, field='amount'):
    return to_number(as_decimal(value, field))


def as_date(value):
    """
    Return a ``datetime.date`` for a date, datetime or ISO string, or None
    when *value* is empty or unparseable.
    """
    if not value:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return parse_date(str(value)[:10])
    except ValueError:
        return None


def iso_date(value):
    parsed = as_date(value)
    return parsed.isoformat() if parsed else None
