"""
finances/ledger.py
──────────────────
The fee ledger.  Owns Fee records and keeps their derived fields honest.

After every save a fee satisfies

    balance = amount − discount − paid
    status  = paid     when balance ≤ 0
              partial  when balance > 0 and paid > 0
              unpaid   otherwise

``balance`` and ``status`` supplied by a caller are never trusted; they are
recomputed on every save.  ``student_name`` and ``grade`` are snapshots of
the student as they were when the fee was last saved.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError

from core.entities import FEES, INSTALLMENTS, STUDENTS
from core.exceptions import InvariantViolation
from core.utils import as_decimal, iso_date, to_number

from .choices import FeeStatus, FeeType, Transportation

logger = logging.getLogger(__name__)


# ── Derived fields ────────────────────────────────────────────────────────────

def compute_balance(amount, discount, paid):
    return amount - discount - paid


def compute_status(balance, paid):
    if balance <= 0:
        return FeeStatus.PAID.value
    if paid > 0:
        return FeeStatus.PARTIAL.value
    return FeeStatus.UNPAID.value


def apply_totals(fee):
    """Normalise the money fields of *fee* in place and recompute balance/status."""
    amount   = as_decimal(fee.get('amount'), 'amount')
    discount = as_decimal(fee.get('discount'), 'discount')
    paid     = as_decimal(fee.get('paid'), 'paid')
    balance  = compute_balance(amount, discount, paid)

    fee['amount']   = to_number(amount)
    fee['discount'] = to_number(discount)
    fee['paid']     = to_number(paid)
    fee['balance']  = to_number(balance)
    fee['status']   = compute_status(balance, paid)
    return fee


def check_fee(fee):
    """
    Return a list of human-readable problems with a stored fee; empty when
    its balance and status agree with its amounts.
    """
    problems = []
    try:
        amount   = as_decimal(fee.get('amount'), 'amount')
        discount = as_decimal(fee.get('discount'), 'discount')
        paid     = as_decimal(fee.get('paid'), 'paid')
    except ValidationError as exc:
        return [f'unreadable amounts ({"; ".join(exc.messages)})']

    expected = compute_balance(amount, discount, paid)
    try:
        stored = Decimal(str(fee.get('balance')))
    except InvalidOperation:
        stored = None
    if stored != expected:
        problems.append(f'balance is {fee.get("balance")!r}, expected {to_number(expected)}')

    status = compute_status(expected, paid)
    if fee.get('status') != status:
        problems.append(f'status is {fee.get("status")!r}, expected {status!r}')
    return problems


# ── Ledger ────────────────────────────────────────────────────────────────────

class FeeLedger:
    """Fee persistence on top of an EntityStore."""

    def __init__(self, store):
        self.store = store

    def get_fee(self, fee_id):
        return self.store.get(FEES, fee_id)

    def save_fee(self, fee):
        """
        Refresh the student snapshot, recompute balance and status, and
        upsert.  A fee whose student cannot be found is still saved.
        """
        fee = dict(fee)

        if fee.get('fee_type') not in FeeType.values:
            raise ValidationError({'fee_type': f'Unknown fee type {fee.get("fee_type")!r}.'})
        transportation_type = fee.get('transportation_type')
        if transportation_type and transportation_type not in (
            Transportation.ONE_WAY, Transportation.TWO_WAY,
        ):
            raise ValidationError({'transportation_type': f'Unknown transportation type {transportation_type!r}.'})

        student = self.store.get(STUDENTS, fee.get('student_id'))
        if student is not None:
            fee['student_name'] = student.get('name', '')
            fee['grade'] = student.get('grade', '')
        else:
            if fee.get('student_id'):
                logger.warning('Fee %s references unknown student %s', fee.get('id') or '(new)', fee['student_id'])
            fee.setdefault('student_name', '')
            fee.setdefault('grade', '')

        if fee.get('due_date'):
            due_date = iso_date(fee['due_date'])
            if due_date is None:
                raise ValidationError({'due_date': f'Invalid date {fee["due_date"]!r}.'})
            fee['due_date'] = due_date

        apply_totals(fee)
        is_new = not fee.get('id')
        saved = self.store.upsert(FEES, fee)

        if is_new:
            logger.info('Created %s fee %s for %s: amount=%s balance=%s',
                        saved['fee_type'], saved['id'], saved['student_name'] or saved.get('student_id'),
                        saved['amount'], saved['balance'])
        return saved

    def apply_payment(self, fee_id, delta):
        """
        Add *delta* to a fee's ``paid`` (clamped at zero) and re-save it.
        A missing fee is skipped, returning None.
        """
        with self.store.atomic(FEES):
            fee = self.get_fee(fee_id)
            if fee is None:
                logger.warning('Payment of %s skipped: fee %s no longer exists', delta, fee_id)
                return None

            paid = as_decimal(fee.get('paid'), 'paid') + Decimal(str(delta))
            if paid < 0:
                paid = Decimal(0)
            fee['paid'] = to_number(paid)
            saved = self.save_fee(fee)
        logger.info('Fee %s paid %s → %s (balance %s, %s)',
                    fee_id, 'added' if delta >= 0 else 'reversed', saved['paid'],
                    saved['balance'], saved['status'])
        return saved

    def delete_fee(self, fee_id):
        """Delete a fee and every installment that belongs to it, as one unit."""
        with self.store.atomic(FEES, INSTALLMENTS):
            self.store.delete(FEES, fee_id)
            removed = self.store.delete_where(
                INSTALLMENTS, lambda installment: installment.get('fee_id') == fee_id,
            )
        logger.info('Deleted fee %s and %d installment(s)', fee_id, len(removed))

    def audit(self):
        """Return an InvariantViolation for every stored fee that is out of line."""
        violations = []
        for fee in self.store.list(FEES):
            problems = check_fee(fee)
            if problems:
                violations.append(InvariantViolation(fee.get('id'), problems))
        return violations
