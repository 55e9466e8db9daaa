"""
finances/planner.py
───────────────────
Splits a fee into scheduled installments.

For a plan of n installments over a net amount (amount − discount):

    each installment     floor(net / n)
    the first one also   net − n × floor(net / n)      (the remainder)
    installment i is due fee.due_date + floor(i × 12 / n) calendar months

Month steps use ``relativedelta``, so a due date on the 31st lands on the
last day of shorter months.  A plan of one installment creates nothing: a
single payment has no installment rows.
"""

import logging

from dateutil.relativedelta import relativedelta
from django.core.exceptions import ValidationError

from core.entities import FEES, INSTALLMENTS
from core.utils import as_date, as_decimal, to_number

from .choices import FeeType, InstallmentStatus

logger = logging.getLogger(__name__)


def split_amount(net, count):
    """Return *count* amounts summing exactly to *net*, remainder on the first."""
    net = as_decimal(net)
    per_installment = net // count
    remainder = net - per_installment * count
    return [
        to_number(per_installment + remainder if index == 0 else per_installment)
        for index in range(count)
    ]


def schedule_dates(first_due, count):
    return [
        first_due + relativedelta(months=(index * 12) // count)
        for index in range(count)
    ]


def installment_note(index, count, fee):
    label = fee.get('description') or _fee_type_label(fee.get('fee_type'))
    return f'القسط {index + 1} من {count} - {label}'


def _fee_type_label(fee_type):
    try:
        return FeeType(fee_type).label
    except ValueError:
        return fee_type or ''


class InstallmentPlanner:
    """Creates installment plans through the payment reconciler."""

    def __init__(self, reconciler):
        self.reconciler = reconciler
        self.store = reconciler.store

    def create_installment_plan(self, fee, count):
        """
        Create *count* installments for a saved *fee* and return them.
        A fee that already has installments is rejected.
        """
        try:
            count = int(count)
        except (TypeError, ValueError):
            raise ValidationError({'installments': f'Invalid installment count {count!r}.'}) from None
        if count < 1:
            raise ValidationError({'installments': 'The installment count must be at least 1.'})
        if not fee.get('id'):
            raise ValidationError({'fee': 'Save the fee before planning its installments.'})
        if count == 1:
            return []

        first_due = as_date(fee.get('due_date'))
        if first_due is None:
            raise ValidationError({'due_date': 'The fee needs a due date to schedule installments.'})

        net = as_decimal(fee.get('amount')) - as_decimal(fee.get('discount'), 'discount')
        if net < 0:
            raise ValidationError({'discount': 'The discount is larger than the fee amount.'})

        amounts = split_amount(net, count)
        dates = schedule_dates(first_due, count)

        created = []
        with self.store.atomic(FEES, INSTALLMENTS):
            if self.store.list(INSTALLMENTS, lambda installment: installment.get('fee_id') == fee['id']):
                raise ValidationError({'installments': 'This fee already has an installment plan.'})
            for index in range(count):
                created.append(self.reconciler.save_installment({
                    'fee_id':       fee['id'],
                    'school_id':    fee.get('school_id', ''),
                    'student_id':   fee.get('student_id', ''),
                    'student_name': fee.get('student_name', ''),
                    'grade':        fee.get('grade', ''),
                    'fee_type':     fee.get('fee_type'),
                    'amount':       amounts[index],
                    'due_date':     dates[index].isoformat(),
                    'paid_date':    None,
                    'status':       InstallmentStatus.UPCOMING.value,
                    'note':         installment_note(index, count, fee),
                }))

        logger.info('Planned %d installments for fee %s (net %s)', count, fee['id'], to_number(net))
        return created
