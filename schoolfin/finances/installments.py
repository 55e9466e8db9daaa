"""
finances/installments.py
────────────────────────
Installment persistence and payment reconciliation.

An installment's ``status`` is never authoritative; it is derived on every
save and every read:

    paid      when paid_date is set
    overdue   when due_date is before today
    upcoming  otherwise

Saving or deleting an installment keeps the parent fee's ``paid`` in step:
only a change in whether the installment is paid moves money.  Editing the
amount of an installment that stays paid does not touch the fee.
"""

import logging

from django.core.exceptions import ValidationError
from django.utils import timezone

from core.entities import FEES, INSTALLMENTS, STUDENTS
from core.exceptions import NotFound
from core.utils import as_amount, as_date, iso_date

from .choices import InstallmentStatus

logger = logging.getLogger(__name__)


def installment_status(installment, today):
    if installment.get('paid_date'):
        return InstallmentStatus.PAID.value
    due_date = as_date(installment.get('due_date'))
    if due_date is not None and due_date < today:
        return InstallmentStatus.OVERDUE.value
    return InstallmentStatus.UPCOMING.value


def with_status(installment, today):
    """A copy of *installment* carrying its current derived status."""
    return {**installment, 'status': installment_status(installment, today)}


class PaymentReconciler:
    """
    Saves and deletes installments, pushing paid/unpaid transitions back
    into the fee ledger.
    """

    def __init__(self, store, ledger, today=None):
        self.store = store
        self.ledger = ledger
        self.today = today or timezone.localdate

    def get_installment(self, installment_id):
        installment = self.store.get(INSTALLMENTS, installment_id)
        if installment is None:
            return None
        return with_status(installment, self.today())

    def save_installment(self, installment):
        installment = self._prepare(installment)

        with self.store.atomic(FEES, INSTALLMENTS):
            if not installment.get('id'):
                saved = self.store.upsert(INSTALLMENTS, installment)
                if saved['paid_date']:
                    self._reconcile(saved, saved['amount'])
                return saved

            previous = self.store.get(INSTALLMENTS, installment['id'])
            if previous is None:
                raise NotFound(INSTALLMENTS, installment['id'])
            saved = self.store.upsert(INSTALLMENTS, installment)

            was_paid = bool(previous.get('paid_date'))
            is_paid = bool(saved['paid_date'])
            if is_paid and not was_paid:
                self._reconcile(saved, saved['amount'])
            elif was_paid and not is_paid:
                self._reconcile(saved, -saved['amount'])
            elif was_paid and previous.get('amount') != saved['amount']:
                logger.info('Installment %s amount changed while paid; fee %s left unchanged',
                            saved['id'], saved.get('fee_id'))
            return saved

    def delete_installment(self, installment_id):
        with self.store.atomic(FEES, INSTALLMENTS):
            installment = self.store.get(INSTALLMENTS, installment_id)
            if installment is None:
                raise NotFound(INSTALLMENTS, installment_id)
            if installment.get('paid_date'):
                self._reconcile(installment, -as_amount(installment.get('amount')))
            self.store.delete(INSTALLMENTS, installment_id)
        logger.info('Deleted installment %s of fee %s', installment_id, installment.get('fee_id'))

    # ── Internals ─────────────────────────────────────────────────────────────

    def _prepare(self, installment):
        installment = dict(installment)
        installment['amount'] = as_amount(installment.get('amount'))

        due_date = iso_date(installment.get('due_date'))
        if due_date is None:
            raise ValidationError({'due_date': 'An installment needs a valid due date.'})
        installment['due_date'] = due_date

        if installment.get('paid_date'):
            paid_date = iso_date(installment['paid_date'])
            if paid_date is None:
                raise ValidationError({'paid_date': f'Invalid date {installment["paid_date"]!r}.'})
            installment['paid_date'] = paid_date
        else:
            installment['paid_date'] = None

        if installment.get('student_id') and not installment.get('student_name'):
            student = self.store.get(STUDENTS, installment['student_id'])
            if student is not None:
                installment['student_name'] = student.get('name', '')
                installment['grade'] = student.get('grade', '')

        if installment.get('fee_id') and not installment.get('fee_type'):
            fee = self.ledger.get_fee(installment['fee_id'])
            if fee is not None:
                installment['fee_type'] = fee.get('fee_type')

        installment['status'] = installment_status(installment, self.today())
        return installment

    def _reconcile(self, installment, delta):
        fee_id = installment.get('fee_id')
        if not fee_id:
            return None
        return self.ledger.apply_payment(fee_id, delta)
