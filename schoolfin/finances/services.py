"""
finances/services.py
────────────────────
SchoolLedger: the one object forms, views and commands talk to.

Build it once around an EntityStore and pass it along:

    store  = build_store()
    ledger = SchoolLedger(store)
    fee    = ledger.create_fee({...}, installments=4)

It wires the fee ledger, installment planner, payment reconciler, student
registry and school directory together over that single store, so every
part sees the same data and the same subscribers.
"""

from django.utils import timezone

from accounts.services import SchoolDirectory, scope_for
from core.entities import FEES, INSTALLMENTS
from core.exceptions import NotFound

from . import queries
from .installments import PaymentReconciler
from .ledger import FeeLedger
from .planner import InstallmentPlanner
from .stats import fee_summary
from .students import StudentRegistry


class SchoolLedger:

    def __init__(self, store, today=None):
        self.store = store
        self.today = today or timezone.localdate
        self.directory = SchoolDirectory(store)
        self.fees = FeeLedger(store)
        self.reconciler = PaymentReconciler(store, self.fees, self.today)
        self.planner = InstallmentPlanner(self.reconciler)
        self.students = StudentRegistry(store, self.fees, self.directory, self.today)

    def subscribe(self, callback):
        return self.store.subscribe(callback)

    # ── Students ──────────────────────────────────────────────────────────────

    def get_student(self, student_id):
        return self.students.get_student(student_id)

    def save_student(self, student):
        return self.students.save_student(student)

    def delete_student(self, student_id, cascade=False):
        self.students.delete_student(student_id, cascade=cascade)

    def generate_student_id(self, school_id, grade):
        return self.students.generate_student_id(school_id, grade)

    # ── Fees ──────────────────────────────────────────────────────────────────

    def get_fee(self, fee_id):
        return self.fees.get_fee(fee_id)

    def save_fee(self, fee):
        return self.fees.save_fee(fee)

    def create_fee(self, fee, installments=1):
        """
        Save a new fee and, when more than one installment is asked for,
        its installment plan, as one change.
        """
        with self.store.atomic(FEES, INSTALLMENTS):
            saved = self.fees.save_fee({**fee, 'id': None})
            if int(installments) > 1:
                self.planner.create_installment_plan(saved, installments)
        return saved

    def delete_fee(self, fee_id):
        self.fees.delete_fee(fee_id)

    # ── Installments ──────────────────────────────────────────────────────────

    def get_installment(self, installment_id):
        return self.reconciler.get_installment(installment_id)

    def save_installment(self, installment):
        return self.reconciler.save_installment(installment)

    def delete_installment(self, installment_id):
        self.reconciler.delete_installment(installment_id)

    def create_installment_plan(self, fee, count):
        return self.planner.create_installment_plan(fee, count)

    def mark_paid(self, installment_id, paid_date=None):
        """Record payment of an installment (today unless *paid_date* is given)."""
        installment = self.reconciler.get_installment(installment_id)
        if installment is None:
            raise NotFound(INSTALLMENTS, installment_id)
        installment['paid_date'] = paid_date or self.today()
        return self.reconciler.save_installment(installment)

    def mark_unpaid(self, installment_id):
        installment = self.reconciler.get_installment(installment_id)
        if installment is None:
            raise NotFound(INSTALLMENTS, installment_id)
        installment['paid_date'] = None
        return self.reconciler.save_installment(installment)

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_students(self, school_id=None, grade_levels=None):
        return queries.get_students(self.store, school_id, grade_levels)

    def get_fees(self, school_id=None, student_id=None, grade_levels=None):
        return queries.get_fees(self.store, school_id, student_id, grade_levels)

    def get_installments(self, school_id=None, student_id=None, fee_id=None, grade_levels=None):
        return queries.get_installments(
            self.store, school_id, student_id, fee_id, grade_levels, today=self.today(),
        )

    def summary(self, school_id=None, grade_levels=None):
        return fee_summary(self.store, school_id, grade_levels, today=self.today())

    def visible_to(self, account):
        """The students, fees and installments *account* may see."""
        scope = scope_for(account).as_filter()
        return {
            'students':     self.get_students(**scope),
            'fees':         self.get_fees(**scope),
            'installments': self.get_installments(**scope),
        }
