# finances/tests.py

import threading
from datetime import date, datetime, timezone as dt_timezone
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase

from core.entities import COUNTERS, FEES
from core.exceptions import NotFound
from core.storage import MemoryStorage
from core.store import EntityStore, build_store

from .choices import FeeStatus, FeeType, Grade, InstallmentStatus, Transportation
from .installments import installment_status
from .ledger import check_fee
from .planner import schedule_dates, split_amount
from .services import SchoolLedger

TODAY = date(2026, 3, 15)
NOW = datetime(2026, 3, 15, 9, 30, tzinfo=dt_timezone.utc)


def make_ledger(storage=None):
    store = EntityStore(storage or MemoryStorage(), clock=lambda: NOW)
    return SchoolLedger(store, today=lambda: TODAY)


class LedgerTestMixin:
    """Builds a ledger with one school and one enrolled student."""

    school_id = 'school-1'

    def setUp(self):
        self.ledger = make_ledger()
        self.student = self.ledger.save_student({
            'name': 'سالم الحارثي',
            'grade': Grade.GRADE_3,
            'school_id': self.school_id,
            'parent_name': 'محمد الحارثي',
            'phone': '+96890000000',
        })

    def new_fee(self, amount=1200, discount=0, installments=1, due_date='2026-01-10', **extra):
        return self.ledger.create_fee({
            'student_id': self.student['id'],
            'school_id': self.school_id,
            'fee_type': FeeType.TUITION,
            'amount': amount,
            'discount': discount,
            'due_date': due_date,
            **extra,
        }, installments=installments)

    def installments_of(self, fee):
        return sorted(self.ledger.get_installments(fee_id=fee['id']), key=lambda i: i['due_date'])


class FeeTotalsTestCase(LedgerTestMixin, SimpleTestCase):
    """Test cases for fee balance and status derivation"""

    def test_balance_and_status_recomputed_on_save(self):
        """Test that caller-supplied balance and status are ignored"""
        fee = self.ledger.save_fee({
            'student_id': self.student['id'],
            'fee_type': FeeType.TUITION,
            'amount': 1000,
            'discount': 100,
            'paid': 300,
            'balance': 5,
            'status': FeeStatus.PAID,
        })
        self.assertEqual(fee['balance'], 600)
        self.assertEqual(fee['status'], FeeStatus.PARTIAL)

    def test_fully_paid_fee(self):
        fee = self.ledger.save_fee({
            'student_id': self.student['id'],
            'fee_type': FeeType.BOOKS,
            'amount': 80,
            'discount': 20,
            'paid': 60,
        })
        self.assertEqual(fee['balance'], 0)
        self.assertEqual(fee['status'], FeeStatus.PAID)

    def test_overpaid_fee_is_paid(self):
        fee = self.ledger.save_fee({
            'student_id': self.student['id'],
            'fee_type': FeeType.UNIFORM,
            'amount': 50,
            'paid': 70,
        })
        self.assertEqual(fee['balance'], -20)
        self.assertEqual(fee['status'], FeeStatus.PAID)

    def test_unpaid_fee(self):
        fee = self.new_fee(amount=500)
        self.assertEqual(fee['paid'], 0)
        self.assertEqual(fee['balance'], 500)
        self.assertEqual(fee['status'], FeeStatus.UNPAID)

    def test_fractional_amounts(self):
        fee = self.new_fee(amount='100.5', discount='0.25')
        self.assertEqual(fee['amount'], 100.5)
        self.assertEqual(fee['balance'], 100.25)

    def test_negative_amount_rejected(self):
        with self.assertRaises(ValidationError):
            self.new_fee(amount=-10)

    def test_unknown_fee_type_rejected(self):
        with self.assertRaises(ValidationError):
            self.new_fee(fee_type='canteen')

    def test_student_snapshot(self):
        """Test that the fee carries the student's name and grade as of the last save"""
        fee = self.new_fee()
        self.assertEqual(fee['student_name'], 'سالم الحارثي')
        self.assertEqual(fee['grade'], Grade.GRADE_3)

        self.ledger.save_student({**self.student, 'name': 'سالم بن محمد', 'grade': Grade.GRADE_4})
        self.assertEqual(self.ledger.get_fee(fee['id'])['student_name'], 'سالم الحارثي')

        resaved = self.ledger.save_fee(self.ledger.get_fee(fee['id']))
        self.assertEqual(resaved['student_name'], 'سالم بن محمد')
        self.assertEqual(resaved['grade'], Grade.GRADE_4)

    def test_fee_for_unknown_student_is_saved(self):
        with self.assertLogs('finances.ledger', level='WARNING'):
            fee = self.ledger.save_fee({
                'student_id': 'ghost',
                'fee_type': FeeType.OTHER,
                'amount': 10,
            })
        self.assertEqual(fee['student_name'], '')
        self.assertEqual(fee['grade'], '')

    def test_update_unknown_fee_raises(self):
        with self.assertRaises(NotFound):
            self.ledger.save_fee({'id': 'missing', 'fee_type': FeeType.OTHER, 'amount': 10})

    def test_check_fee_reports_problems(self):
        problems = check_fee({'amount': 100, 'discount': 0, 'paid': 40, 'balance': 'n/a', 'status': 'paid'})
        self.assertEqual(len(problems), 2)
        self.assertEqual(check_fee({'amount': 100, 'discount': 0, 'paid': 40,
                                    'balance': 60, 'status': 'partial'}), [])


class InstallmentPlanTestCase(LedgerTestMixin, SimpleTestCase):
    """Test cases for splitting fees into installment plans"""

    def test_remainder_goes_to_first_installment(self):
        fee = self.new_fee(amount=1000, installments=3)
        self.assertEqual([i['amount'] for i in self.installments_of(fee)], [334, 333, 333])

    def test_plan_uses_net_amount(self):
        fee = self.new_fee(amount=1000, discount=100, installments=4)
        amounts = [i['amount'] for i in self.installments_of(fee)]
        self.assertEqual(amounts, [225, 225, 225, 225])
        self.assertEqual(sum(amounts), 900)

    def test_split_amount(self):
        self.assertEqual(split_amount(1001, 4), [251, 250, 250, 250])
        self.assertEqual(split_amount('100.5', 2), [50.5, 50])
        self.assertEqual(split_amount(0, 3), [0, 0, 0])

    def test_quarterly_due_dates(self):
        fee = self.new_fee(installments=4, due_date='2026-01-10')
        self.assertEqual(
            [i['due_date'] for i in self.installments_of(fee)],
            ['2026-01-10', '2026-04-10', '2026-07-10', '2026-10-10'],
        )

    def test_uneven_month_steps(self):
        dates = schedule_dates(date(2026, 1, 10), 5)
        self.assertEqual(
            [d.isoformat() for d in dates],
            ['2026-01-10', '2026-03-10', '2026-05-10', '2026-08-10', '2026-10-10'],
        )

    def test_month_end_is_clamped(self):
        dates = schedule_dates(date(2026, 1, 31), 12)
        self.assertEqual(dates[1], date(2026, 2, 28))
        self.assertEqual(dates[2], date(2026, 3, 31))
        self.assertEqual(dates[3], date(2026, 4, 30))

    def test_installment_fields(self):
        fee = self.new_fee(installments=2)
        first = self.installments_of(fee)[0]
        self.assertEqual(first['fee_id'], fee['id'])
        self.assertEqual(first['student_id'], self.student['id'])
        self.assertEqual(first['student_name'], 'سالم الحارثي')
        self.assertEqual(first['fee_type'], FeeType.TUITION)
        self.assertIsNone(first['paid_date'])
        self.assertEqual(first['note'], 'القسط 1 من 2 - رسوم دراسية')

    def test_note_uses_description(self):
        fee = self.new_fee(installments=2, description='الفصل الأول')
        self.assertEqual(self.installments_of(fee)[1]['note'], 'القسط 2 من 2 - الفصل الأول')

    def test_single_payment_creates_no_installments(self):
        fee = self.new_fee(installments=1)
        self.assertEqual(self.installments_of(fee), [])

    def test_invalid_plans(self):
        fee = self.new_fee()
        with self.assertRaises(ValidationError):
            self.ledger.create_installment_plan(fee, 0)
        with self.assertRaises(ValidationError):
            self.ledger.create_installment_plan({**fee, 'id': None}, 3)
        with self.assertRaises(ValidationError):
            self.ledger.create_installment_plan({**fee, 'due_date': None}, 3)
        with self.assertRaises(ValidationError):
            self.ledger.create_installment_plan({**fee, 'discount': 5000}, 3)

    def test_plan_cannot_be_created_twice(self):
        """Test that a fee with installments is never planned again"""
        fee = self.new_fee(amount=900, installments=3)
        with self.assertRaises(ValidationError):
            self.ledger.create_installment_plan(fee, 3)

        installments = self.installments_of(fee)
        self.assertEqual(len(installments), 3)
        self.assertEqual(sum(i['amount'] for i in installments), 900)

    def test_failed_plan_leaves_no_fee(self):
        """Test that a fee and its plan are created together or not at all"""
        with self.assertRaises(ValidationError):
            self.new_fee(due_date=None, installments=4)
        self.assertEqual(self.ledger.get_fees(student_id=self.student['id']), [])


class PaymentReconciliationTestCase(LedgerTestMixin, SimpleTestCase):
    """Test cases for keeping fee totals in step with installment payments"""

    def setUp(self):
        super().setUp()
        self.fee = self.new_fee(amount=1200, installments=4)
        self.installments = self.installments_of(self.fee)

    def current_fee(self):
        return self.ledger.get_fee(self.fee['id'])

    def test_paying_installments_one_by_one(self):
        expected = [(300, 900, FeeStatus.PARTIAL), (600, 600, FeeStatus.PARTIAL),
                    (900, 300, FeeStatus.PARTIAL), (1200, 0, FeeStatus.PAID)]
        for installment, (paid, balance, status) in zip(self.installments, expected):
            self.ledger.mark_paid(installment['id'], '2026-02-01')
            fee = self.current_fee()
            self.assertEqual((fee['paid'], fee['balance'], fee['status']), (paid, balance, status))

    def test_mark_paid_defaults_to_today(self):
        saved = self.ledger.mark_paid(self.installments[0]['id'])
        self.assertEqual(saved['paid_date'], TODAY.isoformat())
        self.assertEqual(saved['status'], InstallmentStatus.PAID)

    def test_unpaying_reverses_payment(self):
        self.ledger.mark_paid(self.installments[0]['id'])
        self.ledger.mark_paid(self.installments[1]['id'])
        self.ledger.mark_unpaid(self.installments[0]['id'])

        fee = self.current_fee()
        self.assertEqual(fee['paid'], 300)
        self.assertEqual(fee['status'], FeeStatus.PARTIAL)

    def test_resaving_paid_installment_does_not_double_count(self):
        paid = self.ledger.mark_paid(self.installments[0]['id'])
        self.ledger.save_installment({**paid, 'note': 'إيصال 17'})
        self.assertEqual(self.current_fee()['paid'], 300)

    def test_amount_change_on_paid_installment_leaves_fee(self):
        paid = self.ledger.mark_paid(self.installments[0]['id'])
        self.ledger.save_installment({**paid, 'amount': 500})
        self.assertEqual(self.current_fee()['paid'], 300)

    def test_new_paid_installment_adds_to_fee(self):
        self.ledger.save_installment({
            'fee_id': self.fee['id'],
            'student_id': self.student['id'],
            'amount': 50,
            'due_date': '2026-03-01',
            'paid_date': '2026-03-01',
        })
        self.assertEqual(self.current_fee()['paid'], 50)

    def test_deleting_paid_installment_reverses_payment(self):
        self.ledger.mark_paid(self.installments[0]['id'])
        self.ledger.delete_installment(self.installments[0]['id'])

        fee = self.current_fee()
        self.assertEqual(fee['paid'], 0)
        self.assertEqual(fee['status'], FeeStatus.UNPAID)
        self.assertEqual(len(self.installments_of(self.fee)), 3)

    def test_deleting_unpaid_installment_leaves_fee(self):
        self.ledger.delete_installment(self.installments[0]['id'])
        self.assertEqual(self.current_fee()['paid'], 0)

    def test_paid_never_goes_negative(self):
        self.ledger.fees.apply_payment(self.fee['id'], -100)
        self.assertEqual(self.current_fee()['paid'], 0)

    def test_concurrent_payments_are_all_counted(self):
        """Test that payments applied from several threads are never lost"""
        def pay():
            for _ in range(25):
                self.ledger.fees.apply_payment(self.fee['id'], 1)

        threads = [threading.Thread(target=pay) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        fee = self.current_fee()
        self.assertEqual(fee['paid'], 100)
        self.assertEqual(fee['balance'], 1100)

    def test_payment_for_deleted_fee_is_skipped(self):
        installment_id = self.installments[0]['id']
        self.ledger.store.delete(FEES, self.fee['id'])

        with self.assertLogs('finances.ledger', level='WARNING'):
            saved = self.ledger.mark_paid(installment_id)
        self.assertEqual(saved['status'], InstallmentStatus.PAID)
        self.assertIsNone(self.current_fee())

    def test_missing_installment(self):
        with self.assertRaises(NotFound):
            self.ledger.mark_paid('missing')
        with self.assertRaises(NotFound):
            self.ledger.mark_unpaid('missing')
        with self.assertRaises(NotFound):
            self.ledger.delete_installment('missing')
        with self.assertRaises(NotFound):
            self.ledger.save_installment({'id': 'missing', 'amount': 1, 'due_date': '2026-01-01'})
        self.assertIsNone(self.ledger.get_installment('missing'))

    def test_installment_needs_due_date(self):
        with self.assertRaises(ValidationError):
            self.ledger.save_installment({'fee_id': self.fee['id'], 'amount': 10})

    def test_delete_fee_removes_its_installments(self):
        other = self.new_fee(amount=90, installments=3)
        self.ledger.delete_fee(self.fee['id'])

        self.assertIsNone(self.current_fee())
        self.assertEqual(self.installments_of(self.fee), [])
        self.assertEqual(len(self.installments_of(other)), 3)

    def test_delete_missing_fee(self):
        with self.assertRaises(NotFound):
            self.ledger.delete_fee('missing')


class InstallmentStatusTestCase(SimpleTestCase):
    """Test cases for the derived installment status"""

    def test_status_derivation(self):
        self.assertEqual(installment_status({'due_date': '2026-03-14'}, TODAY), InstallmentStatus.OVERDUE)
        self.assertEqual(installment_status({'due_date': '2026-03-15'}, TODAY), InstallmentStatus.UPCOMING)
        self.assertEqual(installment_status({'due_date': '2026-04-01'}, TODAY), InstallmentStatus.UPCOMING)
        self.assertEqual(
            installment_status({'due_date': '2025-01-01', 'paid_date': '2025-02-01'}, TODAY),
            InstallmentStatus.PAID,
        )

    def test_stored_status_is_ignored_on_read(self):
        ledger = make_ledger()
        saved = ledger.save_installment({'amount': 10, 'due_date': '2026-01-01', 'status': 'paid'})
        self.assertEqual(saved['status'], InstallmentStatus.OVERDUE)
        self.assertEqual(ledger.get_installment(saved['id'])['status'], InstallmentStatus.OVERDUE)
        self.assertEqual(ledger.get_installments()[0]['status'], InstallmentStatus.OVERDUE)


class NotificationTestCase(LedgerTestMixin, SimpleTestCase):
    """Test cases for change notifications from compound operations"""

    def setUp(self):
        super().setUp()
        self.calls = []
        self.ledger.subscribe(lambda: self.calls.append(1))

    def test_fee_with_plan_notifies_once(self):
        self.new_fee(installments=4)
        self.assertEqual(len(self.calls), 1)

    def test_payment_notifies_once(self):
        fee = self.new_fee(installments=4)
        self.calls.clear()
        self.ledger.mark_paid(self.installments_of(fee)[0]['id'])
        self.assertEqual(len(self.calls), 1)

    def test_delete_fee_notifies_once(self):
        fee = self.new_fee(installments=4)
        self.calls.clear()
        self.ledger.delete_fee(fee['id'])
        self.assertEqual(len(self.calls), 1)


class StudentRegistryTestCase(SimpleTestCase):
    """Test cases for student codes and transportation fees"""

    def setUp(self):
        self.ledger = make_ledger()

    def enrol(self, name, grade=Grade.GRADE_1, school_id='school-1', **extra):
        return self.ledger.save_student({'name': name, 'grade': grade, 'school_id': school_id, **extra})

    def test_student_codes(self):
        self.assertEqual(self.ledger.generate_student_id('school-1', Grade.KG1), 'KG0001')
        self.assertEqual(self.enrol('أحمد', Grade.KG1)['student_id'], 'KG0001')
        self.assertEqual(self.enrol('مريم', Grade.GRADE_1)['student_id'], 'S0002')
        self.assertEqual(self.enrol('هند', Grade.KG2)['student_id'], 'KG0003')

    def test_codes_are_per_school(self):
        self.enrol('أحمد', school_id='school-1')
        self.assertEqual(self.ledger.generate_student_id('school-2', Grade.GRADE_5), 'S0001')

    def test_preview_does_not_reserve(self):
        self.ledger.generate_student_id('school-1', Grade.GRADE_1)
        self.assertEqual(self.enrol('أحمد')['student_id'], 'S0001')

    def test_numbers_are_never_reused(self):
        first = self.enrol('أحمد')
        self.enrol('مريم')
        self.ledger.delete_student(first['id'])

        self.assertEqual(self.ledger.generate_student_id('school-1', Grade.GRADE_1), 'S0003')
        self.assertEqual(self.enrol('هند')['student_id'], 'S0003')
        counter = self.ledger.store.list(COUNTERS)[0]
        self.assertEqual(counter['value'], 3)

    def test_given_code_is_kept(self):
        self.assertEqual(self.enrol('أحمد', student_id='S0999')['student_id'], 'S0999')

    def test_update_keeps_code(self):
        student = self.enrol('أحمد')
        updated = self.ledger.save_student({**student, 'phone': '+96891111111'})
        self.assertEqual(updated['student_id'], student['student_id'])
        self.assertEqual(len(self.ledger.get_students()), 1)

    def test_validation(self):
        with self.assertRaises(ValidationError):
            self.enrol('')
        with self.assertRaises(ValidationError):
            self.enrol('أحمد', grade='Grade 13')
        with self.assertRaises(ValidationError):
            self.enrol('أحمد', transportation='boat')
        with self.assertRaises(ValidationError):
            self.enrol('أحمد', transportation=Transportation.ONE_WAY)
        with self.assertRaises(ValidationError):
            self.enrol('أحمد', transportation=Transportation.TWO_WAY, transportation_fee=0)
        self.assertEqual(self.ledger.get_students(), [])

    def test_no_transportation_no_fee(self):
        student = self.enrol('أحمد')
        self.assertEqual(student['transportation'], Transportation.NONE)
        self.assertEqual(self.ledger.get_fees(student_id=student['id']), [])

    def test_one_way_transportation_fee(self):
        student = self.enrol(
            'أحمد', transportation=Transportation.ONE_WAY, transportation_direction='to-school',
        )
        fees = self.ledger.get_fees(student_id=student['id'])
        self.assertEqual(len(fees), 1)

        fee = fees[0]
        self.assertEqual(fee['fee_type'], FeeType.TRANSPORTATION)
        self.assertEqual(fee['amount'], 150)
        self.assertEqual(fee['description'], 'رسوم النقل - اتجاه واحد - إلى المدرسة')
        self.assertEqual(fee['due_date'], TODAY.isoformat())
        self.assertEqual(fee['transportation_type'], Transportation.ONE_WAY)
        self.assertEqual(fee['student_name'], 'أحمد')
        self.assertEqual(fee['status'], FeeStatus.UNPAID)

    def test_custom_transportation_fee(self):
        student = self.enrol(
            'أحمد', transportation=Transportation.TWO_WAY,
            transportation_fee=275, custom_transportation_fee=True,
        )
        fee = self.ledger.get_fees(student_id=student['id'])[0]
        self.assertEqual(fee['amount'], 275)
        self.assertEqual(fee['description'], 'رسوم النقل - اتجاهين')

    def test_transportation_fee_from_school_settings(self):
        self.ledger.directory.save_settings('school-1', {'transportation_fee_two_way': 320})
        student = self.enrol('أحمد', transportation=Transportation.TWO_WAY)
        self.assertEqual(self.ledger.get_fees(student_id=student['id'])[0]['amount'], 320)

    def test_update_does_not_add_transportation_fee(self):
        student = self.enrol('أحمد', transportation=Transportation.TWO_WAY)
        self.ledger.save_student({**student, 'name': 'أحمد سالم'})
        self.assertEqual(len(self.ledger.get_fees(student_id=student['id'])), 1)

    def test_delete_keeps_fees_by_default(self):
        student = self.enrol('أحمد', transportation=Transportation.TWO_WAY)
        self.ledger.delete_student(student['id'])

        self.assertIsNone(self.ledger.get_student(student['id']))
        self.assertEqual(len(self.ledger.get_fees(student_id=student['id'])), 1)

    def test_cascading_delete(self):
        student = self.enrol('أحمد', transportation=Transportation.TWO_WAY)
        self.ledger.create_fee({
            'student_id': student['id'], 'school_id': 'school-1', 'fee_type': FeeType.TUITION,
            'amount': 900, 'due_date': '2026-01-01',
        }, installments=3)

        self.ledger.delete_student(student['id'], cascade=True)
        self.assertEqual(self.ledger.get_fees(student_id=student['id']), [])
        self.assertEqual(self.ledger.get_installments(student_id=student['id']), [])

    def test_delete_missing_student(self):
        with self.assertRaises(NotFound):
            self.ledger.delete_student('missing')


class QueryTestCase(SimpleTestCase):
    """Test cases for school, student and grade filters"""

    def setUp(self):
        self.ledger = make_ledger()
        self.kg = self.add('أحمد', Grade.KG1)
        self.first = self.add('مريم', Grade.GRADE_1)
        self.second = self.add('هند', Grade.GRADE_2)
        self.elsewhere = self.add('علي', Grade.GRADE_1, school_id='school-2')

    def add(self, name, grade, school_id='school-1'):
        student = self.ledger.save_student({'name': name, 'grade': grade, 'school_id': school_id})
        self.ledger.create_fee({
            'student_id': student['id'], 'school_id': school_id, 'fee_type': FeeType.TUITION,
            'amount': 600, 'due_date': '2026-01-01',
        }, installments=2)
        return student

    def test_school_filter(self):
        self.assertEqual(len(self.ledger.get_students('school-1')), 3)
        self.assertEqual(len(self.ledger.get_fees('school-2')), 1)
        self.assertEqual(len(self.ledger.get_installments('school-1')), 6)
        self.assertEqual(len(self.ledger.get_students()), 4)

    def test_grade_list_filter(self):
        grades = [Grade.KG1, Grade.GRADE_1]
        names = {s['name'] for s in self.ledger.get_students('school-1', grades)}
        self.assertEqual(names, {'أحمد', 'مريم'})
        self.assertEqual(len(self.ledger.get_fees('school-1', grade_levels=grades)), 2)
        self.assertEqual(len(self.ledger.get_installments('school-1', grade_levels=grades)), 4)

    def test_single_grade_filter(self):
        students = self.ledger.get_students('school-1', Grade.GRADE_2)
        self.assertEqual([s['id'] for s in students], [self.second['id']])

    def test_empty_grade_list_matches_nothing(self):
        self.assertEqual(self.ledger.get_students('school-1', []), [])
        self.assertEqual(self.ledger.get_fees('school-1', grade_levels=()), [])

    def test_student_and_fee_filters(self):
        fees = self.ledger.get_fees(student_id=self.first['id'])
        self.assertEqual(len(fees), 1)
        installments = self.ledger.get_installments(fee_id=fees[0]['id'])
        self.assertEqual(len(installments), 2)
        self.assertTrue(all(i['student_id'] == self.first['id'] for i in installments))

    def test_summary(self):
        installment = self.ledger.get_installments(student_id=self.kg['id'])[0]
        self.ledger.mark_paid(installment['id'])

        summary = self.ledger.summary('school-1')
        self.assertEqual(summary['students'], 3)
        self.assertEqual(summary['fees'], 3)
        self.assertEqual(summary['amount'], 1800)
        self.assertEqual(summary['paid'], 300)
        self.assertEqual(summary['balance'], 1500)
        self.assertEqual(summary['fees_by_status'], {'unpaid': 2, 'partial': 1, 'paid': 0})
        # installments fall due 2026-01-01 and 2026-07-01
        self.assertEqual(summary['installments_by_status'], {'paid': 1, 'upcoming': 3, 'overdue': 2})

    def test_summary_for_grade_scope(self):
        summary = self.ledger.summary('school-1', [Grade.GRADE_2])
        self.assertEqual(summary['students'], 1)
        self.assertEqual(summary['amount'], 600)


class LedgerAuditCommandTestCase(TestCase):
    """Test cases for the ledger_audit management command"""

    def setUp(self):
        self.store = build_store('database')
        self.fee = self.store.upsert(FEES, {
            'fee_type': FeeType.TUITION.value,
            'amount': 100,
            'discount': 0,
            'paid': 40,
            'balance': 100,
            'status': FeeStatus.UNPAID.value,
        })

    def run_audit(self, **options):
        out = StringIO()
        call_command('ledger_audit', storage='database', stdout=out, **options)
        return out.getvalue()

    def test_reports_inconsistent_fees(self):
        output = self.run_audit()
        self.assertIn(self.fee['id'], output)
        self.assertIn('1 fee(s) out of line', output)
        self.assertEqual(self.store.get(FEES, self.fee['id'])['balance'], 100)

    def test_fix_recomputes_fees(self):
        output = self.run_audit(fix=True)
        self.assertIn('Repaired 1 fee(s)', output)

        fee = self.store.get(FEES, self.fee['id'])
        self.assertEqual(fee['balance'], 60)
        self.assertEqual(fee['status'], FeeStatus.PARTIAL)
        self.assertIn('All fees are consistent', self.run_audit())

    def test_fix_reports_fees_it_cannot_repair(self):
        broken = self.store.upsert(FEES, {
            'fee_type': 'canteen',
            'amount': 50,
            'paid': 0,
            'balance': 0,
            'status': FeeStatus.PAID.value,
        })

        output = self.run_audit(fix=True)
        self.assertIn(f'Could not repair fee {broken["id"]!r}', output)
        self.assertIn('Repaired 1 fee(s)', output)
        self.assertEqual(self.store.get(FEES, broken['id'])['balance'], 0)
        self.assertEqual(self.store.get(FEES, self.fee['id'])['balance'], 60)
