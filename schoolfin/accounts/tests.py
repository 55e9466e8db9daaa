# accounts/tests.py

from datetime import date, datetime, timezone as dt_timezone

from django.contrib.auth.hashers import check_password
from django.core.exceptions import ValidationError
from django.test import SimpleTestCase, override_settings

from core.exceptions import NotFound
from core.storage import MemoryStorage
from core.store import EntityStore
from finances.choices import FeeType, Grade
from finances.services import SchoolLedger

from .choices import Role
from .services import Scope, SchoolDirectory, scope_for

NOW = datetime(2026, 3, 15, 9, 30, tzinfo=dt_timezone.utc)


@override_settings(PASSWORD_HASHERS=['django.contrib.auth.hashers.MD5PasswordHasher'])
class SchoolDirectoryTestCase(SimpleTestCase):
    """Test cases for schools, staff accounts and school settings"""

    def setUp(self):
        self.directory = SchoolDirectory(EntityStore(MemoryStorage(), clock=lambda: NOW))
        self.school = self.directory.save_school({
            'name': 'مدرسة النور',
            'logo': 'nour.png',
            'subscription_start': '2026-01-01',
            'subscription_end': '2026-12-31',
        })

    def school_admin(self, **extra):
        return self.directory.save_account({
            'username': 'nour.admin',
            'password': 'secret123',
            'role': Role.SCHOOL_ADMIN,
            'school_id': self.school['id'],
            **extra,
        })

    # Schools

    def test_save_school(self):
        self.assertTrue(self.school['active'])
        self.assertEqual(self.school['subscription_start'], '2026-01-01')
        self.assertEqual(self.directory.list_schools(), [self.school])

    def test_school_name_required(self):
        with self.assertRaises(ValidationError):
            self.directory.save_school({'name': '  '})

    def test_subscription_cannot_end_before_start(self):
        with self.assertRaises(ValidationError):
            self.directory.save_school({
                'name': 'مدرسة الأمل',
                'subscription_start': '2026-06-01',
                'subscription_end': '2026-01-01',
            })

    def test_delete_school(self):
        self.directory.delete_school(self.school['id'])
        self.assertIsNone(self.directory.get_school(self.school['id']))
        with self.assertRaises(NotFound):
            self.directory.delete_school(self.school['id'])

    # Accounts

    def test_password_is_hashed(self):
        account = self.school_admin()
        self.assertNotEqual(account['password'], 'secret123')
        self.assertTrue(check_password('secret123', account['password']))

    def test_update_without_password_keeps_hash(self):
        account = self.school_admin()
        updated = self.directory.save_account({**account, 'password': '', 'username': 'nour.head'})
        self.assertEqual(updated['password'], account['password'])
        self.assertEqual(updated['username'], 'nour.head')

    def test_hashed_password_is_not_rehashed(self):
        account = self.school_admin()
        updated = self.directory.save_account(account)
        self.assertEqual(updated['password'], account['password'])

    def test_account_copies_school_profile(self):
        account = self.school_admin()
        self.assertEqual(account['school_name'], 'مدرسة النور')
        self.assertEqual(account['school_logo'], 'nour.png')
        self.assertIsNone(account['grade_levels'])
        self.assertIsNone(account['last_login'])

    def test_admin_has_no_school(self):
        account = self.directory.save_account({
            'username': 'root', 'password': 'x', 'role': Role.ADMIN, 'school_id': self.school['id'],
        })
        self.assertIsNone(account['school_id'])

    def test_account_validation(self):
        with self.assertRaises(ValidationError):
            self.directory.save_account({'username': 'a', 'role': 'accountant', 'school_id': 'x'})
        with self.assertRaises(ValidationError):
            self.directory.save_account({'username': 'a', 'role': Role.SCHOOL_ADMIN})
        with self.assertRaises(ValidationError):
            self.directory.save_account({'username': ' ', 'role': Role.ADMIN})
        with self.assertRaises(ValidationError):
            self.directory.save_account({
                'username': 'a', 'role': Role.GRADE_MANAGER,
                'school_id': self.school['id'], 'grade_levels': ['Grade 13'],
            })

    def test_username_is_unique(self):
        self.school_admin()
        with self.assertRaises(ValidationError):
            self.school_admin()

    def test_list_accounts_by_school(self):
        self.school_admin()
        self.directory.save_account({'username': 'root', 'password': 'x', 'role': Role.ADMIN})
        self.assertEqual(len(self.directory.list_accounts()), 2)
        self.assertEqual(len(self.directory.list_accounts(self.school['id'])), 1)

    def test_authenticate(self):
        account = self.school_admin()

        logged_in = self.directory.authenticate('nour.admin', 'secret123')
        self.assertEqual(logged_in['id'], account['id'])
        self.assertEqual(logged_in['last_login'], NOW.isoformat())

        self.assertIsNone(self.directory.authenticate('nour.admin', 'wrong'))
        self.assertIsNone(self.directory.authenticate('nobody', 'secret123'))

    def test_record_login_for_missing_account(self):
        with self.assertRaises(NotFound):
            self.directory.record_login('missing')

    def test_delete_account(self):
        account = self.school_admin()
        self.directory.delete_account(account['id'])
        self.assertIsNone(self.directory.get_account(account['id']))

    # Settings

    def test_default_settings(self):
        settings = self.directory.get_settings(self.school['id'])
        self.assertEqual(settings['name'], 'مدرسة النور')
        self.assertEqual(settings['default_installments'], 4)
        self.assertEqual(settings['transportation_fee_one_way'], 150)
        self.assertEqual(settings['transportation_fee_two_way'], 300)

    def test_save_settings_updates_school_and_accounts(self):
        account = self.school_admin()
        saved = self.directory.save_settings(self.school['id'], {
            'name': 'مدرسة النور الدولية',
            'logo': 'nour-new.png',
            'default_installments': '6',
        })
        self.assertEqual(saved['default_installments'], 6)
        self.assertEqual(self.directory.get_settings(self.school['id'])['id'], saved['id'])
        self.assertEqual(self.directory.get_school(self.school['id'])['name'], 'مدرسة النور الدولية')

        account = self.directory.get_account(account['id'])
        self.assertEqual(account['school_name'], 'مدرسة النور الدولية')
        self.assertEqual(account['school_logo'], 'nour-new.png')

    def test_save_settings_twice_keeps_one_record(self):
        self.directory.save_settings(self.school['id'], {'transportation_fee_one_way': 120})
        self.directory.save_settings(self.school['id'], {'transportation_fee_two_way': 240})

        settings = self.directory.get_settings(self.school['id'])
        self.assertEqual(settings['transportation_fee_one_way'], 120)
        self.assertEqual(settings['transportation_fee_two_way'], 240)
        self.assertEqual(len(self.directory.store.list('settings')), 1)

    def test_invalid_settings(self):
        with self.assertRaises(ValidationError):
            self.directory.save_settings(self.school['id'], {'default_installments': 5})
        with self.assertRaises(ValidationError):
            self.directory.save_settings(self.school['id'], {'transportation_fee_one_way': -1})


class ScopeTestCase(SimpleTestCase):
    """Test cases for what each role is allowed to see"""

    def setUp(self):
        store = EntityStore(MemoryStorage(), clock=lambda: NOW)
        self.ledger = SchoolLedger(store, today=lambda: date(2026, 3, 15))
        for name, grade, school_id in (
            ('أحمد', Grade.GRADE_1, 'school-1'),
            ('مريم', Grade.GRADE_2, 'school-1'),
            ('علي', Grade.GRADE_1, 'school-2'),
        ):
            student = self.ledger.save_student({'name': name, 'grade': grade, 'school_id': school_id})
            self.ledger.create_fee({
                'student_id': student['id'], 'school_id': school_id, 'fee_type': FeeType.TUITION,
                'amount': 400, 'due_date': '2026-02-01',
            }, installments=2)

    def test_scope_for_roles(self):
        self.assertEqual(scope_for({'role': Role.ADMIN, 'school_id': 'school-1'}), Scope())
        self.assertEqual(
            scope_for({'role': Role.SCHOOL_ADMIN, 'school_id': 'school-1'}),
            Scope('school-1'),
        )
        self.assertEqual(
            scope_for({'role': Role.GRADE_MANAGER, 'school_id': 'school-1', 'grade_levels': [Grade.GRADE_2]}),
            Scope('school-1', (Grade.GRADE_2,)),
        )

    def test_admin_sees_everything(self):
        visible = self.ledger.visible_to({'role': Role.ADMIN})
        self.assertEqual(len(visible['students']), 3)
        self.assertEqual(len(visible['installments']), 6)

    def test_school_admin_sees_own_school(self):
        visible = self.ledger.visible_to({'role': Role.SCHOOL_ADMIN, 'school_id': 'school-1'})
        self.assertEqual(len(visible['students']), 2)
        self.assertEqual(len(visible['fees']), 2)

    def test_grade_manager_sees_own_grades(self):
        visible = self.ledger.visible_to({
            'role': Role.GRADE_MANAGER, 'school_id': 'school-1', 'grade_levels': [Grade.GRADE_2],
        })
        self.assertEqual([s['name'] for s in visible['students']], ['مريم'])
        self.assertEqual(len(visible['fees']), 1)
        self.assertEqual(len(visible['installments']), 2)

    def test_grade_manager_without_grades_sees_nothing(self):
        visible = self.ledger.visible_to({'role': Role.GRADE_MANAGER, 'school_id': 'school-1'})
        self.assertEqual(visible['students'], [])
        self.assertEqual(visible['fees'], [])
