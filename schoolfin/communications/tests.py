# communications/tests.py

from datetime import date, datetime, timezone as dt_timezone

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from core.storage import MemoryStorage
from core.store import EntityStore

from .messages import CUSTOM_TEMPLATE_LABEL, MessageStatus, MessageTemplate
from .services import get_messages, render_message, send_messages

NOW = datetime(2026, 3, 15, 9, 30, tzinfo=dt_timezone.utc)


class RenderMessageTestCase(SimpleTestCase):
    """Test cases for placeholder substitution"""

    student = {'id': 'st-1', 'name': 'مريم سالم', 'grade': 'الصف الثاني', 'school_id': 'school-1'}

    def test_placeholders(self):
        body = render_message(
            'الطالب {{ name }} عليه {{ amount }} بتاريخ {{ date }}',
            self.student, amount=150, date=date(2026, 4, 5),
        )
        self.assertEqual(body, 'الطالب مريم سالم عليه 150 ر.ع بتاريخ 05/04/2026')

    def test_iso_date_and_fractional_amount(self):
        body = render_message('{{ amount }} / {{ date }}', self.student, amount='75.5', date='2026-09-01')
        self.assertEqual(body, '75.5 ر.ع / 01/09/2026')

    def test_missing_values_render_empty(self):
        self.assertEqual(render_message('[{{ amount }}][{{ date }}]', self.student), '[][]')

    def test_no_html_escaping(self):
        student = {**self.student, 'name': 'O\'Neil & <Co>'}
        self.assertEqual(render_message('{{ name }}', student), 'O\'Neil & <Co>')


class SendMessagesTestCase(SimpleTestCase):
    """Test cases for the message log"""

    def setUp(self):
        self.store = EntityStore(MemoryStorage(), clock=lambda: NOW)
        self.students = [
            {'id': 'st-1', 'name': 'مريم', 'grade': 'الصف الثاني', 'school_id': 'school-1',
             'parent_name': 'سالم', 'phone': '+96890000001'},
            {'id': 'st-2', 'name': 'علي', 'grade': 'الصف الأول', 'school_id': 'school-2',
             'parent_name': 'حمد', 'phone': '+96890000002'},
        ]

    def test_template_message(self):
        logged = send_messages(
            self.store, self.students, amount=300, date='2026-04-01',
            template=MessageTemplate.PAYMENT_REMINDER,
        )
        self.assertEqual(len(logged), 2)

        first = logged[0]
        self.assertIn('مريم', first['message'])
        self.assertIn('300 ر.ع', first['message'])
        self.assertIn('01/04/2026', first['message'])
        self.assertEqual(first['template'], 'تذكير بموعد القسط')
        self.assertEqual(first['status'], MessageStatus.PENDING)
        self.assertEqual(first['sent_at'], NOW.isoformat())
        self.assertEqual(first['phone'], '+96890000001')

    def test_custom_message(self):
        logged = send_messages(self.store, self.students[:1], text='مرحباً {{ name }}')
        self.assertEqual(logged[0]['message'], 'مرحباً مريم')
        self.assertEqual(logged[0]['template'], CUSTOM_TEMPLATE_LABEL)

    def test_message_required(self):
        with self.assertRaises(ValidationError):
            send_messages(self.store, self.students, text='')
        self.assertEqual(get_messages(self.store), [])

    def test_unknown_template(self):
        with self.assertRaises(ValueError):
            send_messages(self.store, self.students, template='birthday')

    def test_one_notification_per_batch(self):
        calls = []
        self.store.subscribe(lambda: calls.append(1))
        send_messages(self.store, self.students, template=MessageTemplate.GENERAL_NOTICE)
        self.assertEqual(len(calls), 1)

    def test_get_messages_filters(self):
        send_messages(self.store, self.students, template=MessageTemplate.GENERAL_NOTICE)
        send_messages(self.store, self.students[:1], text='{{ name }}')

        self.assertEqual(len(get_messages(self.store)), 3)
        self.assertEqual(len(get_messages(self.store, school_id='school-1')), 2)
        self.assertEqual(len(get_messages(self.store, student_id='st-2')), 1)
