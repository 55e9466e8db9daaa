"""
finances/students.py
────────────────────
Student records and student codes.

Student codes are "KG" + number for kindergarten grades and "S" + number
for everything else, zero-padded to four digits.  Numbers come from a
per-school counter kept in the ``counters`` collection; it only ever
grows, so a number freed by a deletion is never handed out again.

A new student who rides the school bus gets a transportation fee at once.
Deleting a student leaves their fees alone unless ``cascade=True``.
"""

import logging

from django.core.exceptions import ValidationError
from django.utils import timezone

from core.entities import COUNTERS, FEES, INSTALLMENTS, STUDENTS
from core.utils import as_amount

from .choices import FeeType, Grade, Transportation, TransportationDirection

logger = logging.getLogger(__name__)


def student_code_prefix(grade):
    return 'KG' if 'KG' in (grade or '') else 'S'


def transportation_description(transportation, direction=None):
    kind = Transportation(transportation).label
    description = f'رسوم النقل - {kind}'
    if direction:
        description += f' - {TransportationDirection(direction).label}'
    return description


class StudentRegistry:

    def __init__(self, store, ledger, directory, today=None):
        self.store = store
        self.ledger = ledger
        self.directory = directory
        self.today = today or timezone.localdate

    def get_student(self, student_id):
        return self.store.get(STUDENTS, student_id)

    # ── Student codes ─────────────────────────────────────────────────────────

    def _counter(self, school_id):
        matches = self.store.list(COUNTERS, lambda record: record.get('school_id') == school_id)
        return matches[0] if matches else None

    def _next_number(self, school_id):
        counter = self._counter(school_id)
        enrolled = len(self.store.list(STUDENTS, lambda record: record.get('school_id') == school_id))
        last = counter.get('value', 0) if counter else 0
        return max(last, enrolled) + 1

    def generate_student_id(self, school_id, grade):
        """Preview the next student code for *school_id*; nothing is reserved."""
        return f'{student_code_prefix(grade)}{self._next_number(school_id):04d}'

    # ── Save / delete ─────────────────────────────────────────────────────────

    def save_student(self, student):
        student = self._validate(dict(student))

        if student.get('id'):
            saved = self.store.upsert(STUDENTS, student)
            logger.debug('Updated student %s', saved['id'])
            return saved

        school_id = student.get('school_id', '')
        with self.store.atomic(STUDENTS, COUNTERS, FEES, INSTALLMENTS):
            number = self._next_number(school_id)
            if not student.get('student_id'):
                student['student_id'] = f'{student_code_prefix(student["grade"])}{number:04d}'
            saved = self.store.upsert(STUDENTS, student)

            counter = self._counter(school_id) or {'school_id': school_id}
            counter['value'] = number
            self.store.upsert(COUNTERS, counter)

            if saved['transportation'] != Transportation.NONE:
                self._create_transportation_fee(saved)

        logger.info('Registered student %s (%s) in school %s', saved['student_id'], saved['id'], school_id)
        return saved

    def delete_student(self, student_id, cascade=False):
        """
        Delete a student.  Their fees and installments stay behind unless
        *cascade* is set, in which case each fee goes through delete_fee.
        """
        if not cascade:
            self.store.delete(STUDENTS, student_id)
            logger.info('Deleted student %s (fees kept)', student_id)
            return

        with self.store.atomic(STUDENTS, FEES, INSTALLMENTS):
            self.store.delete(STUDENTS, student_id)
            fees = self.store.list(FEES, lambda fee: fee.get('student_id') == student_id)
            for fee in fees:
                self.ledger.delete_fee(fee['id'])
        logger.info('Deleted student %s with %d fee(s)', student_id, len(fees))

    # ── Internals ─────────────────────────────────────────────────────────────

    def _validate(self, student):
        if not (student.get('name') or '').strip():
            raise ValidationError({'name': 'The student name is required.'})
        if student.get('grade') not in Grade.values:
            raise ValidationError({'grade': f'Unknown grade {student.get("grade")!r}.'})

        transportation = student.get('transportation') or Transportation.NONE.value
        if transportation not in Transportation.values:
            raise ValidationError({'transportation': f'Unknown transportation {transportation!r}.'})
        student['transportation'] = transportation

        direction = student.get('transportation_direction') or None
        if direction and direction not in TransportationDirection.values:
            raise ValidationError({'transportation_direction': f'Unknown direction {direction!r}.'})
        if transportation == Transportation.ONE_WAY and not direction:
            raise ValidationError({'transportation_direction': 'Choose a direction for one-way transportation.'})

        if transportation == Transportation.NONE:
            student['transportation_direction'] = None
            student['transportation_fee'] = None
            student['custom_transportation_fee'] = False
        else:
            student['transportation_direction'] = direction
            if student.get('transportation_fee') not in (None, ''):
                fee = as_amount(student['transportation_fee'], 'transportation_fee')
                if fee <= 0:
                    raise ValidationError({'transportation_fee': 'The transportation fee must be greater than zero.'})
                student['transportation_fee'] = fee
            else:
                student['transportation_fee'] = None
        return student

    def _create_transportation_fee(self, student):
        transportation = student['transportation']
        amount = student.get('transportation_fee')
        if not amount:
            settings = self.directory.get_settings(student.get('school_id', ''))
            amount = (
                settings['transportation_fee_one_way']
                if transportation == Transportation.ONE_WAY
                else settings['transportation_fee_two_way']
            )

        return self.ledger.save_fee({
            'student_id':          student['id'],
            'school_id':           student.get('school_id', ''),
            'fee_type':            FeeType.TRANSPORTATION.value,
            'description':         transportation_description(
                transportation, student.get('transportation_direction'),
            ),
            'amount':              amount,
            'discount':            0,
            'paid':                0,
            'due_date':            self.today().isoformat(),
            'transportation_type': transportation,
        })
