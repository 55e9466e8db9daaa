"""
finances/choices.py
───────────────────
Fixed vocabularies used by student, fee and installment records.

Grade           – the fourteen grade levels, KG1 through grade 12.
FeeType         – what a fee is charged for.
FeeStatus       – unpaid / partial / paid, always derived from the amounts.
InstallmentStatus – paid / upcoming / overdue, derived from the dates.
Transportation  – none / one-way / two-way school bus service.
TransportationDirection – which leg a one-way service covers.
"""

from django.db import models


class Grade(models.TextChoices):
    KG1      = 'الروضة الأولى KG1', 'KG1'
    KG2      = 'التمهيدي KG2',      'KG2'
    GRADE_1  = 'الصف الأول',        'Grade 1'
    GRADE_2  = 'الصف الثاني',       'Grade 2'
    GRADE_3  = 'الصف الثالث',       'Grade 3'
    GRADE_4  = 'الصف الرابع',       'Grade 4'
    GRADE_5  = 'الصف الخامس',       'Grade 5'
    GRADE_6  = 'الصف السادس',       'Grade 6'
    GRADE_7  = 'الصف السابع',       'Grade 7'
    GRADE_8  = 'الصف الثامن',       'Grade 8'
    GRADE_9  = 'الصف التاسع',       'Grade 9'
    GRADE_10 = 'الصف العاشر',       'Grade 10'
    GRADE_11 = 'الصف الحادي عشر',   'Grade 11'
    GRADE_12 = 'الصف الثاني عشر',   'Grade 12'


class FeeType(models.TextChoices):
    TUITION        = 'tuition',        'رسوم دراسية'
    TRANSPORTATION = 'transportation', 'نقل مدرسي'
    ACTIVITIES     = 'activities',     'أنشطة'
    UNIFORM        = 'uniform',        'زي مدرسي'
    BOOKS          = 'books',          'كتب'
    OTHER          = 'other',          'رسوم أخرى'


class FeeStatus(models.TextChoices):
    UNPAID  = 'unpaid',  'Unpaid'
    PARTIAL = 'partial', 'Partially paid'
    PAID    = 'paid',    'Paid'


class InstallmentStatus(models.TextChoices):
    PAID     = 'paid',     'Paid'
    UPCOMING = 'upcoming', 'Upcoming'
    OVERDUE  = 'overdue',  'Overdue'


class Transportation(models.TextChoices):
    NONE    = 'none',    'لا يوجد'
    ONE_WAY = 'one-way', 'اتجاه واحد'
    TWO_WAY = 'two-way', 'اتجاهين'


class TransportationDirection(models.TextChoices):
    TO_SCHOOL   = 'to-school',   'إلى المدرسة'
    FROM_SCHOOL = 'from-school', 'من المدرسة'


# Plans offered when a fee is created; 1 means a single payment.
INSTALLMENT_PLANS = (1, 2, 3, 4, 6, 12)

CURRENCY = 'ر.ع'
