"""
accounts/choices.py
───────────────────
Account roles.

ADMIN          – runs the whole system; not tied to a school.
SCHOOL_ADMIN   – manages one school.
GRADE_MANAGER  – works inside one school, restricted to a set of grades.
"""

from django.db import models


class Role(models.TextChoices):
    ADMIN         = 'admin',        'System Administrator'
    SCHOOL_ADMIN  = 'schoolAdmin',  'School Administrator'
    GRADE_MANAGER = 'gradeManager', 'Grade Manager'
