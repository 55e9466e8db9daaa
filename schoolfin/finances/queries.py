"""
finances/queries.py
───────────────────
Read-only filters behind every list view.

Each query is the same chain over a full collection: school first, then
the entity-specific filter (student, fee), then grade membership.  Grade
restrictions accept a single grade string or a collection of grades; an
empty collection matches nothing.  Results are never paginated.
"""

from django.utils import timezone

from core.entities import FEES, INSTALLMENTS, STUDENTS

from .installments import with_status


# ── Filter pieces ─────────────────────────────────────────────────────────────

def grade_matches(record, grade_levels):
    """
    True when *record* passes the grade restriction.  None (or '') means no
    restriction; a string must match exactly; a collection is a set test.
    """
    if grade_levels is None or grade_levels == '':
        return True
    if isinstance(grade_levels, str):
        return record.get('grade') == grade_levels
    return record.get('grade') in set(grade_levels)


def _filter(records, school_id=None, grade_levels=None, **fields):
    if school_id:
        records = [r for r in records if r.get('school_id') == school_id]
    for field, value in fields.items():
        if value:
            records = [r for r in records if r.get(field) == value]
    return [r for r in records if grade_matches(r, grade_levels)]


# ── Queries ───────────────────────────────────────────────────────────────────

def get_students(store, school_id=None, grade_levels=None):
    return _filter(store.list(STUDENTS), school_id, grade_levels)


def get_fees(store, school_id=None, student_id=None, grade_levels=None):
    return _filter(store.list(FEES), school_id, grade_levels, student_id=student_id)


def get_installments(store, school_id=None, student_id=None, fee_id=None,
                     grade_levels=None, today=None):
    """Installments with their status derived for *today* (defaults to now)."""
    today = today or timezone.localdate()
    installments = _filter(
        store.list(INSTALLMENTS), school_id, grade_levels,
        student_id=student_id, fee_id=fee_id,
    )
    return [with_status(installment, today) for installment in installments]
