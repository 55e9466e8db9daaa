"""
finances/stats.py
─────────────────
Dashboard totals over the same scoped filters the list views use.
"""

from decimal import Decimal

from core.utils import as_decimal, to_number

from .choices import FeeStatus, InstallmentStatus
from .queries import get_fees, get_installments, get_students


def fee_summary(store, school_id=None, grade_levels=None, today=None):
    """
    Totals for one scope:

        students        – number of students
        fees            – number of fees
        amount / discount / paid / balance – money sums across those fees
        fees_by_status  – {unpaid, partial, paid} counts
        installments_by_status – {paid, upcoming, overdue} counts
    """
    fees = get_fees(store, school_id=school_id, grade_levels=grade_levels)
    installments = get_installments(
        store, school_id=school_id, grade_levels=grade_levels, today=today,
    )

    totals = {'amount': Decimal(0), 'discount': Decimal(0), 'paid': Decimal(0), 'balance': Decimal(0)}
    for fee in fees:
        for field in ('amount', 'discount', 'paid'):
            totals[field] += as_decimal(fee.get(field), field)
        totals['balance'] += Decimal(str(fee.get('balance') or 0))

    fees_by_status = {status: 0 for status in FeeStatus.values}
    for fee in fees:
        status = fee.get('status') or FeeStatus.UNPAID.value
        fees_by_status[status] = fees_by_status.get(status, 0) + 1

    installments_by_status = {status: 0 for status in InstallmentStatus.values}
    for installment in installments:
        installments_by_status[installment['status']] += 1

    return {
        'students':               len(get_students(store, school_id=school_id, grade_levels=grade_levels)),
        'fees':                   len(fees),
        'amount':                 to_number(totals['amount']),
        'discount':               to_number(totals['discount']),
        'paid':                   to_number(totals['paid']),
        'balance':                to_number(totals['balance']),
        'fees_by_status':         fees_by_status,
        'installments_by_status': installments_by_status,
    }
