"""
communications/messages.py
──────────────────────────
Vocabulary for parent notifications.

MessageTemplate – the predefined messages offered to school staff.
MessageStatus   – delivery state of a logged message.

Template bodies use ``{{ name }}``, ``{{ amount }}`` and ``{{ date }}``
placeholders; see services.render_message.
"""

from django.db import models


class MessageTemplate(models.TextChoices):
    PAYMENT_REMINDER = 'payment_reminder', 'تذكير بموعد القسط'
    OVERDUE_NOTICE   = 'overdue_notice',   'إشعار بتأخر سداد'
    PAYMENT_RECEIPT  = 'payment_receipt',  'تأكيد استلام الدفعة'
    GENERAL_NOTICE   = 'general_notice',   'معلومات عامة'


class MessageStatus(models.TextChoices):
    PENDING   = 'pending',   'Pending'
    DELIVERED = 'delivered', 'Delivered'
    FAILED    = 'failed',    'Failed'


TEMPLATE_BODIES = {
    MessageTemplate.PAYMENT_REMINDER: (
        'نفيدكم بأن القسط المستحق على الطالب {{ name }} بمبلغ {{ amount }} '
        'مستحقة بتاريخ {{ date }}، نرجو دفع المستحقات في اقرب فرصة ممكنة وشكراً.'
    ),
    MessageTemplate.OVERDUE_NOTICE: (
        'نفيدكم بأن القسط المستحق على الطالب {{ name }} بمبلغ {{ amount }} '
        'قد تأخر سداده، نرجو دفع المستحقات في اقرب فرصة ممكنة.'
    ),
    MessageTemplate.PAYMENT_RECEIPT: (
        'شكراً لسداد الدفعة المستحقة للطالب {{ name }} بمبلغ {{ amount }} بتاريخ {{ date }}.'
    ),
    MessageTemplate.GENERAL_NOTICE: (
        'عزيزي ولي أمر الطالب {{ name }}، نود إعلامكم بأن هناك معلومات هامة. '
        'للاستفسار يرجى التواصل على هاتف المدرسة.'
    ),
}

CUSTOM_TEMPLATE_LABEL = 'رسالة مخصصة'
