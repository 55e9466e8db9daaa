"""
communications/services.py
──────────────────────────
Renders parent notifications and keeps the message log.

Delivery itself (WhatsApp, SMS) happens elsewhere; every message logged
here starts out ``pending``.

Functions
─────────
render_message(text, student, amount, date)
    Fill the {{ name }} / {{ amount }} / {{ date }} placeholders.

send_messages(store, students, text, amount, date, template=None)
    Render one message per student and append each to the log.

get_messages(store, school_id=None, student_id=None)
    Logged messages, optionally filtered.
"""

import logging

from django.core.exceptions import ValidationError
from django.template import Context, Engine

from core.entities import MESSAGES
from core.utils import as_amount, as_date
from finances.choices import CURRENCY

from .messages import CUSTOM_TEMPLATE_LABEL, TEMPLATE_BODIES, MessageStatus, MessageTemplate

logger = logging.getLogger(__name__)

# Plain-text messages: no HTML escaping.
_engine = Engine(autoescape=False)


def template_body(template):
    return TEMPLATE_BODIES[MessageTemplate(template)]


def render_message(text, student, amount=None, date=None):
    """Render *text* for *student*.  The amount carries the currency suffix."""
    message_date = as_date(date)
    context = Context({
        'name':   student.get('name', ''),
        'amount': f'{as_amount(amount)} {CURRENCY}' if amount not in (None, '') else '',
        'date':   message_date.strftime('%d/%m/%Y') if message_date else '',
    }, autoescape=False)
    return _engine.from_string(text).render(context)


def _log(store, student, template_label, body):
    """Internal helper to persist a message log entry."""
    return store.upsert(MESSAGES, {
        'student_id':   student.get('id'),
        'student_name': student.get('name', ''),
        'grade':        student.get('grade', ''),
        'parent_name':  student.get('parent_name', ''),
        'phone':        student.get('phone', ''),
        'template':     template_label,
        'message':      body,
        'sent_at':      store.clock().isoformat(),
        'status':       MessageStatus.PENDING.value,
        'school_id':    student.get('school_id', ''),
    })


def send_messages(store, students, text=None, amount=None, date=None, template=None):
    """
    Log one rendered message per student.  Either *template* (a
    MessageTemplate value) or a custom *text* must be given; a template
    supplies the text when none is passed.  Returns the logged records.
    """
    if template:
        label = MessageTemplate(template).label
        text = text or template_body(template)
    else:
        label = CUSTOM_TEMPLATE_LABEL
    if not text:
        raise ValidationError({'message': 'Choose a template or write a message.'})

    logged = []
    with store.atomic(MESSAGES):
        for student in students:
            logged.append(_log(store, student, label, render_message(text, student, amount, date)))

    logger.info('Queued %d message(s) using %s', len(logged), label)
    return logged


def get_messages(store, school_id=None, student_id=None):
    messages = store.list(MESSAGES)
    if school_id:
        messages = [m for m in messages if m.get('school_id') == school_id]
    if student_id:
        messages = [m for m in messages if m.get('student_id') == student_id]
    return messages
