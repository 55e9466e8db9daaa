"""
core/exceptions.py
──────────────────
Errors raised by the entity store and the ledger services.

Input problems (negative amounts, unknown choices, bad date windows) are
reported with Django's own ``ValidationError`` so forms and callers can
handle them the usual way.  The classes here cover the store itself.
"""

from django.core.exceptions import ObjectDoesNotExist


class LedgerError(Exception):
    """Base class for every error raised by the ledger."""


class NotFound(LedgerError, ObjectDoesNotExist):
    """
    An update or delete named a record id that is not in its collection.

    Reads never raise this; ``get`` returns None instead.
    """

    def __init__(self, entity_type, record_id):
        self.entity_type = entity_type
        self.record_id = record_id
        super().__init__(f'{entity_type} record {record_id!r} not found')


class InvariantViolation(LedgerError):
    """A stored fee whose balance or status disagrees with its amounts."""

    def __init__(self, fee_id, problems):
        self.fee_id = fee_id
        self.problems = list(problems)
        super().__init__(f'fee {fee_id!r}: ' + '; '.join(self.problems))
