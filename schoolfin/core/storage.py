"""
core/storage.py
───────────────
Storage substrates the entity store reads from and writes to.

Both expose the same three calls, all synchronous:

read_collection(entity_type)           -> list of raw record dicts ([] if absent)
write_collection(entity_type, records) -> None, replaces the whole collection
atomic(entity_types)                   -> context manager; changes made inside
                                          to those collections are undone if the
                                          block raises

MemoryStorage    – a dict of lists, used by tests and throwaway sessions.
DatabaseStorage  – one StoredCollection row per entity type.
"""

import copy
import logging
from contextlib import contextmanager

from django.db import transaction

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Keeps every collection in a plain dict.  Records are copied in and out."""

    def __init__(self, initial=None):
        self._collections = copy.deepcopy(initial) if initial else {}

    def read_collection(self, entity_type):
        return copy.deepcopy(self._collections.get(entity_type, []))

    def write_collection(self, entity_type, records):
        self._collections[entity_type] = copy.deepcopy(list(records))

    @contextmanager
    def atomic(self, entity_types=()):
        """Snapshot only *entity_types*; other collections are left to their own writers."""
        snapshot = {
            entity_type: copy.deepcopy(self._collections[entity_type])
            for entity_type in entity_types
            if entity_type in self._collections
        }
        try:
            yield
        except Exception:
            for entity_type in entity_types:
                if entity_type in snapshot:
                    self._collections[entity_type] = snapshot[entity_type]
                else:
                    self._collections.pop(entity_type, None)
            logger.debug('Memory storage rolled back %s', ', '.join(entity_types))
            raise


class DatabaseStorage:
    """
    Persists each collection as a JSON list in a StoredCollection row.
    ``atomic()`` is a Django database transaction.
    """

    def read_collection(self, entity_type):
        from .models import StoredCollection

        row = StoredCollection.objects.filter(entity_type=entity_type).first()
        if row is None:
            return []
        return list(row.records or [])

    def write_collection(self, entity_type, records):
        from .models import StoredCollection

        StoredCollection.objects.update_or_create(
            entity_type=entity_type,
            defaults={'records': list(records)},
        )

    def atomic(self, entity_types=()):
        return transaction.atomic()
