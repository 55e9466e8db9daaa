"""
core/store.py
─────────────
The entity store: keyed-record persistence for every entity type.

Every operation reads the whole collection, changes it, and writes the
whole collection back.  There is no partial access.

EntityStore
    list(entity_type, predicate=None)  -> [record]
    get(entity_type, record_id)        -> record | None
    upsert(entity_type, record)        -> record   (new id when none given)
    delete(entity_type, record_id)     -> None     (NotFound when absent)
    delete_where(entity_type, pred)    -> [removed records]
    atomic(*entity_types)              -> context manager, one notification
    subscribe(callback)                -> unsubscribe()

build_store(backend=None)
    Construct an EntityStore on the substrate named by settings.LEDGER_STORAGE.
"""

import logging
import threading
import uuid
from contextlib import ExitStack, contextmanager

from django.conf import settings
from django.utils import timezone

from .exceptions import NotFound
from .storage import DatabaseStorage, MemoryStorage

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = {
    'database': DatabaseStorage,
    'memory':   MemoryStorage,
}


class EntityStore:
    """
    Generic record store over an injected storage substrate.

    Each entity type has its own re-entrant lock, so a read-modify-write of
    one collection is never interleaved with another write to the same
    collection.  Subscribers are called synchronously, after the write,
    exactly once per successful mutation (or once per ``atomic`` block).
    """

    def __init__(self, storage, clock=None):
        self.storage = storage
        self.clock = clock or timezone.now
        self._subscribers = []
        self._locks = {}
        self._locks_guard = threading.Lock()
        self._local = threading.local()

    # ── Locking & notification ────────────────────────────────────────────────

    def _lock(self, entity_type):
        with self._locks_guard:
            return self._locks.setdefault(entity_type, threading.RLock())

    def _state(self):
        state = self._local
        if not hasattr(state, 'depth'):
            state.depth = 0
            state.pending = False
            state.notifying = False
        return state

    def _changed(self):
        state = self._state()
        if state.depth:
            state.pending = True
            return
        self._notify()

    def _notify(self):
        state = self._state()
        if state.notifying:
            logger.warning('Store mutated from inside a subscriber; nested notification suppressed')
            return
        state.notifying = True
        try:
            for callback in list(self._subscribers):
                callback()
        finally:
            state.notifying = False

    def subscribe(self, callback):
        """Register *callback* (no arguments).  Returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @contextmanager
    def atomic(self, *entity_types):
        """
        Hold the locks of *entity_types* for the whole block.  Writes made
        inside to those collections are undone if the block raises, and
        subscribers hear about the block once, when the outermost block
        finishes cleanly.
        """
        state = self._state()
        entity_types = tuple(sorted(set(entity_types)))
        with ExitStack() as stack:
            for entity_type in entity_types:
                stack.enter_context(self._lock(entity_type))
            state.depth += 1
            try:
                with self.storage.atomic(entity_types):
                    yield self
            except Exception:
                if state.depth == 1:
                    state.pending = False
                raise
            finally:
                state.depth -= 1

        if state.depth == 0 and state.pending:
            state.pending = False
            self._notify()

    # ── Reads ─────────────────────────────────────────────────────────────────

    def list(self, entity_type, predicate=None):
        records = self.storage.read_collection(entity_type)
        logger.debug('Read %d %s records', len(records), entity_type)
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    def get(self, entity_type, record_id):
        if not record_id:
            return None
        for record in self.storage.read_collection(entity_type):
            if record.get('id') == record_id:
                return record
        return None

    # ── Writes ────────────────────────────────────────────────────────────────

    def upsert(self, entity_type, record):
        """
        Insert *record* when it has no id, otherwise replace the stored
        record with the same id.  ``created_at`` survives replacement;
        ``updated_at`` is always refreshed.
        """
        record = dict(record)
        now = self.clock().isoformat()

        with self._lock(entity_type):
            records = self.storage.read_collection(entity_type)

            if not record.get('id'):
                record['id'] = str(uuid.uuid4())
                record['created_at'] = now
                record['updated_at'] = now
                records.append(record)
            else:
                index = _index_of(records, record['id'])
                if index is None:
                    raise NotFound(entity_type, record['id'])
                record['created_at'] = records[index].get('created_at', now)
                record['updated_at'] = now
                records[index] = record

            self.storage.write_collection(entity_type, records)

        self._changed()
        return dict(record)

    def delete(self, entity_type, record_id):
        with self._lock(entity_type):
            records = self.storage.read_collection(entity_type)
            index = _index_of(records, record_id)
            if index is None:
                raise NotFound(entity_type, record_id)
            del records[index]
            self.storage.write_collection(entity_type, records)

        self._changed()

    def delete_where(self, entity_type, predicate):
        """Remove every record matching *predicate*; return what was removed."""
        with self._lock(entity_type):
            records = self.storage.read_collection(entity_type)
            kept, removed = [], []
            for record in records:
                (removed if predicate(record) else kept).append(record)
            self.storage.write_collection(entity_type, kept)

        self._changed()
        return removed


def _index_of(records, record_id):
    for index, record in enumerate(records):
        if record.get('id') == record_id:
            return index
    return None


def build_store(backend=None, clock=None):
    """
    Construct one EntityStore.  Callers build it once and pass it along;
    there is no module-level instance.
    """
    backend = backend or getattr(settings, 'LEDGER_STORAGE', 'database')
    try:
        storage_class = STORAGE_BACKENDS[backend]
    except KeyError:
        raise ValueError(f'Unknown LEDGER_STORAGE backend {backend!r}') from None
    logger.info('Entity store using %s storage', backend)
    return EntityStore(storage_class(), clock=clock)
