# core/tests.py

import threading
from datetime import datetime, timedelta, timezone as dt_timezone
from itertools import count

from django.core.exceptions import ObjectDoesNotExist
from django.test import SimpleTestCase, TestCase, override_settings

from .exceptions import NotFound
from .models import StoredCollection
from .storage import DatabaseStorage, MemoryStorage
from .store import EntityStore, build_store


def ticking_clock():
    """A clock that moves forward one minute per call."""
    start = datetime(2026, 1, 1, 8, 0, tzinfo=dt_timezone.utc)
    ticks = count()
    return lambda: start + timedelta(minutes=next(ticks))


class EntityStoreTestCase(SimpleTestCase):
    """Test cases for the entity store over memory storage"""

    def setUp(self):
        self.store = EntityStore(MemoryStorage(), clock=ticking_clock())
        self.calls = []
        self.unsubscribe = self.store.subscribe(lambda: self.calls.append(1))

    def test_upsert_assigns_id_and_timestamps(self):
        """Test that a record without an id gets one plus timestamps"""
        record = self.store.upsert('fees', {'amount': 100})
        self.assertTrue(record['id'])
        self.assertEqual(record['created_at'], record['updated_at'])
        self.assertEqual(self.store.get('fees', record['id'])['amount'], 100)

    def test_upsert_replaces_and_keeps_created_at(self):
        """Test that replacing a record keeps created_at and refreshes updated_at"""
        record = self.store.upsert('fees', {'amount': 100})
        updated = self.store.upsert('fees', {'id': record['id'], 'amount': 250})

        self.assertEqual(updated['created_at'], record['created_at'])
        self.assertNotEqual(updated['updated_at'], record['updated_at'])
        self.assertEqual(len(self.store.list('fees')), 1)
        self.assertEqual(self.store.get('fees', record['id'])['amount'], 250)

    def test_upsert_unknown_id_raises_not_found(self):
        """Test that updating an absent id is rejected"""
        with self.assertRaises(NotFound) as ctx:
            self.store.upsert('fees', {'id': 'missing', 'amount': 1})
        self.assertEqual(ctx.exception.entity_type, 'fees')
        self.assertEqual(ctx.exception.record_id, 'missing')
        self.assertIsInstance(ctx.exception, ObjectDoesNotExist)
        self.assertEqual(self.calls, [])

    def test_get_missing_returns_none(self):
        """Test that reads never raise for unknown ids"""
        self.assertIsNone(self.store.get('fees', 'missing'))
        self.assertIsNone(self.store.get('fees', None))
        self.assertEqual(self.store.list('fees'), [])

    def test_delete(self):
        """Test deleting a record and deleting an absent one"""
        record = self.store.upsert('fees', {'amount': 1})
        self.store.delete('fees', record['id'])
        self.assertIsNone(self.store.get('fees', record['id']))

        with self.assertRaises(NotFound):
            self.store.delete('fees', record['id'])

    def test_list_with_predicate(self):
        """Test filtering a collection with a predicate"""
        self.store.upsert('students', {'school_id': 'a'})
        self.store.upsert('students', {'school_id': 'b'})
        self.store.upsert('students', {'school_id': 'a'})

        matches = self.store.list('students', lambda r: r['school_id'] == 'a')
        self.assertEqual(len(matches), 2)

    def test_delete_where_returns_removed(self):
        """Test bulk removal by predicate"""
        for fee_id in ('x', 'x', 'y'):
            self.store.upsert('installments', {'fee_id': fee_id})

        removed = self.store.delete_where('installments', lambda r: r['fee_id'] == 'x')
        self.assertEqual(len(removed), 2)
        self.assertEqual([r['fee_id'] for r in self.store.list('installments')], ['y'])

    def test_each_mutation_notifies_once(self):
        """Test that subscribers hear about every upsert and delete exactly once"""
        record = self.store.upsert('fees', {'amount': 1})
        self.store.upsert('fees', {**record, 'amount': 2})
        self.store.delete('fees', record['id'])
        self.assertEqual(len(self.calls), 3)

    def test_unsubscribe(self):
        """Test that an unsubscribed callback is no longer called"""
        self.unsubscribe()
        self.store.upsert('fees', {'amount': 1})
        self.assertEqual(self.calls, [])

    def test_atomic_block_notifies_once(self):
        """Test that an atomic block produces a single notification"""
        with self.store.atomic('fees', 'installments'):
            fee = self.store.upsert('fees', {'amount': 1})
            self.store.upsert('installments', {'fee_id': fee['id']})
            self.store.upsert('installments', {'fee_id': fee['id']})
            self.assertEqual(self.calls, [])
        self.assertEqual(len(self.calls), 1)

    def test_atomic_block_rolls_back_on_error(self):
        """Test that a failing atomic block leaves every collection untouched"""
        kept = self.store.upsert('fees', {'amount': 1})
        self.calls.clear()

        with self.assertRaises(RuntimeError):
            with self.store.atomic('fees', 'installments'):
                self.store.delete('fees', kept['id'])
                self.store.upsert('installments', {'fee_id': kept['id']})
                raise RuntimeError('boom')

        self.assertIsNotNone(self.store.get('fees', kept['id']))
        self.assertEqual(self.store.list('installments'), [])
        self.assertEqual(self.calls, [])

    def test_subscriber_mutation_does_not_loop(self):
        """Test that a subscriber writing to the store does not recurse"""
        seen = []

        def writer():
            seen.append(1)
            self.store.upsert('messages', {'note': 'from subscriber'})

        self.store.subscribe(writer)
        self.store.upsert('fees', {'amount': 1})

        self.assertEqual(len(seen), 1)
        self.assertEqual(len(self.store.list('messages')), 1)

    def test_records_are_copies(self):
        """Test that mutating a returned record does not change storage"""
        record = self.store.upsert('fees', {'amount': 1})
        record['amount'] = 999
        self.store.list('fees')[0]['amount'] = 999
        self.assertEqual(self.store.get('fees', record['id'])['amount'], 1)


class DatabaseStorageTestCase(TestCase):
    """Test cases for the StoredCollection-backed storage"""

    def setUp(self):
        self.store = EntityStore(DatabaseStorage())

    def test_round_trip_through_database(self):
        """Test that records are persisted in one row per collection"""
        fee = self.store.upsert('fees', {'amount': 1200, 'status': 'unpaid'})
        self.store.upsert('fees', {'amount': 50, 'status': 'unpaid'})

        row = StoredCollection.objects.get(entity_type='fees')
        self.assertEqual(len(row.records), 2)
        self.assertEqual(self.store.get('fees', fee['id'])['amount'], 1200)
        self.assertEqual(str(row), 'fees (2 records)')

    def test_missing_collection_reads_empty(self):
        """Test that an unknown collection is an empty list"""
        self.assertEqual(self.store.list('installments'), [])

    def test_atomic_rolls_back_database_writes(self):
        """Test that a failing atomic block is rolled back in the database"""
        with self.assertRaises(RuntimeError):
            with self.store.atomic('fees'):
                self.store.upsert('fees', {'amount': 1})
                raise RuntimeError('boom')
        self.assertEqual(self.store.list('fees'), [])


class BuildStoreTestCase(SimpleTestCase):
    """Test cases for the store factory"""

    @override_settings(LEDGER_STORAGE='memory')
    def test_backend_from_settings(self):
        store = build_store()
        self.assertIsInstance(store.storage, MemoryStorage)

    def test_explicit_backend(self):
        self.assertIsInstance(build_store('database').storage, DatabaseStorage)

    def test_unknown_backend(self):
        with self.assertRaises(ValueError):
            build_store('redis')


class ConcurrentWriteTestCase(SimpleTestCase):
    """Test cases for writers on several threads sharing one store"""

    def setUp(self):
        self.store = EntityStore(MemoryStorage())

    def run_threads(self, target, count=4):
        threads = [threading.Thread(target=target) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

    def test_concurrent_inserts_are_all_kept(self):
        """Test that parallel upserts into one collection lose no records"""
        def insert():
            for _ in range(25):
                self.store.upsert('fees', {'amount': 1})

        self.run_threads(insert, count=8)
        self.assertEqual(len(self.store.list('fees')), 200)

    def test_concurrent_read_modify_write_is_serialized(self):
        """Test that updates made inside atomic blocks never overwrite each other"""
        counter = self.store.upsert('counters', {'value': 0})

        def increment():
            for _ in range(50):
                with self.store.atomic('counters'):
                    record = self.store.get('counters', counter['id'])
                    record['value'] += 1
                    self.store.upsert('counters', record)

        self.run_threads(increment)
        self.assertEqual(self.store.get('counters', counter['id'])['value'], 200)

    def test_rollback_leaves_other_collections_alone(self):
        """Test that a failed block only undoes the collections it locked"""
        inside = threading.Event()
        release = threading.Event()
        errors = []

        def failing_block():
            try:
                with self.store.atomic('fees'):
                    self.store.upsert('fees', {'amount': 1})
                    inside.set()
                    release.wait(5)
                    raise RuntimeError('boom')
            except RuntimeError as exc:
                errors.append(exc)

        worker = threading.Thread(target=failing_block)
        worker.start()
        self.assertTrue(inside.wait(5))
        self.store.upsert('students', {'name': 'مريم'})
        release.set()
        worker.join(5)

        self.assertEqual(len(errors), 1)
        self.assertEqual(self.store.list('fees'), [])
        self.assertEqual(len(self.store.list('students')), 1)

    def test_rollback_restores_only_locked_collections(self):
        storage = MemoryStorage({'fees': [{'id': 'a'}], 'students': [{'id': 's'}]})
        with self.assertRaises(RuntimeError):
            with storage.atomic(('fees', 'installments')):
                storage.write_collection('fees', [])
                storage.write_collection('installments', [{'id': 'i'}])
                storage.write_collection('students', [])
                raise RuntimeError('boom')

        self.assertEqual(storage.read_collection('fees'), [{'id': 'a'}])
        self.assertEqual(storage.read_collection('installments'), [])
        self.assertEqual(storage.read_collection('students'), [])
