#!/usr/bin/env python3
"""
Unit tests for the app/repositories and app/services layer.

Run with:
    python -m pytest tests/test_services.py
"""
import datetime
import json
import os
import random
import shutil
import sys
import tempfile
import unittest
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.errors import (
    EmptyPoolError, EntryNotFoundError, ImportParseError,
    SelectionStateError, ValidationError,
)
from app.models import EntryForm
from app.repositories import KeyValueStore, LibraryRepository, STORAGE_KEY
from app.services import LibraryService, SPIN_IDLE, SPIN_SELECTING, transfer_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def make_form(name='Portal 2', description='Co-op puzzles', added_by='Ana', **kwargs):
    return EntryForm(name=name, description=description, added_by=added_by, **kwargs)


class FixedClock:
    """Always reports the same millisecond timestamp."""

    def __init__(self, now: int = 1_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now


class TmpDirMixin(unittest.TestCase):
    """Creates a fresh temp directory for each test and cd's into it."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self._orig = os.getcwd()
        os.chdir(self.tmp)

    def tearDown(self):
        os.chdir(self._orig)
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _path(self, name: str) -> str:
        return os.path.join(self.tmp, name)

    def _empty_store(self, name: str = 'store.json') -> KeyValueStore:
        store = KeyValueStore(self._path(name))
        store.set(STORAGE_KEY, [])
        return store

    def _service(self, store=None, **kwargs) -> LibraryService:
        store = store or self._empty_store()
        kwargs.setdefault('clock', FixedClock())
        kwargs.setdefault('rng', random.Random(0))
        return LibraryService(LibraryRepository(store), **kwargs)


# ===========================================================================
# Repository tests
# ===========================================================================

class TestKeyValueStore(TmpDirMixin):

    def _make(self):
        return KeyValueStore(self._path('kv.json'))

    def test_starts_empty(self):
        self.assertEqual(self._make().data, {})

    def test_set_and_get(self):
        store = self._make()
        store.set('answer', [1, 2])
        self.assertTrue(store.contains('answer'))
        self.assertEqual(store.get('answer'), [1, 2])

    def test_get_missing_returns_default(self):
        self.assertEqual(self._make().get('nope', 'fallback'), 'fallback')

    def test_delete(self):
        store = self._make()
        store.set('k', 1)
        self.assertTrue(store.delete('k'))
        self.assertFalse(store.contains('k'))
        self.assertFalse(store.delete('k'))

    def test_persisted_across_instances(self):
        self._make().set('k', {'nested': True})
        self.assertEqual(self._make().get('k'), {'nested': True})

    def test_corrupt_file_returns_empty(self):
        with open(self._path('kv.json'), 'w') as f:
            f.write('NOT JSON')
        self.assertEqual(self._make().data, {})

    def test_non_object_file_returns_empty(self):
        with open(self._path('kv.json'), 'w') as f:
            json.dump([1, 2, 3], f)
        self.assertEqual(self._make().data, {})


class TestLibraryRepository(TmpDirMixin):

    def test_seeds_sample_games_when_key_absent(self):
        store = KeyValueStore(self._path('store.json'))
        repo = LibraryRepository(store, clock=FixedClock(10_000_000))
        self.assertEqual([e.name for e in repo.data],
                         ['Minecraft', 'Counter-Strike 2', 'Stardew Valley'])
        self.assertEqual([e.created_at for e in repo.data],
                         [7_000_000, 8_200_000, 9_400_000])
        self.assertTrue(repo.data[0].played)

    def test_seed_is_persisted_immediately(self):
        LibraryRepository(KeyValueStore(self._path('store.json')))
        with open(self._path('store.json')) as f:
            saved = json.load(f)
        self.assertEqual(len(saved[STORAGE_KEY]), 3)

    def test_empty_list_is_not_reseeded(self):
        store = self._empty_store()
        self.assertEqual(LibraryRepository(store).data, [])

    def test_unreadable_value_starts_empty_without_overwrite(self):
        store = KeyValueStore(self._path('store.json'))
        store.set(STORAGE_KEY, {'not': 'a list'})
        repo = LibraryRepository(store)
        self.assertEqual(repo.data, [])
        self.assertEqual(KeyValueStore(self._path('store.json')).get(STORAGE_KEY),
                         {'not': 'a list'})

    def test_insert_replace_delete(self):
        repo = LibraryRepository(self._empty_store())
        service_entry = LibraryService(repo, clock=FixedClock()).add(make_form())
        self.assertTrue(repo.contains(service_entry.id))
        self.assertTrue(repo.replace(service_entry.with_played(True)))
        self.assertTrue(repo.find(service_entry.id).played)
        self.assertEqual(repo.delete(service_entry.id).id, service_entry.id)
        self.assertIsNone(repo.delete(service_entry.id))

    def test_persisted_with_wire_names(self):
        store = self._empty_store()
        LibraryService(LibraryRepository(store), clock=FixedClock()).add(
            make_form(max_players='6', available_on_hydra=True))
        saved = KeyValueStore(self._path('store.json')).get(STORAGE_KEY)
        self.assertEqual(saved[0]['maxPlayers'], 6)
        self.assertTrue(saved[0]['availableOnHydra'])
        self.assertEqual(saved[0]['addedBy'], 'Ana')


# ===========================================================================
# LibraryService tests
# ===========================================================================

class TestLibraryServiceMutations(TmpDirMixin):

    def test_add_assigns_id_and_created_at(self):
        svc = self._service()
        entry = svc.add(make_form())
        self.assertTrue(entry.id)
        self.assertEqual(entry.created_at, 1_000_000)
        self.assertEqual(svc.entries, [entry])

    def test_add_inserts_at_front(self):
        svc = self._service()
        first = svc.add(make_form(name='First'))
        second = svc.add(make_form(name='Second'))
        self.assertEqual([e.id for e in svc.entries], [second.id, first.id])

    def test_created_at_strictly_increasing_with_frozen_clock(self):
        svc = self._service()
        stamps = [svc.add(make_form(name=str(i))).created_at for i in range(3)]
        self.assertEqual(stamps, [1_000_000, 1_000_001, 1_000_002])

    def test_ids_unique(self):
        svc = self._service()
        ids = {svc.add(make_form(name=str(i))).id for i in range(20)}
        self.assertEqual(len(ids), 20)

    def test_add_with_empty_name_rejected(self):
        svc = self._service()
        with self.assertRaises(ValidationError) as ctx:
            svc.add(make_form(name='', description='x', added_by='y'))
        self.assertEqual(ctx.exception.fields, ['name'])
        self.assertEqual(svc.entries, [])

    def test_add_defaults_max_players(self):
        svc = self._service()
        self.assertEqual(svc.add(make_form(max_players='')).max_players, 4)
        self.assertEqual(svc.add(make_form(max_players='nope')).max_players, 4)

    def test_edit_replaces_fields_but_not_identity(self):
        svc = self._service()
        entry = svc.add(make_form())
        updated = svc.edit(entry.id, make_form(name='Portal', description='New',
                                               added_by='Bia', max_players=2,
                                               played=True))
        self.assertEqual(updated.id, entry.id)
        self.assertEqual(updated.created_at, entry.created_at)
        self.assertEqual(updated.name, 'Portal')
        self.assertTrue(updated.played)
        self.assertEqual(svc.get(entry.id), updated)

    def test_edit_validation_leaves_entry_untouched(self):
        svc = self._service()
        entry = svc.add(make_form())
        with self.assertRaises(ValidationError):
            svc.edit(entry.id, make_form(added_by=''))
        self.assertEqual(svc.get(entry.id), entry)

    def test_edit_unknown_id(self):
        with self.assertRaises(EntryNotFoundError):
            self._service().edit('missing', make_form())

    def test_toggle_played_flips_only_played(self):
        svc = self._service()
        entry = svc.add(make_form())
        toggled = svc.toggle_played(entry.id)
        self.assertTrue(toggled.played)
        self.assertEqual(toggled.name, entry.name)
        self.assertFalse(svc.toggle_played(entry.id).played)

    def test_delete_removes(self):
        svc = self._service()
        entry = svc.add(make_form())
        self.assertEqual(svc.delete(entry.id).id, entry.id)
        self.assertEqual(svc.entries, [])
        with self.assertRaises(EntryNotFoundError):
            svc.delete(entry.id)

    def test_delete_last_entry_is_persisted(self):
        store = self._empty_store()
        svc = self._service(store)
        svc.delete(svc.add(make_form()).id)
        reloaded = LibraryRepository(KeyValueStore(self._path('store.json')))
        self.assertEqual(reloaded.data, [])

    def test_ordered_rederived_after_toggle(self):
        svc = self._service()
        older = svc.add(make_form(name='Older'))
        newer = svc.add(make_form(name='Newer'))
        self.assertEqual([e.id for e in svc.ordered()], [newer.id, older.id])
        svc.toggle_played(newer.id)
        self.assertEqual([e.id for e in svc.ordered()], [older.id, newer.id])

    def test_stats(self):
        svc = self._service()
        svc.add(make_form(name='a'))
        svc.toggle_played(svc.add(make_form(name='b')).id)
        self.assertEqual(svc.stats(), {'total': 2, 'played': 1, 'unplayed': 1})


class TestLibraryServiceReferences(TmpDirMixin):

    def test_toggle_keeps_selection(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.spin()
        self.assertEqual(svc.selected_id, entry.id)
        svc.toggle_played(entry.id)
        self.assertEqual(svc.selected_id, entry.id)
        self.assertTrue(svc.selected.played)

    def test_delete_selected_clears_selection(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.spin()
        svc.delete(entry.id)
        self.assertIsNone(svc.selected_id)
        self.assertIsNone(svc.selected)

    def test_delete_clears_every_reference_to_the_id(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.spin()
        svc.view(entry.id)
        svc.begin_edit(entry.id)
        svc.delete(entry.id)
        self.assertIsNone(svc.selected_id)
        self.assertIsNone(svc.viewing_id)
        self.assertIsNone(svc.editing_id)

    def test_delete_other_entry_keeps_references(self):
        svc = self._service()
        keep = svc.add(make_form(name='keep'))
        drop = svc.add(make_form(name='drop'))
        svc.view(keep.id)
        svc.delete(drop.id)
        self.assertEqual(svc.viewing_id, keep.id)

    def test_edit_visible_through_references(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.spin()
        svc.view(entry.id)
        svc.edit(entry.id, make_form(name='Renamed'))
        self.assertEqual(svc.selected.name, 'Renamed')
        self.assertEqual(svc.viewing.name, 'Renamed')

    def test_begin_edit_prefills_and_edit_closes(self):
        svc = self._service()
        entry = svc.add(make_form(max_players=3))
        form = svc.begin_edit(entry.id)
        self.assertEqual(form.max_players, 3)
        self.assertEqual(svc.editing, entry)
        form.name = 'Changed'
        svc.edit(entry.id, form)
        self.assertIsNone(svc.editing_id)

    def test_request_and_confirm_delete(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.request_delete(entry.id)
        self.assertEqual(svc.deleting, entry)
        self.assertEqual(svc.confirm_delete().id, entry.id)
        self.assertIsNone(svc.deleting_id)
        self.assertEqual(svc.entries, [])

    def test_cancel_delete(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.request_delete(entry.id)
        svc.cancel_delete()
        self.assertIsNone(svc.confirm_delete())
        self.assertEqual(len(svc.entries), 1)

    def test_view_unknown_id(self):
        with self.assertRaises(EntryNotFoundError):
            self._service().view('missing')


class TestLibraryServiceSpin(TmpDirMixin):

    def test_spin_on_empty_library(self):
        svc = self._service()
        with self.assertRaises(EmptyPoolError):
            svc.spin()
        self.assertEqual(svc.spin_state, SPIN_IDLE)
        self.assertIsNone(svc.selected_id)

    def test_spin_selects_member(self):
        svc = self._service()
        ids = {svc.add(make_form(name=str(i))).id for i in range(5)}
        for _ in range(20):
            self.assertIn(svc.spin().id, ids)
            self.assertIn(svc.selected_id, ids)

    def test_state_machine(self):
        svc = self._service()
        svc.add(make_form())
        self.assertEqual(svc.spin_state, SPIN_IDLE)
        svc.start_spin()
        self.assertEqual(svc.spin_state, SPIN_SELECTING)
        self.assertTrue(svc.is_spinning)
        svc.finish_spin()
        self.assertEqual(svc.spin_state, SPIN_IDLE)

    def test_second_spin_refused_while_selecting(self):
        svc = self._service()
        svc.add(make_form())
        svc.start_spin()
        with self.assertRaises(SelectionStateError):
            svc.start_spin()
        with self.assertRaises(SelectionStateError):
            svc.spin()

    def test_finish_without_start(self):
        with self.assertRaises(SelectionStateError):
            self._service().finish_spin()

    def test_pool_emptied_mid_spin_returns_to_idle(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.start_spin()
        svc.delete(entry.id)
        with self.assertRaises(EmptyPoolError):
            svc.finish_spin()
        self.assertEqual(svc.spin_state, SPIN_IDLE)

    def test_played_games_included_by_default(self):
        svc = self._service()
        entry = svc.add(make_form())
        svc.toggle_played(entry.id)
        self.assertEqual(svc.spin().id, entry.id)

    def test_unplayed_only_spin(self):
        svc = self._service()
        svc.toggle_played(svc.add(make_form(name='done')).id)
        with self.assertRaises(EmptyPoolError):
            svc.spin(exclude_played=True)
        fresh = svc.add(make_form(name='fresh'))
        for _ in range(10):
            self.assertEqual(svc.spin(exclude_played=True).id, fresh.id)

    def test_config_default_excludes_played(self):
        svc = self._service(exclude_played_from_spin=True)
        svc.toggle_played(svc.add(make_form()).id)
        with self.assertRaises(EmptyPoolError):
            svc.spin()

    def test_spin_does_not_mutate_collection(self):
        svc = self._service()
        for i in range(4):
            svc.add(make_form(name=str(i)))
        before = svc.entries
        svc.spin()
        self.assertEqual(svc.entries, before)

    def test_clear_selection(self):
        svc = self._service()
        svc.add(make_form())
        svc.spin()
        svc.clear_selection()
        self.assertIsNone(svc.selected)


# ===========================================================================
# Import / export tests
# ===========================================================================

class TestTransfer(TmpDirMixin):

    def _populated(self) -> LibraryService:
        svc = LibraryService(LibraryRepository(KeyValueStore(self._path('store.json')),
                                               clock=FixedClock(5_000_000)),
                             clock=FixedClock())
        svc.toggle_played(svc.add(make_form(image_url='https://x/img.png')).id)
        return svc

    def test_export_filename(self):
        self.assertEqual(transfer_service.export_filename('repingo-games',
                                                          datetime.date(2025, 4, 2)),
                         'repingo-games-2025-04-02.json')

    def test_export_filename_uses_utc_date(self):
        utc_now = datetime.datetime(2025, 4, 2, 23, 30, tzinfo=datetime.timezone.utc)
        with patch.object(transfer_service, 'datetime') as fake:
            fake.timezone.utc = datetime.timezone.utc
            fake.datetime.now.return_value = utc_now
            name = transfer_service.export_filename('repingo-games')
        fake.datetime.now.assert_called_once_with(datetime.timezone.utc)
        self.assertEqual(name, 'repingo-games-2025-04-02.json')

    def test_default_export_path(self):
        svc = self._populated()
        path = svc.export_to()
        self.assertTrue(path.startswith('repingo-games-'))
        self.assertTrue(os.path.exists(path))

    def test_export_is_json_array(self):
        svc = self._populated()
        svc.export_to(self._path('out.json'))
        with open(self._path('out.json')) as f:
            data = json.load(f)
        self.assertIsInstance(data, list)
        self.assertEqual(len(data), 4)
        self.assertIn('availableOnHydra', data[0])

    def test_round_trip(self):
        svc = self._populated()
        original = svc.entries
        svc.export_to(self._path('out.json'))
        other = self._service(self._empty_store('other.json'))
        self.assertEqual(other.import_from(self._path('out.json')), 4)
        self.assertEqual(other.entries, original)

    def test_text_round_trip(self):
        svc = self._populated()
        original = svc.entries
        svc.import_text(svc.export_text())
        self.assertEqual(svc.entries, original)

    def test_import_replaces_collection(self):
        svc = self._populated()
        doc = json.dumps([{'id': 'new', 'name': 'Only', 'description': 'd',
                           'addedBy': 'z'}])
        svc.import_text(doc)
        self.assertEqual([e.id for e in svc.entries], ['new'])

    def test_malformed_import_leaves_collection_untouched(self):
        svc = self._populated()
        before = svc.entries
        bad_docs = [
            'NOT JSON',
            '{"games": []}',
            '[1, 2]',
            '[{"name": "no id"}]',
            '[{"id": "a", "name": "x"}, {"id": "a", "name": "y"}]',
            '[{"id": "a", "name": "x", "played": "yes"}]',
        ]
        for doc in bad_docs:
            with self.assertRaises(ImportParseError, msg=doc):
                svc.import_text(doc)
            self.assertEqual(svc.entries, before)

    def test_import_missing_file(self):
        svc = self._populated()
        with self.assertRaises(ImportParseError):
            svc.import_from(self._path('does-not-exist.json'))
        self.assertEqual(len(svc.entries), 4)

    def test_import_clears_stale_references(self):
        svc = self._populated()
        svc.spin()
        svc.import_text('[]')
        self.assertIsNone(svc.selected_id)

    def test_import_keeps_references_still_present(self):
        svc = self._populated()
        chosen = svc.spin()
        svc.import_text(svc.export_text())
        self.assertEqual(svc.selected_id, chosen.id)

    def test_import_then_add_gets_later_timestamp(self):
        svc = self._service()
        svc.import_text(json.dumps([{'id': 'f', 'name': 'Future', 'description': 'd',
                                     'addedBy': 'z', 'createdAt': 9_000_000}]))
        entry = svc.add(make_form())
        self.assertGreater(entry.created_at, 9_000_000)
        self.assertEqual(svc.ordered()[0].id, entry.id)


if __name__ == '__main__':
    unittest.main()
