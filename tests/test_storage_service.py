from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from tempfile import TemporaryDirectory
from types import SimpleNamespace
from unittest import TestCase
from unittest.mock import patch

from aicareofyou.services.storage_service import PUBLIC_OBJECT_PREFIX, StorageService
from aicareofyou.utils.errors import NotFoundError, StorageError
from support import AppTestCase


class StorageServiceLocalRowTests(AppTestCase):
    def _reflection(self, content: str, mood: int, created_at: datetime, user_id: str = None):
        return self.storage.insert(
            'reflections',
            {'content': content, 'mood_score': mood, 'created_at': created_at.isoformat()},
            user_id or self.user_id,
        )

    def test_insert_stamps_the_caller_as_owner(self) -> None:
        row = self.storage.insert('reflections', {'content': 'Hi', 'user_id': 'someone-else'}, self.user_id)

        self.assertEqual(self.user_id, row['user_id'])
        self.assertTrue(row['id'])
        self.assertTrue(row['created_at'].endswith('+00:00'))

    def test_select_filters_orders_and_paginates(self) -> None:
        base = datetime(2024, 6, 10, 8, tzinfo=timezone.utc)
        for offset in range(5):
            self._reflection(f'Entry {offset}', offset + 1, base + timedelta(days=offset))
        self._reflection('Not mine', 9, base, user_id='user-2')

        rows, total = self.storage.select(
            'reflections',
            self.user_id,
            filters=[('created_at', 'gte', '2024-06-11T00:00:00.000Z')],
            order=[('created_at', True)],
            limit=2,
            offset=1,
            count=True,
        )

        self.assertEqual(4, total)
        self.assertEqual(['Entry 3', 'Entry 2'], [row['content'] for row in rows])

    def test_ilike_and_count(self) -> None:
        now = datetime(2024, 6, 12, tzinfo=timezone.utc)
        self._reflection('Went for a Run', 6, now)
        self._reflection('Quiet evening', 5, now)

        self.assertEqual(1, self.storage.count('reflections', self.user_id, [('content', 'ilike', '%run%')]))
        self.assertEqual(2, self.storage.count('reflections', self.user_id))
        self.assertEqual(0, self.storage.count('reflections', 'user-2'))

    def test_update_and_delete_are_scoped_to_owner(self) -> None:
        row = self._reflection('Mine', 5, datetime(2024, 6, 12, tzinfo=timezone.utc))

        with self.assertRaises(NotFoundError):
            self.storage.update('reflections', row['id'], {'content': 'Hijacked'}, 'user-2')
        with self.assertRaises(NotFoundError):
            self.storage.delete('reflections', row['id'], 'user-2')

        updated = self.storage.update('reflections', row['id'], {'content': 'Edited'}, self.user_id)
        self.assertEqual('Edited', updated['content'])

        self.storage.delete('reflections', row['id'], self.user_id)
        self.assertIsNone(self.storage.get('reflections', row['id'], self.user_id))

    def test_update_where_changes_every_match_and_returns_newest(self) -> None:
        older = self._reflection('Older', 4, datetime(2024, 6, 10, tzinfo=timezone.utc))
        newer = self._reflection('Newer', 4, datetime(2024, 6, 11, tzinfo=timezone.utc))
        self._reflection('Different mood', 8, datetime(2024, 6, 12, tzinfo=timezone.utc))

        updated = self.storage.update_where('reflections', {'mood_score': 4}, {'sentiment': 'neutral'}, self.user_id)

        self.assertEqual(newer['id'], updated['id'])
        self.assertEqual('neutral', self.storage.get('reflections', older['id'], self.user_id)['sentiment'])
        self.assertEqual(2, self.storage.count('reflections', self.user_id, [('sentiment', 'eq', 'neutral')]))

    def test_not_null_filter(self) -> None:
        now = datetime(2024, 6, 12, tzinfo=timezone.utc)
        self.storage.insert('reflections', {'content': 'Spoken', 'voice_url': 'https://cdn/a.mp3'}, self.user_id)
        self._reflection('Silent', 5, now)

        rows, _total = self.storage.select('reflections', self.user_id, [('voice_url', 'not_null', None)])

        self.assertEqual(['Spoken'], [row['content'] for row in rows])

    def test_unknown_column_and_operator_are_rejected(self) -> None:
        with self.assertRaises(StorageError) as ctx:
            self.storage.insert('reflections', {'content': 'x', 'colour': 'red'}, self.user_id)
        self.assertEqual(400, ctx.exception.status_code)

        with self.assertRaises(StorageError):
            self.storage.select('reflections', self.user_id, filters=[('content', 'like', 'x')])

    def test_profile_upsert(self) -> None:
        created = self.storage.update_profile(self.user_id, {'full_name': 'Sam Rivers', 'email': 'ignored'})
        self.assertEqual(self.user_id, created['id'])
        self.assertNotIn('password_hash', created)

        updated = self.storage.update_profile(self.user_id, {'onboarding_completed': True})
        self.assertTrue(updated['onboarding_completed'])
        self.assertEqual('Sam Rivers', self.storage.fetch_profile(self.user_id)['full_name'])

    def test_local_sign_up_then_sign_in(self) -> None:
        user = self.storage.sign_up('Sam@Example.com', 'secret1', 'Sam')
        session = self.storage.sign_in('sam@example.com', 'secret1')

        self.assertEqual(user['id'], session['user']['id'])
        self.assertEqual('bearer', session['token_type'])

        with self.assertRaises(StorageError) as ctx:
            self.storage.sign_up('sam@example.com', 'other1', 'Sam')
        self.assertEqual(409, ctx.exception.status_code)

        with self.assertRaises(StorageError) as ctx:
            self.storage.sign_in('sam@example.com', 'wrong')
        self.assertEqual(401, ctx.exception.status_code)


class StorageServiceObjectTests(TestCase):
    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        env = patch.dict(
            os.environ,
            {'STORAGE_DATA_DIR': self.tmpdir.name, 'SUPABASE_URL': '', 'SUPABASE_PROJECT_URL': ''},
            clear=False,
        )
        env.start()
        self.addCleanup(env.stop)
        self.service = StorageService()

    def test_upload_writes_file_and_returns_public_url(self) -> None:
        url = self.service.upload_file('voice-reflections', 'user-1/reflection_1.mp3', b'ID3', 'audio/mpeg')

        self.assertEqual(f'{PUBLIC_OBJECT_PREFIX}/voice-reflections/user-1/reflection_1.mp3', url)
        self.assertEqual(b'ID3', self.service.object_path('voice-reflections', 'user-1/reflection_1.mp3').read_bytes())

    def test_duplicate_upload_conflicts_unless_upsert(self) -> None:
        self.service.upload_file('body-analysis', 'u/front.jpg', b'one')

        with self.assertRaises(StorageError) as ctx:
            self.service.upload_file('body-analysis', 'u/front.jpg', b'two')
        self.assertEqual(409, ctx.exception.status_code)

        self.service.upload_file('body-analysis', 'u/front.jpg', b'two', upsert=True)
        self.assertEqual(b'two', self.service.object_path('body-analysis', 'u/front.jpg').read_bytes())

    def test_path_traversal_is_neutralised(self) -> None:
        url = self.service.upload_file('bucket', '../../etc/passwd', b'x')

        self.assertEqual(f'{PUBLIC_OBJECT_PREFIX}/bucket/etc/passwd', url)
        self.assertTrue(
            str(self.service.object_path('bucket', 'etc/passwd')).startswith(str(self.service._data_dir))
        )

    def test_empty_upload_is_rejected(self) -> None:
        with self.assertRaises(StorageError):
            self.service.upload_file('bucket', 'a.bin', b'')


class _FakeQuery:
    def __init__(self, calls, response):
        self.calls = calls
        self.response = response

    def __getattr__(self, name):
        def method(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return method

    @property
    def not_(self):
        self.calls.append(('not_', (), {}))
        return self

    def execute(self):
        return self.response


class StorageServiceSupabaseTests(TestCase):
    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        env = patch.dict(
            os.environ,
            {'STORAGE_DATA_DIR': self.tmpdir.name, 'SUPABASE_URL': '', 'SUPABASE_PROJECT_URL': ''},
            clear=False,
        )
        env.start()
        self.addCleanup(env.stop)
        self.service = StorageService()
        self.calls = []
        self.tables = []

    def _use(self, response) -> None:
        def table(name):
            self.tables.append(name)
            return _FakeQuery(self.calls, response)

        self.service._supabase = SimpleNamespace(table=table)

    def test_select_builds_owner_scoped_query(self) -> None:
        self._use(SimpleNamespace(data=[{'id': 'r1'}], count=7))

        rows, total = self.service.select(
            'reflections',
            'user-1',
            filters=[('mood_score', 'gte', 8)],
            order=[('created_at', True)],
            limit=10,
            offset=20,
            count=True,
        )

        self.assertEqual(([{'id': 'r1'}], 7), (rows, total))
        self.assertEqual(['reflections'], self.tables)
        self.assertEqual(
            [
                ('select', ('*',), {'count': 'exact'}),
                ('eq', ('user_id', 'user-1'), {}),
                ('gte', ('mood_score', 8), {}),
                ('order', ('created_at',), {'desc': True}),
                ('range', (20, 29), {}),
            ],
            self.calls,
        )

    def test_profile_rows_are_owned_by_id(self) -> None:
        self._use(SimpleNamespace(data=[{'id': 'user-1', 'full_name': 'Sam'}], count=None))

        self.service.insert('user_profiles', {'full_name': 'Sam'}, 'user-1')

        name, args, _kwargs = self.calls[0]
        self.assertEqual('insert', name)
        self.assertEqual({'full_name': 'Sam', 'id': 'user-1'}, args[0])

    def test_update_without_match_is_not_found(self) -> None:
        self._use(SimpleNamespace(data=[], count=None))

        with self.assertRaises(NotFoundError):
            self.service.update_where('weekly_recaps', {'week_start': 'a'}, {'video_url': 'u'}, 'user-1')

    def test_execute_errors_become_storage_errors(self) -> None:
        class _Boom(_FakeQuery):
            def execute(self):
                raise RuntimeError('relation does not exist')

        self.service._supabase = SimpleNamespace(table=lambda name: _Boom([], None))

        with self.assertRaises(StorageError) as ctx:
            self.service.count('reflections', 'user-1')
        self.assertEqual('relation does not exist', ctx.exception.message)

    def test_not_null_filter_uses_negated_is(self) -> None:
        self._use(SimpleNamespace(data=[], count=0))

        self.service.select('reflections', 'user-1', filters=[('voice_url', 'not_null', None)])

        self.assertIn(('not_', (), {}), self.calls)
        self.assertIn(('is_', ('voice_url', 'null'), {}), self.calls)

    def test_update_returns_newest_updated_row(self) -> None:
        rows = [
            {'id': 'r1', 'created_at': '2024-06-10T08:00:00+00:00'},
            {'id': 'r2', 'created_at': '2024-06-11T08:00:00+00:00'},
        ]
        self._use(SimpleNamespace(data=rows, count=None))

        updated = self.service.update_where(
            'weekly_recaps', {'week_start': 'a', 'week_end': 'b'}, {'video_url': 'u'}, 'user-1'
        )

        self.assertEqual('r2', updated['id'])
        self.assertEqual(('update', ({'video_url': 'u'},), {}), self.calls[0])
