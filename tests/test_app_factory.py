from __future__ import annotations

import os
from pathlib import Path
from unittest import TestCase
from unittest.mock import patch

from sqlalchemy import inspect

from aicareofyou import _bool_from_env, _resolve_secret_key
from aicareofyou.extensions import db
from aicareofyou.models import TABLES
from support import AppTestCase


class AppFactoryTests(AppTestCase):
    def test_local_backend_creates_every_table(self) -> None:
        self.assertFalse(self.storage.uses_supabase)
        self.assertTrue(Path(self.tmpdir.name, 'test.db').exists())

        table_names = set(inspect(db.engine).get_table_names())
        self.assertTrue(set(TABLES).issubset(table_names))

    def test_blueprints_are_registered(self) -> None:
        self.assertIn('main', self.app.blueprints)
        self.assertIn('functions', self.app.blueprints)
        rules = {rule.rule for rule in self.app.url_map.iter_rules()}
        self.assertIn('/functions/v1/poll-video-status', rules)
        self.assertIn('/api/reflections/count', rules)


class AppConfigHelperTests(TestCase):
    def test_secret_key_prefers_flask_secret_key(self) -> None:
        with patch.dict(os.environ, {'FLASK_SECRET_KEY': 'abc', 'SECRET_KEY': 'legacy'}):
            self.assertEqual('abc', _resolve_secret_key())
        with patch.dict(os.environ, {'FLASK_SECRET_KEY': '', 'SECRET_KEY': ''}):
            self.assertEqual(64, len(_resolve_secret_key()))

    def test_bool_from_env(self) -> None:
        with patch.dict(os.environ, {'FLASK_DEBUG': 'Yes'}):
            self.assertTrue(_bool_from_env('FLASK_DEBUG'))
        with patch.dict(os.environ, {'FLASK_DEBUG': '0'}):
            self.assertFalse(_bool_from_env('FLASK_DEBUG', True))
