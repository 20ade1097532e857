from __future__ import annotations

import os
from tempfile import TemporaryDirectory
from typing import Dict
from unittest import TestCase
from unittest.mock import patch

from aicareofyou import create_app
from aicareofyou.extensions import db
from aicareofyou.utils.auth import issue_access_token

JWT_SECRET = 'test-jwt-secret-0123456789abcdef0123'

# Blank values keep a developer's real credentials out of the test run.
BASE_ENV = {
    'SUPABASE_URL': '',
    'SUPABASE_PROJECT_URL': '',
    'SUPABASE_SERVICE_ROLE_KEY': '',
    'SUPABASE_ANON_KEY': '',
    'SUPABASE_API_KEY': '',
    'SUPABASE_JWT_SECRET': JWT_SECRET,
    'OPENAI_API_KEY': 'test-openai-key',
    'ELEVENLABS_API_KEY': 'test-elevenlabs-key',
    'TAVUS_API_KEY': 'test-tavus-key',
    'TAVUS_REPLICA_ID': '',
    'CORS_ALLOW_ORIGIN': '*',
}


class AppTestCase(TestCase):
    """Boots the app against a throwaway SQLite database and object store."""

    user_id = 'user-1'

    def setUp(self) -> None:
        self.tmpdir = TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)

        environ = dict(BASE_ENV)
        environ['STORAGE_DATA_DIR'] = self.tmpdir.name
        environ['LOCAL_DATABASE_URI'] = f'sqlite:///{self.tmpdir.name}/test.db'
        env_patch = patch.dict(os.environ, environ, clear=False)
        env_patch.start()
        self.addCleanup(env_patch.stop)

        self.app = create_app()
        self.app.config['TESTING'] = True
        self.client = self.app.test_client()
        self.storage = self.app.storage_service

        self.ctx = self.app.app_context()
        self.ctx.push()
        self.addCleanup(self.ctx.pop)
        self.addCleanup(lambda: db.engine.dispose())
        self.addCleanup(db.session.remove)

    def token(self, user_id: str = None, email: str = 'sam@example.com') -> str:
        return issue_access_token({'id': user_id or self.user_id, 'email': email}, JWT_SECRET)

    def auth_headers(self, user_id: str = None) -> Dict[str, str]:
        return {'Authorization': f'Bearer {self.token(user_id)}'}
