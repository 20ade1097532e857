from __future__ import annotations

import logging
import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from dotenv import load_dotenv
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from supabase import Client as SupabaseClient, create_client
from werkzeug.security import check_password_hash, generate_password_hash
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import TABLES
from ..utils.auth import issue_access_token, jwt_secret
from ..utils.errors import ConfigurationError, NotFoundError, StorageError

load_dotenv()

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]
Ordering = Tuple[str, bool]

_FILTER_OPS = {'eq', 'gte', 'lte', 'ilike', 'not_null'}

# Rows in ``user_profiles`` are keyed by the auth user id itself.
_OWNER_COLUMNS = {'user_profiles': 'id'}

PUBLIC_OBJECT_PREFIX = '/storage/v1/object/public'


class StorageService:
    """Row-level CRUD and object storage over Supabase, with a local fallback.

    When ``SUPABASE_URL`` and a key are configured every call goes to the
    hosted project. Otherwise rows live in the SQLAlchemy database bound to
    the Flask app and uploaded objects are written below ``STORAGE_DATA_DIR``.

    Every write takes the caller's ``user_id`` separately from the row and
    stamps it over whatever the payload carried; updates and deletes are
    always filtered by it as well.
    """

    def __init__(self) -> None:
        self._supabase: Optional[SupabaseClient] = self._init_supabase()

        data_dir = Path(os.getenv('STORAGE_DATA_DIR', '/tmp/aicareofyou-data')).expanduser()
        data_dir.mkdir(parents=True, exist_ok=True)
        self._data_dir = data_dir.resolve()

    @property
    def uses_supabase(self) -> bool:
        return self._supabase is not None

    @property
    def supports_remote_auth(self) -> bool:
        return self._supabase is not None

    # --- Auth ----------------------------------------------------------------

    def sign_up(self, email: str, password: str, name: str) -> Dict[str, Any]:
        if not email or not password:
            raise StorageError('Email and password are required.', 400)

        if self._supabase:
            try:
                response = self._supabase.auth.sign_up(
                    {'email': email, 'password': password, 'options': {'data': {'full_name': name}}}
                )
            except Exception as exc:  # pragma: no cover - network dependent
                raise StorageError(str(exc), 400) from exc
            user = response.user
            if not user:  # pragma: no cover - network dependent
                raise StorageError('Sign up failed.', 400)
            return {'id': user.id, 'email': email, 'full_name': name}

        model = TABLES['user_profiles']
        email_key = email.strip().lower()
        if db.session.query(model).filter(model.email == email_key).first():
            raise StorageError('Account already exists. Please sign in.', 409)
        profile = model(
            email=email_key,
            full_name=name or None,
            goals=[],
            onboarding_completed=False,
            password_hash=generate_password_hash(password),
        )
        db.session.add(profile)
        self._commit()
        return profile.to_dict()

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        """Return a session: ``{'access_token', 'token_type', 'user'}``."""

        if self._supabase:
            try:
                response = self._supabase.auth.sign_in_with_password({'email': email, 'password': password})
            except Exception as exc:  # pragma: no cover - network dependent
                raise StorageError(str(exc), 401) from exc
            session = response.session
            user = response.user
            if not session or not user:  # pragma: no cover - network dependent
                raise StorageError('Invalid credentials.', 401)
            return {
                'access_token': session.access_token,
                'token_type': 'bearer',
                'user': {'id': user.id, 'email': user.email},
            }

        secret = jwt_secret()
        if not secret:
            raise ConfigurationError('SUPABASE_JWT_SECRET is required to issue local sessions.')

        model = TABLES['user_profiles']
        profile = db.session.query(model).filter(model.email == (email or '').strip().lower()).first()
        if not profile or not profile.password_hash or not check_password_hash(profile.password_hash, password or ''):
            raise StorageError('Invalid credentials.', 401)

        user = {'id': profile.id, 'email': profile.email}
        return {
            'access_token': issue_access_token(user, secret),
            'token_type': 'bearer',
            'user': user,
        }

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve a session token through the hosted auth service."""

        if not self._supabase:
            return None
        try:
            response = self._supabase.auth.get_user(access_token)
        except Exception:
            logger.warning('auth.get_user_failed', exc_info=True)
            return None
        user = getattr(response, 'user', None)
        if not user:
            return None
        return {'id': user.id, 'email': getattr(user, 'email', None)}

    # --- Rows ----------------------------------------------------------------

    def select(
        self,
        table: str,
        user_id: str,
        filters: Sequence[Filter] = (),
        order: Sequence[Ordering] = (),
        limit: Optional[int] = None,
        offset: int = 0,
        count: bool = False,
    ) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """Return ``(rows, total)`` owned by ``user_id``.

        ``total`` is the number of matching rows before pagination when
        ``count`` is requested, otherwise ``None``.
        """

        self._check_filters(filters)
        owner = _OWNER_COLUMNS.get(table, 'user_id')

        if self._supabase:
            query = self._supabase.table(table).select('*', count='exact' if count else None)
            query = query.eq(owner, user_id)
            query = self._remote_filters(query, filters)
            for column, desc in order:
                query = query.order(column, desc=desc)
            if limit is not None:
                query = query.range(offset, offset + limit - 1)
            response = self._execute(query, f'{table}.select')
            rows = [row for row in (response.data or []) if isinstance(row, dict)]
            return rows, (response.count if count else None)

        model = self._model(table)
        query = db.session.query(model).filter(getattr(model, owner) == user_id)
        query = self._apply_filters(model, query, filters)
        total = query.count() if count else None
        for column, desc in order:
            attribute = self._column(model, column)
            query = query.order_by(attribute.desc() if desc else attribute.asc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return [row.to_dict() for row in query.all()], total

    def count(self, table: str, user_id: str, filters: Sequence[Filter] = ()) -> int:
        owner = _OWNER_COLUMNS.get(table, 'user_id')
        if self._supabase:
            self._check_filters(filters)
            query = self._supabase.table(table).select('id', count='exact').eq(owner, user_id)
            query = self._remote_filters(query, filters)
            response = self._execute(query.limit(1), f'{table}.count')
            return int(response.count or 0)

        _rows, total = self.select(table, user_id, filters, count=True, limit=0)
        return int(total or 0)

    def get(self, table: str, row_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        rows, _ = self.select(table, user_id, [('id', 'eq', row_id)], limit=1)
        return rows[0] if rows else None

    def insert(self, table: str, row: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        owner = _OWNER_COLUMNS.get(table, 'user_id')
        payload = {key: value for key, value in row.items() if key != 'id' or value}
        payload[owner] = user_id

        if self._supabase:
            response = self._execute(
                self._supabase.table(table).insert(self._remote_row(payload)), f'{table}.insert'
            )
            if not response.data:
                raise StorageError(f'Insert into {table} returned no rows.')
            return response.data[0]

        model = self._model(table)
        record = model(**self._local_row(model, payload))
        db.session.add(record)
        self._commit()
        return record.to_dict()

    def update(self, table: str, row_id: str, values: Dict[str, Any], user_id: str) -> Dict[str, Any]:
        return self.update_where(table, {'id': row_id}, values, user_id)

    def update_where(
        self,
        table: str,
        match: Dict[str, Any],
        values: Dict[str, Any],
        user_id: str,
    ) -> Dict[str, Any]:
        """Update every row matching ``match`` for ``user_id``.

        Returns the most recently created of the updated rows.
        """

        owner = _OWNER_COLUMNS.get(table, 'user_id')
        changes = {key: value for key, value in values.items() if key not in {'id', owner}}

        if self._supabase:
            query = self._supabase.table(table).update(self._remote_row(changes)).eq(owner, user_id)
            for column, value in match.items():
                query = query.eq(column, self._remote_value(value))
            response = self._execute(query, f'{table}.update')
            rows = [row for row in (response.data or []) if isinstance(row, dict)]
            if not rows:
                raise NotFoundError(f'No matching {table} row found.')
            return _newest(rows)

        model = self._model(table)
        query = db.session.query(model).filter(getattr(model, owner) == user_id)
        query = self._apply_filters(model, query, [(column, 'eq', value) for column, value in match.items()])
        records = query.all()
        if not records:
            raise NotFoundError(f'No matching {table} row found.')
        converted = self._local_row(model, changes)
        for record in records:
            for column, value in converted.items():
                setattr(record, column, value)
        self._commit()
        return _newest([record.to_dict() for record in records])

    def delete(self, table: str, row_id: str, user_id: str) -> None:
        self.delete_where(table, {'id': row_id}, user_id, require_match=True)

    def delete_where(
        self,
        table: str,
        match: Dict[str, Any],
        user_id: str,
        require_match: bool = False,
    ) -> int:
        owner = _OWNER_COLUMNS.get(table, 'user_id')

        if self._supabase:
            query = self._supabase.table(table).delete().eq(owner, user_id)
            for column, value in match.items():
                query = query.eq(column, self._remote_value(value))
            response = self._execute(query, f'{table}.delete')
            deleted = len(response.data or [])
        else:
            model = self._model(table)
            query = db.session.query(model).filter(getattr(model, owner) == user_id)
            query = self._apply_filters(model, query, [(column, 'eq', value) for column, value in match.items()])
            records = query.all()
            for record in records:
                db.session.delete(record)
            self._commit()
            deleted = len(records)

        if require_match and not deleted:
            raise NotFoundError(f'No matching {table} row found.')
        return deleted

    # --- Profiles --------------------------------------------------------------

    def fetch_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.get('user_profiles', user_id, user_id)

    def update_profile(self, user_id: str, values: Dict[str, Any]) -> Dict[str, Any]:
        allowed = {key: values[key] for key in ('full_name', 'goals', 'onboarding_completed') if key in values}
        if not allowed:
            raise StorageError('No profile fields to update.', 400)
        if self.fetch_profile(user_id) is None:
            return self.insert('user_profiles', allowed, user_id)
        return self.update('user_profiles', user_id, allowed, user_id)

    # --- Objects -------------------------------------------------------------

    def upload_file(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = 'application/octet-stream',
        upsert: bool = False,
    ) -> str:
        """Store ``data`` at ``bucket/path`` and return its public URL."""

        if not data:
            raise StorageError('No file data provided.', 400)

        safe_path = self._safe_object_path(path)

        if self._supabase:
            try:
                self._supabase.storage.from_(bucket).upload(
                    safe_path,
                    data,
                    {'content-type': content_type, 'cache-control': '3600', 'upsert': 'true' if upsert else 'false'},
                )
                return self._supabase.storage.from_(bucket).get_public_url(safe_path)
            except Exception as exc:
                raise StorageError(f'Storage upload failed: {exc}') from exc

        target = self.object_path(bucket, safe_path)
        if target.exists() and not upsert:
            raise StorageError('Duplicate: the object already exists.', 409)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return f'{PUBLIC_OBJECT_PREFIX}/{bucket}/{safe_path}'

    def object_path(self, bucket: str, path: str) -> Path:
        """Return the local file backing ``bucket/path``."""

        root = (self._data_dir / 'storage' / secure_filename(bucket)).resolve()
        return (root / self._safe_object_path(path)).resolve()

    # --- Private helpers -------------------------------------------------

    def _init_supabase(self) -> Optional[SupabaseClient]:
        url = self._get_env_value('SUPABASE_URL', 'SUPABASE_PROJECT_URL')
        key = self._get_env_value('SUPABASE_SERVICE_ROLE_KEY', 'SUPABASE_ANON_KEY', 'SUPABASE_API_KEY')
        if not url or not key:
            logger.info("Supabase disabled (missing env); using local storage")
            return None
        try:
            return create_client(url, key)
        except Exception as exc:
            logger.warning("Supabase init failed: %s", exc)
            return None

    @staticmethod
    def _get_env_value(*names: str) -> Optional[str]:
        for name in names:
            value = os.getenv(name)
            if value:
                return value
        return None

    @staticmethod
    def _execute(query, operation: str):
        try:
            return query.execute()
        except Exception as exc:
            message = getattr(exc, 'message', None) or str(exc)
            logger.warning('%s.failed', operation, exc_info=True)
            raise StorageError(message) from exc

    @staticmethod
    def _commit() -> None:
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise StorageError(str(exc.orig), 409) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(str(exc)) from exc

    @staticmethod
    def _check_filters(filters: Iterable[Filter]) -> None:
        for _column, op, _value in filters:
            if op not in _FILTER_OPS:
                raise StorageError(f'Unsupported filter operator: {op}', 400)

    @staticmethod
    def _model(table: str):
        model = TABLES.get(table)
        if model is None:
            raise StorageError(f'Unknown table: {table}', 400)
        return model

    @staticmethod
    def _column(model, column: str):
        if column not in model.__table__.columns:
            raise StorageError(f"Column '{column}' does not exist on {model.__tablename__}", 400)
        return getattr(model, column)

    def _apply_filters(self, model, query, filters: Iterable[Filter]):
        for column, op, value in filters:
            attribute = self._column(model, column)
            value = self._coerce(model.__table__.columns[column], value)
            if op == 'eq':
                query = query.filter(attribute == value)
            elif op == 'gte':
                query = query.filter(attribute >= value)
            elif op == 'lte':
                query = query.filter(attribute <= value)
            elif op == 'ilike':
                query = query.filter(attribute.ilike(value))
            elif op == 'not_null':
                query = query.filter(attribute.isnot(None))
        return query

    def _local_row(self, model, row: Dict[str, Any]) -> Dict[str, Any]:
        columns = model.__table__.columns
        converted: Dict[str, Any] = {}
        for key, value in row.items():
            if key not in columns:
                raise StorageError(f"Column '{key}' does not exist on {model.__tablename__}", 400)
            converted[key] = self._coerce(columns[key], value)
        return converted

    @staticmethod
    def _coerce(column, value: Any) -> Any:
        """Turn ISO strings into the Python types SQLAlchemy expects."""

        if value is None or not isinstance(value, str):
            if isinstance(value, datetime):
                return _to_naive_utc(value)
            return value
        if isinstance(column.type, db.DateTime):
            return _to_naive_utc(_parse_datetime(value))
        if isinstance(column.type, db.Date):
            return date.fromisoformat(value[:10])
        return value

    def _remote_filters(self, query, filters: Iterable[Filter]):
        for column, op, value in filters:
            if op == 'not_null':
                query = query.not_.is_(column, 'null')
            else:
                query = getattr(query, op)(column, self._remote_value(value))
        return query

    @staticmethod
    def _remote_value(value: Any) -> Any:
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return value

    def _remote_row(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return {key: self._remote_value(value) for key, value in row.items()}

    @staticmethod
    def _safe_object_path(path: str) -> str:
        parts = [secure_filename(part) for part in str(path).split('/') if part not in {'', '.', '..'}]
        parts = [part for part in parts if part]
        if not parts:
            raise StorageError('Invalid object path.', 400)
        return '/'.join(parts)


def _parse_datetime(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError as exc:
        raise StorageError(f'Invalid timestamp: {value}', 400) from exc


def _to_naive_utc(value: datetime) -> datetime:
    # SQLite drops offsets, so everything is stored as naive UTC.
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.replace(tzinfo=None)


def _newest(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return max(rows, key=lambda row: str(row.get('created_at') or ''))
