"""Authentication helpers for the AiCareOfYou APIs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import current_app, g, request

ACCESS_TOKEN_TTL = timedelta(hours=1)


@dataclass
class AuthError(Exception):
    """Raised when a bearer token is missing or cannot be verified."""

    message: str
    status_code: int = 401

    def __str__(self) -> str:  # pragma: no cover - dataclass convenience
        return self.message


def extract_bearer_token(header: Optional[str]) -> str:
    """Return the token from an ``Authorization`` header value.

    Raises
    ------
    AuthError
        If the header is absent or does not carry a bearer token.
    """

    if not header:
        raise AuthError("Missing Authorization header.")

    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        raise AuthError("Authorization header must use the Bearer scheme.")
    return token.strip()


def decode_access_token(token: str, secret: str) -> Dict[str, Any]:
    """Validate and decode a session JWT issued by the auth backend.

    Parameters
    ----------
    token:
        The encoded JWT string sent in the ``Authorization`` header.
    secret:
        The project's JWT secret (``SUPABASE_JWT_SECRET``).

    Returns
    -------
    dict
        The decoded token payload. ``sub`` holds the user id.

    Raises
    ------
    AuthError
        If the token is missing, invalid or expired.
    """

    if not token:
        raise AuthError("Authorization token missing.")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            options={"require": ["exp", "sub"], "verify_aud": False},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Authorization token has expired.") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Authorization token is invalid.") from exc

    return payload


def issue_access_token(user: Dict[str, Any], secret: str, ttl: timedelta = ACCESS_TOKEN_TTL) -> str:
    """Mint a session JWT shaped like the ones the hosted auth service issues."""

    now = datetime.now(timezone.utc)
    payload = {
        'sub': user['id'],
        'email': user.get('email'),
        'aud': 'authenticated',
        'role': 'authenticated',
        'iat': int(now.timestamp()),
        'exp': int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm='HS256')


def jwt_secret() -> Optional[str]:
    return os.environ.get('SUPABASE_JWT_SECRET') or None


def authenticate_request() -> Dict[str, Any]:
    """Resolve the caller of the current request into ``{'id', 'email', 'token'}``."""

    token = extract_bearer_token(request.headers.get('Authorization'))

    secret = jwt_secret()
    if secret:
        payload = decode_access_token(token, secret)
        return {'id': str(payload['sub']), 'email': payload.get('email'), 'token': token}

    storage = getattr(current_app, 'storage_service', None)
    if storage is None or not storage.supports_remote_auth:
        raise AuthError("Authentication is not configured on this server.", 503)

    user = storage.get_user(token)
    if not user:
        raise AuthError("Authentication failed. Please sign in again.")
    return {'id': user['id'], 'email': user.get('email'), 'token': token}


def require_auth(view):
    """Decorator rejecting requests without a valid bearer token.

    The resolved caller is stored on ``flask.g.user``.
    """

    @wraps(view)
    def wrapped(*args, **kwargs):
        g.user = authenticate_request()
        return view(*args, **kwargs)

    return wrapped


def ensure_same_user(claimed_user_id: Optional[str], user: Dict[str, Any]) -> str:
    """Return the caller's id, rejecting bodies that name somebody else."""

    if claimed_user_id and str(claimed_user_id) != user['id']:
        raise AuthError('Session mismatch', 403)
    return user['id']
