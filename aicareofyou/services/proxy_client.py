"""HTTP client for the AiCareOfYou handlers, as used by the recap workflow."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class ProxyClientError(Exception):
    """Raised when a handler call fails or answers with an error body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ProxyClient:
    """Calls the ``/functions/v1`` handlers and the data API with a bearer token."""

    def __init__(
        self,
        base_url: str,
        access_token: str,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = 60.0,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip('/'),
            headers={'Authorization': f'Bearer {access_token}', 'Content-Type': 'application/json'},
            transport=transport,
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> 'ProxyClient':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ProxyClientError(f'Request to {path} failed: {exc}') from exc

        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get('error') if isinstance(body, dict) else None
            except ValueError:
                message = None
            raise ProxyClientError(
                message or f'HTTP {response.status_code}: {response.reason_phrase}',
                response.status_code,
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise ProxyClientError(f'Invalid JSON from {path}') from exc
        if not isinstance(data, dict):
            raise ProxyClientError(f'Expected a JSON object from {path}', response.status_code)
        return data

    def weekly_reflection_count(self) -> int:
        data = self._request('GET', '/api/reflections/count', params={'window': 'weekly'})
        return int(data.get('count') or 0)

    def generate_video_recap(self) -> Dict[str, Any]:
        return self._request('POST', '/functions/v1/generate-video-recap', json={})

    def poll_video_status(self, video_id: str) -> Dict[str, Any]:
        return self._request('POST', '/functions/v1/poll-video-status', json={'video_id': video_id})

    def update_video_url(self, video_url: str, week_start: str, week_end: str) -> Dict[str, Any]:
        return self._request(
            'POST',
            '/functions/v1/update-video-url',
            json={'video_url': video_url, 'week_start': week_start, 'week_end': week_end},
        )
