"""Tavus v2 video generation client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from ..utils.errors import ConfigurationError, ServiceError, VendorError

logger = logging.getLogger(__name__)

DEFAULT_REPLICA_ID = 'r7c4f8e8a-b2d1-4c6e-9f0a-1b3c5d7e9f0a'

# Direct media beats the hosted viewer page.
URL_PRIORITY = ('download_url', 'stream_url', 'hosted_url')


@dataclass(frozen=True)
class VideoJob:
    video_id: str
    hosted_url: str = ''


@dataclass(frozen=True)
class VideoStatus:
    status: Optional[str]
    video_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'status': self.status, 'video_url': self.video_url}


def select_video_url(payload: Mapping[str, Any]) -> Optional[str]:
    for key in URL_PRIORITY:
        value = payload.get(key)
        if value:
            return value
    return None


class VideoService:
    BASE_URL = 'https://tavusapi.com'

    def __init__(self, transport: Optional[httpx.BaseTransport] = None, timeout: float = 30.0) -> None:
        self._transport = transport
        self._timeout = timeout

    def _api_key(self) -> str:
        key = os.getenv('TAVUS_API_KEY')
        if not key:
            raise ConfigurationError('Tavus API key not configured')
        return key

    def ensure_configured(self) -> None:
        self._api_key()

    @staticmethod
    def replica_id() -> str:
        return os.getenv('TAVUS_REPLICA_ID') or DEFAULT_REPLICA_ID

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        headers = {'x-api-key': self._api_key(), 'Content-Type': 'application/json'}
        try:
            with httpx.Client(base_url=self.BASE_URL, timeout=self._timeout, transport=self._transport) as client:
                return client.request(method, path, headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise VendorError(f'Tavus request failed: {exc}') from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.reason_phrase
        if isinstance(data, dict):
            return data.get('message') or data.get('error') or response.reason_phrase
        return response.reason_phrase

    def create_video(self, script: str, name: str) -> VideoJob:
        if not script or not script.strip():
            raise ServiceError('Script is missing or empty')

        payload = {
            'replica_id': self.replica_id(),
            'script': script,
            'video_name': f'Weekly Recap for {name}',
            'background_url': '',
        }
        response = self._request('POST', '/v2/videos', json=payload)
        if response.status_code >= 400:
            logger.warning('video.create.failed', extra={'status': response.status_code})
            raise VendorError(f'Video creation failed: {self._error_message(response)}', 500)

        data = response.json()
        video_id = data.get('video_id')
        if not video_id:
            raise VendorError('Video creation failed: No video_id received from Tavus v2 API', 500)
        return VideoJob(video_id=video_id, hosted_url=data.get('hosted_url') or '')

    def get_status(self, video_id: str) -> VideoStatus:
        response = self._request('GET', f'/v2/videos/{video_id}')
        if response.status_code >= 400:
            logger.warning('video.status.failed', extra={'status': response.status_code, 'video_id': video_id})
            raise VendorError(f'Video status check failed: {self._error_message(response)}', 500)

        data = response.json()
        return VideoStatus(status=data.get('status'), video_url=select_video_url(data))
