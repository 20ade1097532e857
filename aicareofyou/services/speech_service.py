"""ElevenLabs speech-to-text and text-to-speech client."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..utils.errors import ConfigurationError, ServiceError, VendorError

logger = logging.getLogger(__name__)

DEFAULT_VOICE_ID = '21m00Tcm4TlvDq8ikWAM'
MAX_TEXT_LENGTH = 5000

_STATUS_MESSAGES = {
    401: 'ElevenLabs API authentication failed - please check API key',
    422: 'Invalid voice settings or text content',
    429: 'ElevenLabs API rate limit exceeded - please try again later',
}


@dataclass
class Transcript:
    text: str
    confidence: float = 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'confidence': self.confidence}


class SpeechService:
    """Client for the ElevenLabs REST API.

    ``transport`` lets tests plug in an ``httpx.MockTransport``.
    """

    BASE_URL = 'https://api.elevenlabs.io'

    def __init__(self, transport: Optional[httpx.BaseTransport] = None, timeout: float = 60.0) -> None:
        self._transport = transport
        self._timeout = timeout

    def _api_key(self) -> str:
        key = os.getenv('ELEVENLABS_API_KEY')
        if not key:
            raise ConfigurationError('ElevenLabs API key not configured')
        return key

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.BASE_URL, timeout=self._timeout, transport=self._transport)

    def transcribe(self, audio: bytes, filename: str = 'reflection.wav', content_type: str = 'audio/wav') -> Transcript:
        api_key = self._api_key()
        if not audio:
            raise ServiceError('Empty audio buffer')

        try:
            with self._client() as client:
                response = client.post(
                    '/v1/speech-to-text',
                    headers={'xi-api-key': api_key},
                    files={'file': (filename, audio, content_type)},
                    data={'model_id': 'scribe_v1'},
                )
        except httpx.HTTPError as exc:
            raise VendorError(f'ElevenLabs request failed: {exc}') from exc

        if response.status_code >= 400:
            logger.warning('speech.transcribe.failed', extra={'status': response.status_code})
            raise VendorError(
                f'ElevenLabs API error: {response.status_code} {response.reason_phrase} - {response.text}'
            )

        result = response.json()
        return Transcript(text=result.get('text') or '', confidence=result.get('confidence') or 0.5)

    def synthesize(self, text: str, voice_id: Optional[str] = None) -> bytes:
        """Return MP3 audio for ``text``."""

        if not isinstance(text, str) or not text.strip():
            raise ServiceError('Text is required and cannot be empty')
        if len(text) > MAX_TEXT_LENGTH:
            raise ServiceError(f'Text too long. Maximum {MAX_TEXT_LENGTH} characters allowed.')
        api_key = self._api_key()

        payload = {
            'text': text,
            'model_id': 'eleven_turbo_v2',
            'voice_settings': {
                'stability': 0.5,
                'similarity_boost': 0.5,
                'style': 0.0,
                'use_speaker_boost': True,
            },
        }
        try:
            with self._client() as client:
                response = client.post(
                    f'/v1/text-to-speech/{voice_id or DEFAULT_VOICE_ID}',
                    headers={'Accept': 'audio/mpeg', 'xi-api-key': api_key},
                    json=payload,
                )
        except httpx.HTTPError as exc:
            raise VendorError(f'ElevenLabs request failed: {exc}') from exc

        if response.status_code >= 400:
            logger.warning('speech.synthesize.failed', extra={'status': response.status_code})
            message = _STATUS_MESSAGES.get(response.status_code)
            raise VendorError(message or f'ElevenLabs API error ({response.status_code}): {response.text}')

        if not response.content:
            raise VendorError('Received empty audio buffer from ElevenLabs')
        return response.content
