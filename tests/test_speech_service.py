from __future__ import annotations

import os
from unittest import TestCase
from unittest.mock import patch

import httpx

from aicareofyou.services.speech_service import DEFAULT_VOICE_ID, MAX_TEXT_LENGTH, SpeechService
from aicareofyou.utils.errors import ConfigurationError, ServiceError, VendorError


class SpeechServiceTests(TestCase):
    def setUp(self) -> None:
        env = patch.dict(os.environ, {'ELEVENLABS_API_KEY': 'eleven-key'})
        env.start()
        self.addCleanup(env.stop)
        self.requests = []

    def _service(self, response: httpx.Response) -> SpeechService:
        def handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return response

        return SpeechService(transport=httpx.MockTransport(handler))

    def test_synthesize_returns_audio_bytes(self) -> None:
        service = self._service(httpx.Response(200, content=b'ID3audio'))

        audio = service.synthesize('Good evening')

        self.assertEqual(b'ID3audio', audio)
        request = self.requests[0]
        self.assertEqual(f'/v1/text-to-speech/{DEFAULT_VOICE_ID}', request.url.path)
        self.assertEqual('eleven-key', request.headers['xi-api-key'])

    def test_rate_limit_has_a_friendly_message(self) -> None:
        service = self._service(httpx.Response(429, text='slow down'))

        with self.assertRaises(VendorError) as ctx:
            service.synthesize('Hello')
        self.assertEqual('ElevenLabs API rate limit exceeded - please try again later', ctx.exception.message)

    def test_empty_audio_is_rejected(self) -> None:
        service = self._service(httpx.Response(200, content=b''))

        with self.assertRaises(VendorError) as ctx:
            service.synthesize('Hello')
        self.assertEqual('Received empty audio buffer from ElevenLabs', ctx.exception.message)

    def test_text_validation_happens_before_any_request(self) -> None:
        service = self._service(httpx.Response(200, content=b'x'))

        with self.assertRaises(ServiceError) as ctx:
            service.synthesize('   ')
        self.assertEqual('Text is required and cannot be empty', ctx.exception.message)

        with self.assertRaises(ServiceError) as ctx:
            service.synthesize('a' * (MAX_TEXT_LENGTH + 1))
        self.assertEqual('Text too long. Maximum 5000 characters allowed.', ctx.exception.message)
        self.assertEqual([], self.requests)

    def test_transcribe_defaults_confidence(self) -> None:
        service = self._service(httpx.Response(200, json={'text': 'I felt calm today'}))

        transcript = service.transcribe(b'RIFF....', 'note.wav', 'audio/wav')

        self.assertEqual({'text': 'I felt calm today', 'confidence': 0.5}, transcript.to_dict())
        self.assertEqual('/v1/speech-to-text', self.requests[0].url.path)

    def test_missing_key(self) -> None:
        with patch.dict(os.environ, {'ELEVENLABS_API_KEY': ''}):
            with self.assertRaises(ConfigurationError) as ctx:
                SpeechService().synthesize('Hello')
        self.assertEqual('ElevenLabs API key not configured', ctx.exception.message)
