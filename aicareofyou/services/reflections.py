"""Reflection submission and voice synthesis."""

from __future__ import annotations

import logging
import math
import time
from typing import Any, Dict, Optional

from ..utils.errors import ServiceError, StorageError
from ..utils.retry import retry
from .sentiment import analyze_sentiment

logger = logging.getLogger(__name__)

VOICE_BUCKET = 'voice-reflections'
UPLOAD_ATTEMPTS = 3
UPLOAD_BACKOFF_SECONDS = 1.0

REFLECTION_SORTS = {
    'newest': [('created_at', True)],
    'oldest': [('created_at', False)],
    'highest-mood': [('mood_score', True), ('created_at', True)],
    'lowest-mood': [('mood_score', False), ('created_at', True)],
}

MOOD_BANDS = {
    'very-low': (1, 3),
    'neutral': (4, 6),
    'positive': (7, 10),
}


def upload_with_retry(storage, bucket: str, path: str, data: bytes, content_type: str, sleep=time.sleep) -> str:
    """Upload an object, retrying storage failures with linear back-off."""

    @retry(
        max_attempts=UPLOAD_ATTEMPTS,
        backoff_seconds=UPLOAD_BACKOFF_SECONDS,
        retryable_exceptions=(StorageError,),
        sleep=sleep,
    )
    def _upload() -> str:
        return storage.upload_file(bucket, path, data, content_type=content_type)

    return _upload()


def generate_voice(
    storage,
    speech_service,
    user_id: str,
    text: str,
    voice_id: Optional[str] = None,
    sleep=time.sleep,
) -> Dict[str, Any]:
    """Synthesize ``text`` and publish the MP3 under the caller's folder.

    Only the storage write is retried; a vendor failure propagates at once.
    """

    audio = speech_service.synthesize(text, voice_id)
    path = f'{user_id}/reflection_{int(time.time() * 1000)}.mp3'
    voice_url = upload_with_retry(storage, VOICE_BUCKET, path, audio, 'audio/mpeg', sleep=sleep)
    if not voice_url or VOICE_BUCKET not in voice_url:
        raise StorageError('Failed to generate valid public URL for audio file')

    logger.info('voice.generate.success', extra={'user_id': user_id, 'bytes': len(audio)})
    return {
        'voice_url': voice_url,
        'message': 'Voice generation and upload completed successfully',
        'file_size': len(audio),
        'duration_estimate': math.ceil(len(text) / 15),
        'user_id': user_id,
    }


def _mood_score(value: Any) -> int:
    message = 'mood_score must be a whole number between 1 and 10.'
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ServiceError(message)
    if isinstance(value, str):
        value = value.strip()
    try:
        score = int(value)
    except (TypeError, ValueError) as exc:
        raise ServiceError(message) from exc
    if not 1 <= score <= 10:
        raise ServiceError(message)
    return score


def submit_reflection(
    storage,
    speech_service,
    user_id: str,
    content: str,
    mood_score: Any,
    with_voice: bool = False,
    voice_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Tag, optionally voice, and store one reflection.

    A failed voice synthesis is logged and the reflection is saved without
    a voice URL.
    """

    text = (content or '').strip()
    if not text:
        raise ServiceError('Reflection content is required.')
    score = _mood_score(mood_score)

    sentiment = analyze_sentiment(text)['sentiment']

    voice_url = None
    if with_voice:
        try:
            voice_url = generate_voice(storage, speech_service, user_id, text, voice_id)['voice_url']
        except ServiceError:
            logger.warning('reflections.voice.failed', extra={'user_id': user_id}, exc_info=True)

    row = storage.insert(
        'reflections',
        {'content': text, 'mood_score': score, 'sentiment': sentiment, 'voice_url': voice_url},
        user_id,
    )
    logger.info('reflections.create.success', extra={'user_id': user_id})
    return row


def reflection_filters(args) -> list:
    """Translate history query parameters into storage filters."""

    filters = []
    search = (args.get('search') or '').strip()
    if search:
        filters.append(('content', 'ilike', f'%{search}%'))
    if args.get('startDate'):
        filters.append(('created_at', 'gte', f"{args['startDate']}T00:00:00"))
    if args.get('endDate'):
        filters.append(('created_at', 'lte', f"{args['endDate']}T23:59:59"))
    band = MOOD_BANDS.get(args.get('mood') or '')
    if band:
        filters.append(('mood_score', 'gte', band[0]))
        filters.append(('mood_score', 'lte', band[1]))
    sentiment = args.get('sentiment')
    if sentiment and sentiment != 'all':
        filters.append(('sentiment', 'eq', sentiment))
    if (args.get('has_voice') or '').lower() in ('1', 'true', 'yes'):
        filters.append(('voice_url', 'not_null', None))
    return filters
