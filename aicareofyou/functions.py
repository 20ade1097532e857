"""AI proxy handlers served under ``/functions/v1``.

Each handler authenticates the bearer token, calls a single vendor through
one of the services attached to the app, and answers with a fixed JSON
shape. Failures answer ``{"error", "details"}`` with CORS headers.
"""

from __future__ import annotations

import json
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, Response, current_app, g, jsonify, request
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import HTTPException

from .services import insights, reflections, weekly_recap
from .services.reflections import upload_with_retry
from .services.sentiment import analyze_sentiment
from .services.windows import TIME_FRAMES
from .utils.auth import AuthError, ensure_same_user, require_auth
from .utils.errors import ConfigurationError, InvalidRequestError, NotFoundError, ServiceError

functions_bp = Blueprint('functions', __name__, url_prefix='/functions/v1')

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/webp')
BODY_BUCKET = 'body-analysis'

_IMAGE_EXTENSIONS = {'image/jpeg': 'jpg', 'image/jpg': 'jpg', 'image/png': 'png', 'image/webp': 'webp'}

# endpoint -> (details, status) used when a handler fails
_FAILURES: Dict[str, Tuple[Optional[str], int]] = {
    'analyze_sentiment': (None, 400),
    'transcribe_audio': ('Speech-to-text transcription failed', 400),
    'generate_voice': ('Voice generation failed', 400),
    'analyze_outfit': ('Outfit analysis failed', 400),
    'analyze_body': ('Body analysis failed', 400),
    'generate_ai_recap': ('AI recap generation failed', 400),
    'generate_weekly_recap': (None, 400),
    'generate_video_recap': ('Video recap generation failed', 500),
    'poll_video_status': ('Video status polling failed', 500),
    'update_video_url': ('Video URL update failed', 500),
}


def cors_headers() -> Dict[str, str]:
    return {
        'Access-Control-Allow-Origin': os.environ.get('CORS_ALLOW_ORIGIN', '*'),
        'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
        'Access-Control-Allow-Methods': 'POST, OPTIONS',
    }


@functions_bp.before_request
def _answer_preflight() -> Optional[Response]:
    if request.method == 'OPTIONS':
        return Response('ok', status=200)
    return None


@functions_bp.after_request
def _add_cors_headers(response: Response) -> Response:
    response.headers.update(cors_headers())
    return response


def _failure(exc_message: str) -> Tuple[Response, int]:
    endpoint = (request.endpoint or '').rpartition('.')[2]
    details, status = _FAILURES.get(endpoint, (None, 400))
    body: Dict[str, Any] = {'error': exc_message}
    if details:
        body['details'] = details
    return jsonify(body), status


@functions_bp.errorhandler(AuthError)
def _handle_auth_error(exc: AuthError):
    return jsonify({'error': exc.message}), exc.status_code


@functions_bp.errorhandler(ServiceError)
def _handle_service_error(exc: ServiceError):
    logger.warning('functions.%s.failed', request.endpoint, extra={'reason': exc.message})
    response, status = _failure(exc.message)
    if isinstance(exc, (ConfigurationError, InvalidRequestError, NotFoundError)):
        status = exc.status_code
    return response, status


@functions_bp.errorhandler(Exception)
def _handle_unexpected(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    logger.exception('functions.%s.error', request.endpoint)
    response, _status = _failure(str(exc) or exc.__class__.__name__)
    return response, 500


def _bad_request(message: str) -> Tuple[Response, int]:
    return jsonify({'error': message}), 400


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError('Request body must be a JSON object.')
    return data


def _caller_id(body: Dict[str, Any]) -> str:
    return ensure_same_user(body.get('user_id'), g.user)


def _read_file(field: str, missing: str) -> FileStorage:
    upload = request.files.get(field)
    if upload is None:
        raise ServiceError(missing)
    return upload


@functions_bp.route('/analyze-sentiment', methods=['POST', 'OPTIONS'], endpoint='analyze_sentiment')
@require_auth
def analyze_sentiment_view():
    body = _json_body()
    text = body.get('text')
    if not isinstance(text, str):
        raise ServiceError('text must be a string.')
    return jsonify(analyze_sentiment(text))


@functions_bp.route('/transcribe-audio', methods=['POST', 'OPTIONS'], endpoint='transcribe_audio')
@require_auth
def transcribe_audio():
    upload = _read_file('audio', 'No audio file provided')
    audio = upload.read()
    transcript = current_app.speech_service.transcribe(
        audio,
        filename=upload.filename or 'reflection.wav',
        content_type=upload.mimetype or 'audio/wav',
    )
    logger.info('functions.transcribe_audio.success', extra={'user_id': g.user['id']})
    return jsonify(transcript.to_dict())


@functions_bp.route('/generate-voice', methods=['POST', 'OPTIONS'], endpoint='generate_voice')
@require_auth
def generate_voice():
    body = _json_body()
    user_id = _caller_id(body)
    result = reflections.generate_voice(
        current_app.storage_service,
        current_app.speech_service,
        user_id,
        body.get('text'),
        body.get('voice_id'),
    )
    return jsonify(result)


@functions_bp.route('/analyze-outfit', methods=['POST', 'OPTIONS'], endpoint='analyze_outfit')
@require_auth
def analyze_outfit():
    upload = _read_file('image', 'No image file provided')
    if upload.mimetype not in ALLOWED_IMAGE_TYPES:
        raise ServiceError('Invalid file type. Please upload a JPEG, PNG, or WebP image.')

    critique = current_app.ai_service.analyze_outfit(upload.read(), upload.mimetype)
    current_app.storage_service.insert('style_feedback', critique.to_dict(), g.user['id'])
    logger.info(
        'functions.analyze_outfit.success',
        extra={'user_id': g.user['id'], 'fallback': critique.fallback},
    )
    return jsonify(critique.to_dict())


def _upload_body_photo(storage, user_id: str, label: str, upload: FileStorage, stamp: int) -> str:
    mimetype = upload.mimetype or 'image/jpeg'
    if mimetype not in ALLOWED_IMAGE_TYPES:
        raise ServiceError('Invalid file type. Please upload a JPEG, PNG, or WebP image.')
    path = f'{user_id}/{label}_{stamp}.{_IMAGE_EXTENSIONS[mimetype]}'
    return upload_with_retry(storage, BODY_BUCKET, path, upload.read(), mimetype)


def _body_request(user_id: str) -> Tuple[str, str, Dict[str, Any]]:
    """Resolve photo URLs and preferences from a JSON or multipart body."""

    if request.files:
        front = _read_file('front_image', 'Front and back images are required')
        back = _read_file('back_image', 'Front and back images are required')
        try:
            preferences = json.loads(request.form.get('preferences') or '{}')
        except json.JSONDecodeError as exc:
            raise ServiceError('preferences must be a JSON object.') from exc

        storage = current_app.storage_service
        stamp = int(time.time() * 1000)
        # Both uploads run at once; the critique waits for both URLs.
        with ThreadPoolExecutor(max_workers=2) as pool:
            front_future = pool.submit(_upload_body_photo, storage, user_id, 'front', front, stamp)
            back_future = pool.submit(_upload_body_photo, storage, user_id, 'back', back, stamp)
            front_url, back_url = front_future.result(), back_future.result()
    else:
        body = _json_body()
        ensure_same_user(body.get('user_id'), g.user)
        front_url = body.get('front_image_url')
        back_url = body.get('back_image_url')
        preferences = body.get('preferences') or {}
        if not front_url or not back_url:
            raise ServiceError('Front and back images are required')

    if not isinstance(preferences, dict):
        raise ServiceError('preferences must be a JSON object.')
    return front_url, back_url, preferences


@functions_bp.route('/analyze-body', methods=['POST', 'OPTIONS'], endpoint='analyze_body')
@require_auth
def analyze_body():
    user_id = g.user['id']
    front_url, back_url, preferences = _body_request(user_id)

    critique = current_app.ai_service.analyze_body(front_url, back_url, preferences)
    current_app.storage_service.insert(
        'body_feedback',
        {
            'front_image_url': front_url,
            'back_image_url': back_url,
            'height': str(preferences.get('height') or '') or None,
            'weight': str(preferences.get('weight') or '') or None,
            'preferences': preferences,
            **critique.to_dict(),
        },
        user_id,
    )
    logger.info('functions.analyze_body.success', extra={'user_id': user_id, 'fallback': critique.fallback})
    return jsonify(critique.to_dict())


@functions_bp.route('/generate-ai-recap', methods=['POST', 'OPTIONS'], endpoint='generate_ai_recap')
@require_auth
def generate_ai_recap():
    body = _json_body()
    user_id = _caller_id(body)
    time_frame = body.get('timeFrame')
    if time_frame not in TIME_FRAMES:
        raise ServiceError('Invalid timeFrame. Must be daily, weekly, or monthly.')

    report = insights.generate_insight_report(
        current_app.storage_service,
        current_app.ai_service,
        user_id,
        time_frame,
        body.get('date'),
    )
    return jsonify(report)


@functions_bp.route('/generate-weekly-recap', methods=['POST', 'OPTIONS'], endpoint='generate_weekly_recap')
@require_auth
def generate_weekly_recap():
    body = _json_body()
    user_id = _caller_id(body)
    recap = weekly_recap.create_weekly_recap(
        current_app.storage_service,
        user_id,
        body.get('week_start'),
        body.get('week_end'),
    )
    return jsonify(recap)


@functions_bp.route('/generate-video-recap', methods=['POST', 'OPTIONS'], endpoint='generate_video_recap')
@require_auth
def generate_video_recap():
    body = _json_body()
    user_id = ensure_same_user(body.get('user_id'), g.user)
    result = weekly_recap.start_video_recap(
        current_app.storage_service,
        current_app.ai_service,
        current_app.video_service,
        user_id,
    )
    return jsonify(result)


@functions_bp.route('/poll-video-status', methods=['POST', 'OPTIONS'], endpoint='poll_video_status')
@require_auth
def poll_video_status():
    body = _json_body()
    video_id = body.get('video_id')
    if not video_id or not isinstance(video_id, str):
        return _bad_request('Missing or invalid video_id')

    status = current_app.video_service.get_status(video_id)
    return jsonify(status.to_dict())


@functions_bp.route('/update-video-url', methods=['POST', 'OPTIONS'], endpoint='update_video_url')
@require_auth
def update_video_url():
    body = _json_body()
    user_id = ensure_same_user(body.get('user_id'), g.user)
    video_url = body.get('video_url')
    week_start = body.get('week_start')
    week_end = body.get('week_end')
    if not video_url or not week_start or not week_end:
        return _bad_request('Missing required fields')

    recap = weekly_recap.update_video_url(current_app.storage_service, user_id, video_url, week_start, week_end)
    return jsonify({'success': True, 'recap': recap})
