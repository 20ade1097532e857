from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from typing import Any, Dict, List, Tuple

from flask import Blueprint, Response, abort, current_app, g, jsonify, request, send_file

from .services import habits as habit_stats
from .services.plan_parser import parse_body_plan
from .services.reflections import REFLECTION_SORTS, reflection_filters, submit_reflection
from .services.windows import TIME_FRAMES, calculate_date_range, iso_timestamp, utcnow
from .utils.auth import AuthError, require_auth
from .utils.errors import ServiceError

main_bp = Blueprint('main', __name__)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
HABIT_FREQUENCIES = ('daily', 'weekly')


@main_bp.errorhandler(AuthError)
def _handle_auth_error(exc: AuthError):
    return jsonify({'error': exc.message}), exc.status_code


@main_bp.errorhandler(ServiceError)
def _handle_service_error(exc: ServiceError):
    body: Dict[str, Any] = {'error': exc.message}
    if exc.details:
        body['details'] = exc.details
    return jsonify(body), exc.status_code


def _today() -> date:
    return utcnow().date()


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ServiceError('Request body must be a JSON object.')
    return data


def _int_arg(name: str, default: int, minimum: int = 1, maximum: int = MAX_PAGE_SIZE) -> int:
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ServiceError(f'{name} must be an integer.') from exc
    return max(minimum, min(maximum, value))


# --- Auth ----------------------------------------------------------------


@main_bp.route('/api/auth/sign-up', methods=['POST'])
def sign_up() -> Tuple[Response, int]:
    body = _json_body()
    email = (body.get('email') or '').strip()
    password = body.get('password') or ''
    full_name = (body.get('full_name') or '').strip()
    if len(password) < 6:
        raise ServiceError('Password must be at least 6 characters.')

    user = current_app.storage_service.sign_up(email, password, full_name)
    logger.info('auth.sign_up.success', extra={'user_id': user['id']})
    return jsonify({'user': user}), 201


@main_bp.route('/api/auth/sign-in', methods=['POST'])
def sign_in() -> Response:
    body = _json_body()
    session = current_app.storage_service.sign_in((body.get('email') or '').strip(), body.get('password') or '')
    logger.info('auth.sign_in.success', extra={'user_id': session['user']['id']})
    return jsonify(session)


# --- Profile -------------------------------------------------------------


@main_bp.route('/api/profile', methods=['GET'])
@require_auth
def get_profile() -> Response:
    profile = current_app.storage_service.fetch_profile(g.user['id'])
    if profile is None:
        profile = {'id': g.user['id'], 'full_name': None, 'goals': [], 'onboarding_completed': False}
    return jsonify(profile)


@main_bp.route('/api/profile', methods=['PATCH'])
@require_auth
def update_profile() -> Response:
    body = _json_body()
    if 'full_name' in body:
        name = (body.get('full_name') or '').strip()
        if not name:
            raise ServiceError('Please provide a display name before saving.')
        body['full_name'] = name
    if 'goals' in body and not isinstance(body['goals'], list):
        raise ServiceError('goals must be a list.')

    profile = current_app.storage_service.update_profile(g.user['id'], body)
    logger.info('profile.update.success', extra={'user_id': g.user['id']})
    return jsonify(profile)


# --- Reflections ---------------------------------------------------------


@main_bp.route('/api/reflections', methods=['GET'])
@require_auth
def list_reflections() -> Response:
    sort = request.args.get('sort') or 'newest'
    if sort not in REFLECTION_SORTS:
        raise ServiceError(f'Unknown sort order: {sort}')
    page = _int_arg('page', 1, maximum=10_000)
    per_page = _int_arg('per_page', DEFAULT_PAGE_SIZE)

    rows, total = current_app.storage_service.select(
        'reflections',
        g.user['id'],
        filters=reflection_filters(request.args),
        order=REFLECTION_SORTS[sort],
        limit=per_page,
        offset=(page - 1) * per_page,
        count=True,
    )
    return jsonify({'reflections': rows, 'total': total or 0, 'page': page, 'per_page': per_page})


@main_bp.route('/api/reflections', methods=['POST'])
@require_auth
def create_reflection() -> Tuple[Response, int]:
    body = _json_body()
    row = submit_reflection(
        current_app.storage_service,
        current_app.speech_service,
        g.user['id'],
        body.get('content'),
        body.get('mood_score'),
        with_voice=bool(body.get('with_voice')),
        voice_id=body.get('voice_id'),
    )
    return jsonify(row), 201


@main_bp.route('/api/reflections/count', methods=['GET'])
@require_auth
def count_reflections() -> Response:
    window_name = request.args.get('window')
    filters = []
    if window_name:
        if window_name not in TIME_FRAMES:
            raise ServiceError('Invalid window. Must be daily, weekly, or monthly.')
        window = calculate_date_range(window_name)
        filters = [
            ('created_at', 'gte', iso_timestamp(window.start)),
            ('created_at', 'lte', iso_timestamp(window.end)),
        ]
    count = current_app.storage_service.count('reflections', g.user['id'], filters)
    return jsonify({'count': count, 'window': window_name})


@main_bp.route('/api/reflections/<reflection_id>', methods=['DELETE'])
@require_auth
def delete_reflection(reflection_id: str) -> Tuple[str, int]:
    current_app.storage_service.delete('reflections', reflection_id, g.user['id'])
    logger.info('reflections.delete.success', extra={'user_id': g.user['id']})
    return '', 204


# --- Habits --------------------------------------------------------------


def _completions_by_habit(user_id: str) -> Dict[str, List[str]]:
    rows, _ = current_app.storage_service.select('habit_completions', user_id)
    grouped: Dict[str, List[str]] = defaultdict(list)
    for row in rows:
        grouped[row['habit_id']].append(row['completed_at'])
    return grouped


@main_bp.route('/api/habits', methods=['GET'])
@require_auth
def list_habits() -> Response:
    user_id = g.user['id']
    today = _today()
    rows, _ = current_app.storage_service.select('habits', user_id, order=[('created_at', False)])
    completions = _completions_by_habit(user_id)
    return jsonify([habit_stats.habit_summary(row, completions.get(row['id'], []), today) for row in rows])


@main_bp.route('/api/habits', methods=['POST'])
@require_auth
def create_habit() -> Tuple[Response, int]:
    body = _json_body()
    name = (body.get('name') or '').strip()
    if not name:
        raise ServiceError('Habit name is required.')
    frequency = body.get('target_frequency') or 'daily'
    if frequency not in HABIT_FREQUENCIES:
        raise ServiceError('target_frequency must be daily or weekly.')

    row = {'name': name, 'description': (body.get('description') or '').strip() or None, 'target_frequency': frequency}
    if body.get('color'):
        row['color'] = body['color']
    habit = current_app.storage_service.insert('habits', row, g.user['id'])
    logger.info('habits.create.success', extra={'user_id': g.user['id']})
    return jsonify(habit_stats.habit_summary(habit, [], _today())), 201


@main_bp.route('/api/habits/<habit_id>/toggle', methods=['POST'])
@require_auth
def toggle_habit(habit_id: str) -> Response:
    """Mark today's completion on or off for a habit."""

    storage = current_app.storage_service
    user_id = g.user['id']
    habit = storage.get('habits', habit_id, user_id)
    if habit is None:
        abort(404)

    today = _today()
    match = {'habit_id': habit_id, 'completed_at': today.isoformat()}
    existing, _ = storage.select('habit_completions', user_id, [(key, 'eq', value) for key, value in match.items()])
    if existing:
        storage.delete_where('habit_completions', match, user_id)
        completed = False
    else:
        storage.insert('habit_completions', match, user_id)
        completed = True

    completions = _completions_by_habit(user_id).get(habit_id, [])
    summary = habit_stats.habit_summary(habit, completions, today)
    logger.info('habits.toggle.success', extra={'user_id': user_id, 'completed': completed})
    return jsonify({'completed': completed, 'habit': summary})


@main_bp.route('/api/habits/<habit_id>', methods=['DELETE'])
@require_auth
def delete_habit(habit_id: str) -> Tuple[str, int]:
    storage = current_app.storage_service
    storage.delete('habits', habit_id, g.user['id'])
    storage.delete_where('habit_completions', {'habit_id': habit_id}, g.user['id'])
    return '', 204


@main_bp.route('/api/achievements', methods=['GET'])
@require_auth
def achievements() -> Response:
    storage = current_app.storage_service
    user_id = g.user['id']
    reflection_count = storage.count('reflections', user_id)
    habit_rows, _ = storage.select('habits', user_id)
    completions = _completions_by_habit(user_id)
    best = max((habit_stats.longest_streak(dates) for dates in completions.values()), default=0)
    return jsonify(
        {
            'achievements': habit_stats.build_achievements(reflection_count, len(habit_rows), best),
            'stats': {'reflections': reflection_count, 'habits': len(habit_rows), 'longest_streak': best},
        }
    )


# --- Generated content ---------------------------------------------------


def _newest(table: str, filters=()) -> List[Dict[str, Any]]:
    limit = _int_arg('limit', 20)
    rows, _ = current_app.storage_service.select(
        table, g.user['id'], filters=list(filters), order=[('created_at', True)], limit=limit
    )
    return rows


@main_bp.route('/api/insight-reports', methods=['GET'])
@require_auth
def list_insight_reports() -> Response:
    report_type = request.args.get('type')
    filters = [('report_type', 'eq', report_type)] if report_type else []
    return jsonify(_newest('insight_reports', filters))


@main_bp.route('/api/style-feedback', methods=['GET'])
@require_auth
def list_style_feedback() -> Response:
    return jsonify(_newest('style_feedback'))


@main_bp.route('/api/body-feedback', methods=['GET'])
@require_auth
def list_body_feedback() -> Response:
    rows = _newest('body_feedback')
    for row in rows:
        row['plan'] = parse_body_plan(row.get('workout_plan'), row.get('nutrition_advice'))
    return jsonify(rows)


@main_bp.route('/api/weekly-recaps', methods=['GET'])
@require_auth
def list_weekly_recaps() -> Response:
    rows, _ = current_app.storage_service.select('weekly_recaps', g.user['id'], order=[('week_start', True)])
    return jsonify(rows)


_DELETABLE = {
    'insight-reports': 'insight_reports',
    'style-feedback': 'style_feedback',
    'body-feedback': 'body_feedback',
    'weekly-recaps': 'weekly_recaps',
}


@main_bp.route('/api/<collection>/<row_id>', methods=['DELETE'])
@require_auth
def delete_generated(collection: str, row_id: str) -> Tuple[str, int]:
    table = _DELETABLE.get(collection)
    if table is None:
        abort(404)
    current_app.storage_service.delete(table, row_id, g.user['id'])
    logger.info('%s.delete.success', table, extra={'user_id': g.user['id']})
    return '', 204


# --- Local object storage --------------------------------------------------


@main_bp.route('/storage/v1/object/public/<bucket>/<path:path>')
def public_object(bucket: str, path: str):
    storage = current_app.storage_service
    if storage.uses_supabase:
        abort(404)
    try:
        target = storage.object_path(bucket, path)
    except ServiceError:
        abort(404)
    if not target.is_file():
        abort(404)
    return send_file(target, max_age=86400)
