from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional

from ..utils.errors import NotFoundError, ServiceError
from .insights import summarize_reflections
from .windows import iso_timestamp, week_range

logger = logging.getLogger(__name__)

MIN_REFLECTIONS_FOR_VIDEO = 3


def first_name(full_name: Optional[str]) -> str:
    if not full_name or not full_name.strip():
        return 'friend'
    return full_name.strip().split(' ')[0] or 'friend'


def build_weekly_summary(reflections: Iterable[Mapping[str, Any]], habit_names: Iterable[str]) -> str:
    """Plain-text recap of a week's reflections and habit completions.

    ``habit_names`` holds one entry per completion.
    """

    rows = list(reflections)
    total = len(rows)
    average = sum(row.get('mood_score') or 0 for row in rows) / total if total else 0.0
    sentiments = Counter(row.get('sentiment') for row in rows if row.get('sentiment'))

    summary = f'This week you recorded {total} reflections with an average mood score of {average:.1f}/10. '
    if sentiments['positive'] > sentiments['negative']:
        summary += 'Your overall sentiment was positive this week! '
    elif sentiments['negative'] > sentiments['positive']:
        summary += "You had some challenging moments this week, but you're making progress. "
    else:
        summary += 'You maintained a balanced emotional state this week. '

    habits = Counter(habit_names)
    if habits:
        summary += f'You completed {sum(habits.values())} habit actions this week. '
        top_habit = habits.most_common(1)[0][0]
        summary += f'Great job staying consistent with {top_habit}! '

    summary += 'Keep up the great work on your transformation journey!'
    return summary


def _week_reflections(storage, user_id: str, start: str, end: str):
    rows, _ = storage.select(
        'reflections',
        user_id,
        filters=[('created_at', 'gte', start), ('created_at', 'lte', end)],
        order=[('created_at', False)],
    )
    return rows


def create_weekly_recap(
    storage,
    user_id: str,
    week_start: Optional[str] = None,
    week_end: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Store a text-only recap for the given week (the current week by default)."""

    if not week_start or not week_end:
        window = week_range(now)
        week_start, week_end = iso_timestamp(window.start), iso_timestamp(window.end)

    reflections = _week_reflections(storage, user_id, week_start, week_end)
    completions, _ = storage.select(
        'habit_completions',
        user_id,
        filters=[('completed_at', 'gte', week_start[:10]), ('completed_at', 'lte', week_end[:10])],
    )
    habits, _ = storage.select('habits', user_id)
    names = {habit['id']: habit.get('name') or 'Unknown' for habit in habits}

    summary = build_weekly_summary(reflections, [names.get(row['habit_id'], 'Unknown') for row in completions])
    recap = storage.insert(
        'weekly_recaps',
        {'week_start': week_start, 'week_end': week_end, 'summary': summary, 'video_url': None},
        user_id,
    )
    logger.info('weekly_recap.create.success', extra={'user_id': user_id})
    return recap


def count_week_reflections(storage, user_id: str, now: Optional[datetime] = None) -> int:
    window = week_range(now)
    return storage.count(
        'reflections',
        user_id,
        filters=[
            ('created_at', 'gte', iso_timestamp(window.start)),
            ('created_at', 'lte', iso_timestamp(window.end)),
        ],
    )


def start_video_recap(
    storage,
    ai_service,
    video_service,
    user_id: str,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Write a script from this week's reflections and submit the video job.

    Returns as soon as the job exists; the stored recap row carries a null
    ``video_url`` until :func:`update_video_url` fills it in.
    """

    video_service.ensure_configured()
    window = week_range(now)
    week_start, week_end = iso_timestamp(window.start), iso_timestamp(window.end)

    reflections = _week_reflections(storage, user_id, week_start, week_end)
    if not reflections:
        raise ServiceError('No reflections found for the past week. Please add some reflections first.', 500)

    profile = storage.fetch_profile(user_id)
    name = first_name(profile.get('full_name') if profile else None)

    script = ai_service.generate_video_script([row.get('content') or '' for row in reflections], name)
    job = video_service.create_video(script, name)
    logger.info('video_recap.job.created', extra={'user_id': user_id, 'video_id': job.video_id})

    storage.insert(
        'weekly_recaps',
        {'week_start': week_start, 'week_end': week_end, 'summary': script, 'video_url': None},
        user_id,
    )

    stats = summarize_reflections(reflections)
    return {
        'video_id': job.video_id,
        'hosted_url': job.hosted_url,
        'video_script': script,
        'week_start': week_start,
        'week_end': week_end,
        'reflection_count': stats.reflection_count,
        'mood_average': stats.rounded_mood,
    }


def update_video_url(storage, user_id: str, video_url: str, week_start: str, week_end: str) -> Dict[str, Any]:
    try:
        recap = storage.update_where(
            'weekly_recaps',
            {'week_start': week_start, 'week_end': week_end},
            {'video_url': video_url},
            user_id,
        )
    except NotFoundError as exc:
        raise NotFoundError(f'Error updating video URL: {exc.message}') from exc
    logger.info('video_recap.url.updated', extra={'user_id': user_id})
    return recap
