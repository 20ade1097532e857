from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from . import prompts
from .windows import calculate_date_range, iso_timestamp

logger = logging.getLogger(__name__)


@dataclass
class ReflectionStats:
    reflection_count: int
    mood_average: float
    sentiment_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def rounded_mood(self) -> float:
        return round(self.mood_average, 1)

    @property
    def top_emotions(self) -> List[str]:
        return [label for label, _count in Counter(self.sentiment_counts).most_common(3)]


def summarize_reflections(reflections: Iterable[Mapping[str, Any]]) -> ReflectionStats:
    """Mood mean and sentiment histogram over ``reflections``.

    Rows without a mood score are left out of the mean; the mean of no
    scores is 0.
    """

    rows = list(reflections)
    moods = [row['mood_score'] for row in rows if row.get('mood_score')]
    counts: Dict[str, int] = {}
    for row in rows:
        label = row.get('sentiment')
        if label:
            counts[label] = counts.get(label, 0) + 1
    average = sum(moods) / len(moods) if moods else 0.0
    return ReflectionStats(reflection_count=len(rows), mood_average=average, sentiment_counts=counts)


def empty_period_recap(time_frame: str) -> Dict[str, Any]:
    return {
        'summaryText': f"You haven't recorded any reflections for this {time_frame} period yet.",
        'motivationalMessage': prompts.EMPTY_PERIOD_MOTIVATION,
        'recommendations': list(prompts.EMPTY_PERIOD_RECOMMENDATIONS),
        'reflectionCount': 0,
    }


def generate_insight_report(
    storage,
    ai_service,
    user_id: str,
    time_frame: str,
    target: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Build, store and return the insight report for one period."""

    window = calculate_date_range(time_frame, target, now=now)
    reflections, _ = storage.select(
        'reflections',
        user_id,
        filters=[
            ('created_at', 'gte', iso_timestamp(window.start)),
            ('created_at', 'lte', iso_timestamp(window.end)),
        ],
        order=[('created_at', False)],
    )
    logger.info(
        'insights.generate.start',
        extra={'user_id': user_id, 'time_frame': time_frame, 'reflections': len(reflections)},
    )

    if not reflections:
        report = empty_period_recap(time_frame)
    else:
        stats = summarize_reflections(reflections)
        recap = ai_service.generate_insight_recap(
            [row.get('content') or '' for row in reflections],
            time_frame,
            stats.reflection_count,
            stats.mood_average,
            stats.sentiment_counts,
        )
        report = {
            **recap.to_dict(),
            'moodAverage': stats.rounded_mood,
            'reflectionCount': stats.reflection_count,
            'topEmotions': stats.top_emotions,
        }

    storage.insert(
        'insight_reports',
        {
            'report_type': time_frame,
            'summary': report['summaryText'],
            'motivation': report['motivationalMessage'],
            'recommendations': report['recommendations'],
        },
        user_id,
    )
    logger.info('insights.generate.success', extra={'user_id': user_id, 'time_frame': time_frame})
    return report
