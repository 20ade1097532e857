"""Streak and achievement calculations for habits and reflections."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, Set, Union

STREAK_MILESTONES = (7, 14, 30)

DateLike = Union[date, str]


def _as_dates(values: Iterable[DateLike]) -> Set[date]:
    dates: Set[date] = set()
    for value in values:
        if isinstance(value, date):
            dates.add(value)
        elif value:
            dates.add(date.fromisoformat(str(value)[:10]))
    return dates


def current_streak(completed: Iterable[DateLike], today: date) -> int:
    """Count consecutive completion days ending today or yesterday.

    A habit finished yesterday but not yet today still has a live streak.
    The first missing day ends the count.
    """

    dates = _as_dates(completed)
    if today in dates:
        cursor = today
    elif today - timedelta(days=1) in dates:
        cursor = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while cursor in dates:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def longest_streak(completed: Iterable[DateLike]) -> int:
    dates = sorted(_as_dates(completed))
    best = run = 0
    previous: Optional[date] = None
    for day in dates:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        best = max(best, run)
        previous = day
    return best


def reached_milestone(streak: int) -> Optional[int]:
    """Return the milestone ``streak`` lands on exactly, if any."""

    return streak if streak in STREAK_MILESTONES else None


def habit_summary(habit: Dict[str, Any], completions: Iterable[DateLike], today: date) -> Dict[str, Any]:
    dates = _as_dates(completions)
    streak = current_streak(dates, today)
    return {
        **habit,
        'current_streak': streak,
        'longest_streak': longest_streak(dates),
        'today_completed': today in dates,
        'milestone': reached_milestone(streak),
    }


_ACHIEVEMENTS = (
    ('first-reflection', 'First Reflection', 'Record your first reflection', 'reflections', 1),
    ('week-reflections', 'Week of Reflection', 'Record 7 reflections', 'reflections', 7),
    ('month-reflections', 'Reflection Master', 'Record 30 reflections', 'reflections', 30),
    ('first-habit', 'Habit Builder', 'Create your first habit', 'habits', 1),
    ('week-streak', 'Streak Starter', 'Keep a habit going for 7 days in a row', 'longest_streak', 7),
    ('month-streak', 'Consistency Champion', 'Keep a habit going for 30 days in a row', 'longest_streak', 30),
)


def build_achievements(reflections: int, habits: int, best_streak: int) -> List[Dict[str, Any]]:
    """Badge list with unlock state and progress toward each target."""

    stats = {'reflections': reflections, 'habits': habits, 'longest_streak': best_streak}
    achievements = []
    for key, title, description, metric, target in _ACHIEVEMENTS:
        value = stats[metric]
        achievements.append(
            {
                'id': key,
                'title': title,
                'description': description,
                'unlocked': value >= target,
                'progress': min(value, target),
                'target': target,
            }
        )
    return achievements
