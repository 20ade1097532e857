from __future__ import annotations

from datetime import date, timedelta

from aicareofyou.services.habits import (
    build_achievements,
    current_streak,
    habit_summary,
    longest_streak,
    reached_milestone,
)

TODAY = date(2024, 6, 12)


def _days_ago(*offsets: int):
    return [TODAY - timedelta(days=offset) for offset in offsets]


def test_streak_counts_back_from_today() -> None:
    assert current_streak(_days_ago(0, 1, 2), TODAY) == 3


def test_streak_still_alive_when_last_completion_was_yesterday() -> None:
    assert current_streak(_days_ago(1, 2), TODAY) == 2


def test_streak_broken_after_a_missed_day() -> None:
    assert current_streak(_days_ago(2, 3, 4), TODAY) == 0


def test_gap_ends_the_streak_at_that_point() -> None:
    assert current_streak(_days_ago(0, 2, 3, 4), TODAY) == 1


def test_iso_strings_and_duplicates_are_accepted() -> None:
    dates = ['2024-06-12', '2024-06-11', '2024-06-11T00:00:00']
    assert current_streak(dates, TODAY) == 2


def test_longest_streak_finds_the_best_run() -> None:
    dates = [date(2024, 5, day) for day in (1, 2, 3, 5, 6)]
    assert longest_streak(dates) == 3
    assert longest_streak([]) == 0


def test_milestones() -> None:
    assert reached_milestone(7) == 7
    assert reached_milestone(14) == 14
    assert reached_milestone(30) == 30
    assert reached_milestone(8) is None


def test_habit_summary_flags_today() -> None:
    summary = habit_summary({'id': 'h1', 'name': 'Meditate'}, _days_ago(0, 1), TODAY)

    assert summary['today_completed'] is True
    assert summary['current_streak'] == 2
    assert summary['name'] == 'Meditate'


def test_achievements_unlock_by_threshold() -> None:
    badges = {badge['id']: badge for badge in build_achievements(reflections=8, habits=1, best_streak=7)}

    assert badges['first-reflection']['unlocked'] is True
    assert badges['week-reflections']['unlocked'] is True
    assert badges['month-reflections']['unlocked'] is False
    assert badges['month-reflections']['progress'] == 8
    assert badges['first-habit']['unlocked'] is True
    assert badges['week-streak']['title'] == 'Streak Starter'
    assert badges['week-streak']['unlocked'] is True
    assert badges['month-streak']['title'] == 'Consistency Champion'
    assert badges['month-streak']['unlocked'] is False
