"""Best-effort parsing of free-text coaching plans into display structures.

The AI returns workout and nutrition advice as prose. These helpers slice it
into days, exercises and meals by line heuristics so the plan can be shown as
lists. The result is lossy and only meant for display; the stored text stays
authoritative.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

_DAY_START = re.compile(
    r'^(Day\s*\d+|Monday|Tuesday|Wednesday|Thursday|Friday|Saturday|Sunday)', re.IGNORECASE
)
_DAY_WORD = re.compile(r'day|monday|tuesday|wednesday|thursday|friday|saturday|sunday', re.IGNORECASE)
_BOLD = re.compile(r'^\*\*|\*\*$')
_BULLET = re.compile(r'^[-\d.•]\s*')
_NUMBERED = re.compile(r'^\d+\.')
_SETS = re.compile(r'(\d+)\s*sets?', re.IGNORECASE)
_REPS = re.compile(r'(\d+(?:-\d+)?)\s*reps?', re.IGNORECASE)
_REST = re.compile(r'(\d+(?:-\d+)?)\s*(?:seconds?|mins?)', re.IGNORECASE)

_MEAL_START = re.compile(r'^(\*\*|##)?(breakfast|lunch|dinner|snack)', re.IGNORECASE)
_MEAL_WORD = re.compile(r'breakfast|lunch|dinner|snack|morning|afternoon|evening', re.IGNORECASE)
_MEAL_MARKUP = re.compile(r'^\*\*|\*\*$|^##|##$')
_PORTION = re.compile(r'\d+\s*(oz|cup|tbsp|tsp|slice|piece)', re.IGNORECASE)
_NUMBER_PREFIX = re.compile(r'^\d+\.\s*')


@dataclass
class Exercise:
    name: str
    sets: str = 'As described'
    reps: str = ''
    rest: str = ''


@dataclass
class WorkoutDay:
    day: str
    exercises: List[Exercise] = field(default_factory=list)
    notes: str = ''


@dataclass
class Meal:
    name: str
    foods: List[str] = field(default_factory=list)


@dataclass
class NutritionPlan:
    meals: List[Meal] = field(default_factory=list)
    tips: List[str] = field(default_factory=list)
    hydration: str = ''


def _lines(text: Any) -> List[str]:
    if not isinstance(text, str):
        return []
    return [line.strip() for line in text.split('\n') if line.strip()]


def _is_day_header(line: str) -> bool:
    return bool(
        _DAY_START.match(line)
        or '**Day' in line
        or (':' in line and _DAY_WORD.search(line))
    )


def _is_exercise(line: str) -> bool:
    return (
        any(token in line for token in ('sets', 'reps', 'minutes', ':'))
        or line.startswith('-')
        or line.startswith('•')
        or bool(_NUMBERED.match(line))
    )


def _parse_exercise(line: str) -> Exercise:
    if ':' not in line:
        return Exercise(name=_BULLET.sub('', line, count=1))

    parts = line.split(':')
    name = _BULLET.sub('', parts[0].strip(), count=1)
    details = parts[1].strip()

    sets_match = _SETS.search(details)
    reps_match = _REPS.search(details)
    rest_match = _REST.search(details)

    sets = f'{sets_match.group(1)} sets' if sets_match else ''
    if not sets_match and not reps_match:
        sets = details
    return Exercise(
        name=name,
        sets=sets or 'As described',
        reps=f'{reps_match.group(1)} reps' if reps_match else '',
        rest=rest_match.group(0) if rest_match else '',
    )


def parse_workout_plan(text: Any) -> List[WorkoutDay]:
    """Split workout prose into days with exercises and notes.

    Lines before the first recognisable day header are ignored.
    """

    workouts: List[WorkoutDay] = []
    current: Optional[WorkoutDay] = None

    for line in _lines(text):
        if _is_day_header(line):
            if current:
                workouts.append(current)
            current = WorkoutDay(day=_BOLD.sub('', line).replace(':', '').strip())
        elif current and _is_exercise(line):
            exercise = _parse_exercise(line)
            if exercise.name:
                current.exercises.append(exercise)
        elif current and any(word in line.lower() for word in ('rest', 'note', 'tip')):
            current.notes = f'{current.notes} {line}' if current.notes else line

    if current:
        workouts.append(current)
    return workouts


def parse_nutrition_plan(text: Any) -> NutritionPlan:
    """Split nutrition prose into meals, tips and a hydration line."""

    plan = NutritionPlan()
    current: Optional[Meal] = None

    for line in _lines(text):
        lowered = line.lower()
        if _MEAL_START.match(line) or 'meal' in lowered or (':' in line and _MEAL_WORD.search(line)):
            if current:
                plan.meals.append(current)
            name = _MEAL_MARKUP.sub('', line).replace(':', '')
            current = Meal(name=_NUMBER_PREFIX.sub('', name, count=1).strip())
        elif current and (
            line.startswith('-') or line.startswith('•') or _PORTION.search(line) or _NUMBERED.match(line)
        ):
            food = _BULLET.sub('', line, count=1).strip()
            if food:
                current.foods.append(food)
        elif any(word in lowered for word in ('tip', 'hydration', 'water', 'drink')):
            if 'hydration' in lowered or 'water' in lowered:
                plan.hydration = line
            else:
                plan.tips.append(_BOLD.sub('', line))
        elif (
            current is None
            and len(line) > 10
            and any(word in lowered for word in ('calories', 'protein', 'balance', 'avoid'))
        ):
            plan.tips.append(line)

    if current:
        plan.meals.append(current)
    return plan


def parse_body_plan(workout_text: Any, nutrition_text: Any) -> Dict[str, Any]:
    return {
        'workouts': [asdict(day) for day in parse_workout_plan(workout_text)],
        'nutrition': asdict(parse_nutrition_plan(nutrition_text)),
    }
