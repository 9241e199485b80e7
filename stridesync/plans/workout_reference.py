"""Workout reference parsing for chat-driven plan edits.

Athletes refer to workouts as "W4:D2" or "Week 4 Day 2". Both forms are
normalized to the canonical W<week>:D<day> index.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_INDEX_PATTERN = re.compile(r"w(\d+):d(\d+)", re.IGNORECASE)
_PHRASE_PATTERN = re.compile(r"week\s+(\d+)\s+day\s+(\d+)", re.IGNORECASE)

WORKOUT_INDEX_PATTERN = re.compile(r"^W(\d+):D(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class WorkoutReference:
    original: str
    week: int
    day: int

    @property
    def index(self) -> str:
        return format_workout_index(self.week, self.day)


def format_workout_index(week: int, day: int) -> str:
    return f"W{week}:D{day}"


def parse_workout_index(index: str) -> tuple[int, int] | None:
    """Split "W4:D2" into (4, 2); None when the string is not an index."""
    match = WORKOUT_INDEX_PATTERN.match(index.strip())
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def parse_workout_references(text: str) -> list[WorkoutReference]:
    """Extract every workout reference from free text.

    W#:D# references come first, then "Week # Day #" phrases; duplicates
    (by canonical index) are dropped.

    Example:
        >>> [r.index for r in parse_workout_references("Swap W3:D1 and week 3 day 4")]
        ['W3:D1', 'W3:D4']
    """
    references: list[WorkoutReference] = []
    seen: set[str] = set()

    for pattern in (_INDEX_PATTERN, _PHRASE_PATTERN):
        for match in pattern.finditer(text):
            reference = WorkoutReference(
                original=match.group(0),
                week=int(match.group(1)),
                day=int(match.group(2)),
            )
            if reference.index in seen:
                continue
            seen.add(reference.index)
            references.append(reference)

    return references


def validate_workout_reference(
    reference: WorkoutReference,
    total_weeks: int,
    days_per_week: int = 7,
) -> str | None:
    """Return an error message when a reference falls outside the plan, else None."""
    if reference.week < 1 or reference.week > total_weeks:
        return f"Week {reference.week} is out of range (plan has {total_weeks} weeks)"
    if reference.day < 1 or reference.day > days_per_week:
        return f"Day {reference.day} is out of range (week has {days_per_week} days)"
    return None


def group_by_week(references: list[WorkoutReference]) -> dict[int, list[WorkoutReference]]:
    grouped: dict[int, list[WorkoutReference]] = {}
    for reference in references:
        grouped.setdefault(reference.week, []).append(reference)
    return grouped
