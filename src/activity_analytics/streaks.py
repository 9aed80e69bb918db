"""Runs of consecutive qualifying calendar days."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from .models import ActivityRecord, GoalProgress, Streak

ONE_DAY = timedelta(days=1)


def calculate_streak(dates: Iterable[date]) -> Streak:
    """Trailing and best-ever runs of consecutive days.

    ``current`` counts back from the most recent qualifying date, whether or
    not that date is today; ``longest`` is the best run anywhere in the set.
    """
    ordered = sorted(set(dates))
    if not ordered:
        return Streak()

    longest = 1
    run = 1
    for previous, following in zip(ordered, ordered[1:]):
        run = run + 1 if following - previous == ONE_DAY else 1
        longest = max(longest, run)

    current = 1
    for index in range(len(ordered) - 1, 0, -1):
        if ordered[index] - ordered[index - 1] != ONE_DAY:
            break
        current += 1
    return Streak(current=current, longest=longest)


def activity_dates(activities: Iterable[ActivityRecord], since: date) -> set[date]:
    """Days from ``since`` on with at least one time entry or non-idle app usage."""
    return {
        activity.day
        for activity in activities
        if activity.counts_as_tracked and activity.day is not None and activity.day >= since
    }


def goal_dates(progress: Iterable[GoalProgress], since: date) -> set[date]:
    """Days from ``since`` on on which at least one goal was achieved."""
    return {entry.date for entry in progress if entry.achieved and entry.date >= since}
