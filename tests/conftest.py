from __future__ import annotations

import itertools
from contextlib import nullcontext
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional, Sequence

import pytest

from activity_analytics.db import open_database
from activity_analytics.models import ActivityRecord, Category, Goal, GoalProgress

# A Wednesday.
NOW = datetime(2024, 3, 13, 18, 0)

_ACTIVITY_TYPES = {
    "manual": "time_entry",
    "automatic": "app",
    "pomodoro": "pomodoro_focus",
}


@pytest.fixture
def make_activity():
    """Build activities starting at ``start`` and lasting ``minutes``."""
    ids = itertools.count(1)

    def factory(start: datetime, minutes: Optional[float] = 30, **fields: Any) -> ActivityRecord:
        source_type = fields.pop("source_type", "manual")
        end = start + timedelta(minutes=minutes) if minutes is not None else None
        values: dict[str, Any] = {
            "id": next(ids),
            "source_type": source_type,
            "activity_type": _ACTIVITY_TYPES.get(source_type, "time_entry"),
            "title": "Write report",
            "start_time": start,
            "end_time": end,
            "duration": int(minutes * 60) if minutes is not None else None,
        }
        if source_type == "automatic":
            values["app_name"] = "code.exe"
        if source_type == "pomodoro":
            values.update(session_type="focus", completed=True, interrupted=False)
        values.update(fields)
        return ActivityRecord(**values)

    return factory


class FakeStore:
    """In-memory store; ``fail_ids`` makes updates of those ids raise."""

    def __init__(
        self,
        activities: Iterable[ActivityRecord] = (),
        categories: Iterable[Category] = (),
        goals: Iterable[Goal] = (),
        progress: Iterable[GoalProgress] = (),
    ) -> None:
        self.activities = list(activities)
        self.categories = list(categories)
        self.goals = list(goals)
        self.progress = list(progress)
        self.fail_ids: set[int] = set()

    def get_unified_activities(
        self,
        start: datetime,
        end: datetime,
        source_types: Optional[Sequence[str]] = None,
    ) -> list[ActivityRecord]:
        return sorted(
            (
                activity
                for activity in self.activities
                if activity.start_time is not None
                and start <= activity.start_time < end
                and (source_types is None or activity.source_type in source_types)
            ),
            key=lambda activity: activity.start_time,
        )

    def update_activity(self, activity_id: int, source_type: str, fields: dict[str, Any]) -> bool:
        if activity_id in self.fail_ids:
            raise RuntimeError("database is locked")
        for activity in self.activities:
            if activity.key == (activity_id, source_type):
                for name, value in fields.items():
                    setattr(activity, name, value)
                return True
        return False

    def bulk_delete(self, keys) -> dict[str, int]:
        wanted = set(keys)
        before = len(self.activities)
        self.activities = [a for a in self.activities if a.key not in wanted]
        deleted = before - len(self.activities)
        return {"deleted": deleted, "failed": len(wanted) - deleted}

    def get_categories(self) -> list[Category]:
        return list(self.categories)

    def get_active_goals(self) -> list[Goal]:
        return [goal for goal in self.goals if goal.active]

    def get_goal_progress(self, start: date, end: date) -> list[GoalProgress]:
        return [entry for entry in self.progress if start <= entry.date <= end]

    def transaction(self):
        return nullcontext()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "activities.sqlite3"


@pytest.fixture
def conn(db_path):
    connection = open_database(db_path)
    try:
        yield connection
    finally:
        connection.close()
