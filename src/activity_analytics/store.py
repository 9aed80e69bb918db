"""Interface of the persistence collaborator the engine reads from and writes to."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional, Protocol, Sequence

from .models import ActivityKey, ActivityRecord, Category, Goal, GoalProgress, Snapshot


class Store(Protocol):
    def get_unified_activities(
        self,
        start: datetime,
        end: datetime,
        source_types: Optional[Sequence[str]] = None,
    ) -> list[ActivityRecord]:
        """Activities starting in ``[start, end)`` ordered by start time."""
        ...

    def update_activity(self, activity_id: int, source_type: str, fields: dict[str, Any]) -> bool:
        ...

    def bulk_delete(self, keys: Iterable[ActivityKey]) -> dict[str, int]:
        ...

    def get_categories(self) -> list[Category]:
        ...

    def get_active_goals(self) -> list[Goal]:
        ...

    def get_goal_progress(self, start: date, end: date) -> list[GoalProgress]:
        ...

    def transaction(self) -> AbstractContextManager[Any]:
        ...


def take_snapshot(
    store: Store,
    start: datetime,
    end: datetime,
    *,
    with_goals: bool = False,
    taken_at: Optional[datetime] = None,
) -> Snapshot:
    """Read everything one request needs from the store in one pass."""
    activities = store.get_unified_activities(start, end)
    categories = store.get_categories()
    goals: list[Goal] = []
    progress: list[GoalProgress] = []
    if with_goals:
        goals = store.get_active_goals()
        progress = store.get_goal_progress(start.date(), (end - timedelta(microseconds=1)).date())
    return Snapshot(
        activities=activities,
        categories=categories,
        goals=goals,
        goal_progress=progress,
        taken_at=taken_at or datetime.now(),
    )
