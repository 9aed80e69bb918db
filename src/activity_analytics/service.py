"""Public operations of the engine, each computed from one store snapshot.

Every operation fails soft: unexpected errors are logged and a neutral
default is returned so a consuming UI keeps working. Data-quality findings
are ordinary results, not errors.
"""

from __future__ import annotations

import functools
import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Iterator, Optional, Sequence, TypeVar

from .config import AnalyticsSettings
from .duplicates import find_duplicate_groups
from .insights import behavioral_insights, summarize_week
from .models import (
    ActivityKey,
    ActivityRecord,
    AnalyticsSummary,
    BatchValidation,
    BehavioralInsight,
    DailyStats,
    DuplicateGroup,
    Gap,
    GapStatistics,
    HeatmapDay,
    HourlyPattern,
    MergeableGroup,
    MergeSuggestion,
    OverlapConflict,
    Overview,
    QualityReport,
    RecalculationResult,
    Snapshot,
    Streak,
    TrendPoint,
    WeeklySummary,
    ZeroDurationResult,
)
from .quality import (
    build_quality_report,
    find_orphaned,
    recalculate_durations,
    remove_zero_duration,
)
from .scoring import analytics_summary
from .store import Store, take_snapshot
from .streaks import calculate_streak, goal_dates
from .timeline import (
    MergeStrategy,
    detect_gaps,
    find_mergeable_groups,
    find_overlaps,
    gap_statistics,
    merge_activities,
    suggest_merge,
)
from .trends import daily_stats, heatmap, hourly_patterns, productivity_trends, week_bounds
from .validation import split_batch, validate_batch

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


def fail_soft(default: Callable[[], Any]) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Log any exception raised by the wrapped operation and return ``default()``."""

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return func(*args, **kwargs)
            except Exception:
                logger.exception("%s failed; returning default result.", func.__name__)
                return default()

        return wrapper

    return decorator


def parse_day(value: str | date) -> date:
    """Accept an ISO date (``YYYY-MM-DD``) or a date object."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def day_range(start_date: str | date, end_date: str | date) -> tuple[datetime, datetime]:
    """Inclusive ISO dates to a ``[start, end)`` datetime window."""
    start_day = parse_day(start_date)
    end_day = parse_day(end_date)
    if end_day < start_day:
        raise ValueError("end date must be on or after start date")
    return (
        datetime.combine(start_day, time.min),
        datetime.combine(end_day + timedelta(days=1), time.min),
    )


class _SnapshotService:
    def __init__(
        self,
        store: Store,
        settings: Optional[AnalyticsSettings] = None,
        clock: Clock = datetime.now,
    ) -> None:
        self.store = store
        self.settings = settings or AnalyticsSettings()
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self.now().date()

    def _snapshot(
        self, start_date: str | date, end_date: str | date, *, with_goals: bool = False
    ) -> Snapshot:
        start, end = day_range(start_date, end_date)
        snapshot = take_snapshot(self.store, start, end, with_goals=with_goals, taken_at=self.now())
        logger.debug(
            "Snapshot %s..%s holds %d activities.", start, end, len(snapshot.activities)
        )
        return snapshot


class DataQualityService(_SnapshotService):
    """Gap, duplicate, merge, validation and cleanup operations."""

    @contextmanager
    def _duplicate_deadline(self) -> Iterator[threading.Event]:
        stop_event = threading.Event()
        timer: Optional[threading.Timer] = None
        timeout = self.settings.duplicate_timeout
        if timeout is not None:
            timer = threading.Timer(timeout.total_seconds(), stop_event.set)
            timer.daemon = True
            timer.start()
        try:
            yield stop_event
        finally:
            if timer is not None:
                timer.cancel()

    @fail_soft(list)
    def detect_gaps(
        self, start_date: str, end_date: str, min_gap_minutes: Optional[float] = None
    ) -> list[Gap]:
        snapshot = self._snapshot(start_date, end_date)
        return detect_gaps(snapshot.activities, self._min_gap_seconds(min_gap_minutes))

    @fail_soft(GapStatistics)
    def get_gap_statistics(
        self, start_date: str, end_date: str, min_gap_minutes: Optional[float] = None
    ) -> GapStatistics:
        snapshot = self._snapshot(start_date, end_date)
        gaps = detect_gaps(snapshot.activities, self._min_gap_seconds(min_gap_minutes))
        return gap_statistics(gaps)

    def _min_gap_seconds(self, min_gap_minutes: Optional[float]) -> float:
        if min_gap_minutes is None:
            return self.settings.min_gap.total_seconds()
        return min_gap_minutes * 60

    @fail_soft(list)
    def detect_duplicates(
        self, start_date: str, end_date: str, similarity_threshold: Optional[int] = None
    ) -> list[DuplicateGroup]:
        threshold = (
            self.settings.similarity_threshold
            if similarity_threshold is None
            else similarity_threshold
        )
        snapshot = self._snapshot(start_date, end_date)
        with self._duplicate_deadline() as stop_event:
            return find_duplicate_groups(snapshot.activities, threshold, stop_event)

    @fail_soft(list)
    def find_mergeable_groups(
        self, start_date: str, end_date: str, max_gap_seconds: Optional[float] = None
    ) -> list[MergeableGroup]:
        if max_gap_seconds is None:
            max_gap_seconds = self.settings.merge_max_gap.total_seconds()
        snapshot = self._snapshot(start_date, end_date)
        return find_mergeable_groups(snapshot.activities, max_gap_seconds)

    @fail_soft(list)
    def find_overlaps(self, start_date: str, end_date: str) -> list[OverlapConflict]:
        return find_overlaps(self._snapshot(start_date, end_date).activities)

    @fail_soft(list)
    def find_orphaned_activities(self, start_date: str, end_date: str) -> list[ActivityRecord]:
        snapshot = self._snapshot(start_date, end_date)
        return find_orphaned(snapshot.activities, snapshot.categories)

    @fail_soft(BatchValidation)
    def validate_activities_batch(self, start_date: str, end_date: str) -> BatchValidation:
        snapshot = self._snapshot(start_date, end_date)
        results = validate_batch(snapshot.activities, self.now())
        return split_batch(snapshot.activities, results)

    def recalculate_durations(self, start_date: str, end_date: str) -> RecalculationResult:
        try:
            snapshot = self._snapshot(start_date, end_date)
            result = recalculate_durations(self.store, snapshot.activities)
        except Exception as exc:
            logger.exception("Failed to recalculate activity durations.")
            return RecalculationResult(success=False, recalculated=0, errors=[str(exc)])
        logger.info(
            "Recalculated %d durations with %d errors.", result.recalculated, len(result.errors)
        )
        return result

    @fail_soft(ZeroDurationResult)
    def find_zero_duration_activities(
        self, start_date: str, end_date: str, remove_if_confirmed: bool = False
    ) -> ZeroDurationResult:
        snapshot = self._snapshot(start_date, end_date)
        return remove_zero_duration(self.store, snapshot.activities, remove_if_confirmed)

    @fail_soft(lambda: QualityReport(quality_score=0))
    def get_data_quality_report(self, start_date: str, end_date: str) -> QualityReport:
        snapshot = self._snapshot(start_date, end_date)
        with self._duplicate_deadline() as stop_event:
            return build_quality_report(
                snapshot,
                now=self.now(),
                min_gap_seconds=self.settings.report_min_gap.total_seconds(),
                similarity_threshold=self.settings.report_similarity_threshold,
                stop_event=stop_event,
            )

    def _select(
        self, start_date: str, end_date: str, keys: Sequence[ActivityKey]
    ) -> list[ActivityRecord]:
        wanted = {(int(activity_id), source_type) for activity_id, source_type in keys}
        activities = [
            activity
            for activity in self._snapshot(start_date, end_date).activities
            if activity.key in wanted
        ]
        missing = wanted - {activity.key for activity in activities}
        if missing:
            raise LookupError(f"Activities not found: {sorted(missing)}")
        return activities

    @fail_soft(lambda: MergeSuggestion(False, "Unable to evaluate merge", 0))
    def suggest_merge(
        self, start_date: str, end_date: str, keys: Sequence[ActivityKey]
    ) -> MergeSuggestion:
        return suggest_merge(self._select(start_date, end_date, keys), self.now())

    @fail_soft(lambda: None)
    def merge_activities(
        self,
        start_date: str,
        end_date: str,
        keys: Sequence[ActivityKey],
        strategy: MergeStrategy = "longest",
    ) -> Optional[ActivityRecord]:
        """Replace the selected activities with one merged activity.

        The base record is rewritten and the others deleted inside one
        transaction; sources whose times are read-only are rejected by the store.
        """
        activities = self._select(start_date, end_date, keys)
        merged = merge_activities(activities, strategy, self.now())
        others = [activity.key for activity in activities if activity.key != merged.key]
        with self.store.transaction():
            updated = self.store.update_activity(
                merged.id,
                merged.source_type,
                {
                    "start_time": merged.start_time,
                    "end_time": merged.end_time,
                    "duration": merged.duration,
                },
            )
            if not updated:
                raise LookupError(f"Activity {merged.id} ({merged.source_type}) vanished")
            outcome = self.store.bulk_delete(others)
            if outcome["failed"]:
                raise LookupError(f"Failed to delete {outcome['failed']} merged activities")
        logger.info("Merged %d activities into %s.", len(activities), merged.key)
        return merged


class AnalyticsService(_SnapshotService):
    """Daily stats, patterns, heatmap, weekly summary, trends, insights and score."""

    @fail_soft(list)
    def get_daily_stats(self, start_date: str, end_date: str) -> list[DailyStats]:
        snapshot = self._snapshot(start_date, end_date)
        return daily_stats(
            snapshot.activities, snapshot.categories, parse_day(start_date), parse_day(end_date)
        )

    @fail_soft(list)
    def get_hourly_patterns(self, days: int = 30) -> list[HourlyPattern]:
        since = self.now() - timedelta(days=days)
        snapshot = self._snapshot(since.date(), self.today())
        return hourly_patterns(snapshot.activities, since)

    @fail_soft(list)
    def get_heatmap(self, year: Optional[int] = None) -> list[HeatmapDay]:
        year = year or self.today().year
        snapshot = self._snapshot(date(year, 1, 1), date(year, 12, 31))
        return heatmap(snapshot.activities, year)

    @fail_soft(lambda: WeeklySummary(week_start=date.today(), week_end=date.today()))
    def get_weekly_summary(self, week_offset: int = 0) -> WeeklySummary:
        week_start, week_end = week_bounds(self.today(), week_offset)
        snapshot = self._snapshot(week_start - timedelta(weeks=1), week_end, with_goals=True)
        return summarize_week(snapshot, self.today(), week_offset)

    @fail_soft(list)
    def get_trends(
        self, start_date: str, end_date: str, group_by: str = "day"
    ) -> list[TrendPoint]:
        snapshot = self._snapshot(start_date, end_date)
        return productivity_trends(
            snapshot.activities, parse_day(start_date), parse_day(end_date), group_by
        )

    def _recent_snapshot(self) -> Snapshot:
        window = max(self.settings.insight_window, self.settings.streak_window)
        return self._snapshot(self.today() - window, self.today())

    @fail_soft(list)
    def get_insights(self) -> list[BehavioralInsight]:
        return behavioral_insights(
            self._recent_snapshot(),
            self.today(),
            self.settings.insight_window,
            self.settings.streak_window,
        )

    @fail_soft(AnalyticsSummary)
    def get_summary(self) -> AnalyticsSummary:
        return analytics_summary(
            self._recent_snapshot(),
            self.today(),
            self.settings.insight_window,
            self.settings.streak_window,
        )

    @fail_soft(Streak)
    def get_goal_streak(self) -> Streak:
        since = self.today() - self.settings.streak_window
        progress = self.store.get_goal_progress(since, self.today())
        return calculate_streak(goal_dates(progress, since))

    @fail_soft(lambda: None)
    def get_overview(self, year: Optional[int] = None) -> Optional[Overview]:
        """All dashboard aggregates from one snapshot instead of one query each."""
        today = self.today()
        year = year or today.year
        week_start, _ = week_bounds(today, 0)
        recent_start = today - max(self.settings.insight_window, self.settings.streak_window)
        start = min(date(year, 1, 1), recent_start, week_start - timedelta(weeks=1))
        end = max(date(year, 12, 31), today)
        snapshot = self._snapshot(start, end, with_goals=True)

        trend_start = today - self.settings.insight_window
        return Overview(
            summary=analytics_summary(
                snapshot, today, self.settings.insight_window, self.settings.streak_window
            ),
            trends=productivity_trends(snapshot.activities, trend_start, today, "day"),
            hourly=hourly_patterns(snapshot.activities, self.now() - self.settings.hourly_window),
            heatmap=heatmap(snapshot.activities, year),
            weekly=summarize_week(snapshot, today, 0),
            insights=behavioral_insights(
                snapshot, today, self.settings.insight_window, self.settings.streak_window
            ),
        )
