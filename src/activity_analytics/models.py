"""Domain models for unified activities and the aggregates derived from them."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Literal, Optional

SourceType = Literal["manual", "automatic", "pomodoro"]
ActivityType = Literal["time_entry", "app", "browser", "pomodoro_focus", "pomodoro_break"]
ActivityKey = tuple[int, str]

SOURCE_TYPES: tuple[str, ...] = ("manual", "automatic", "pomodoro")
WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward positive infinity."""
    return int(math.floor(value + 0.5))


@dataclass(slots=True)
class ActivityRecord:
    """One normalized interval of tracked time, tagged with its capture source."""

    id: int
    source_type: str
    activity_type: str
    title: str
    start_time: Optional[datetime]
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    app_name: Optional[str] = None
    window_title: Optional[str] = None
    domain: Optional[str] = None
    url: Optional[str] = None
    is_idle: bool = False
    is_browser: bool = False
    session_type: Optional[str] = None
    completed: Optional[bool] = None
    interrupted: Optional[bool] = None

    @property
    def key(self) -> ActivityKey:
        return (self.id, self.source_type)

    @property
    def timestamp_seconds(self) -> Optional[int]:
        """Seconds between the timestamps, floored, or None if either is missing."""
        if self.start_time is None or self.end_time is None:
            return None
        return math.floor((self.end_time - self.start_time).total_seconds())

    @property
    def effective_seconds(self) -> Optional[int]:
        """Stored duration, else the timestamp difference; None while a timer runs."""
        if self.duration is not None:
            return self.duration
        return self.timestamp_seconds

    @property
    def seconds(self) -> int:
        return self.effective_seconds or 0

    @property
    def is_open_ended(self) -> bool:
        return self.end_time is None and self.duration is None

    @property
    def minutes(self) -> float:
        return self.seconds / 60.0

    @property
    def effective_end(self) -> Optional[datetime]:
        if self.end_time is not None:
            return self.end_time
        if self.start_time is None:
            return None
        return self.start_time + timedelta(seconds=max(self.duration or 0, 0))

    @property
    def day(self) -> Optional[date]:
        return self.start_time.date() if self.start_time else None

    @property
    def is_time_entry(self) -> bool:
        return self.source_type == "manual"

    @property
    def is_app_usage(self) -> bool:
        return self.source_type == "automatic"

    @property
    def is_focus_session(self) -> bool:
        return self.source_type == "pomodoro" and self.session_type == "focus"

    @property
    def is_break_session(self) -> bool:
        return self.source_type == "pomodoro" and self.session_type in ("shortBreak", "longBreak")

    @property
    def counts_as_tracked(self) -> bool:
        """Time entries and non-idle app usage make up the combined tracked time."""
        return self.is_time_entry or (self.is_app_usage and not self.is_idle)


@dataclass(slots=True)
class Category:
    id: int
    name: str
    color: str = "#3B82F6"


@dataclass(slots=True)
class Goal:
    id: int
    name: str
    target_minutes: int
    period: str = "daily"
    active: bool = True


@dataclass(slots=True)
class GoalProgress:
    goal_id: int
    date: date
    minutes: int
    achieved: bool


@dataclass(slots=True)
class Snapshot:
    """A single read of the store that one request computes against."""

    activities: list[ActivityRecord]
    categories: list[Category] = field(default_factory=list)
    goals: list[Goal] = field(default_factory=list)
    goal_progress: list[GoalProgress] = field(default_factory=list)
    taken_at: datetime = field(default_factory=datetime.now)


# Data quality ---------------------------------------------------------------


@dataclass(slots=True)
class Gap:
    start_time: datetime
    end_time: datetime
    duration: int
    before: Optional[ActivityRecord] = None
    after: Optional[ActivityRecord] = None


@dataclass(slots=True)
class GapStatistics:
    total_gaps: int = 0
    total_untracked_seconds: int = 0
    average_gap_seconds: float = 0.0
    longest_gap_seconds: int = 0


@dataclass(slots=True)
class DuplicateGroup:
    activities: list[ActivityRecord]
    similarity: float


@dataclass(slots=True)
class MergeableGroup:
    activities: list[ActivityRecord]
    total_gap_seconds: int


@dataclass(slots=True)
class MergeSuggestion:
    can_merge: bool
    reason: str
    confidence: int
    merged: Optional[ActivityRecord] = None


@dataclass(slots=True)
class OverlapConflict:
    activities: list[ActivityRecord]
    overlap_seconds: int
    message: str


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ValidatedActivity:
    activity: ActivityRecord
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(slots=True)
class BatchValidation:
    valid: list[ValidatedActivity] = field(default_factory=list)
    invalid: list[ValidatedActivity] = field(default_factory=list)


@dataclass(slots=True)
class RecalculationResult:
    success: bool = False
    recalculated: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ZeroDurationResult:
    activities: list[ActivityRecord] = field(default_factory=list)
    removed: int = 0


@dataclass(slots=True)
class QualityReport:
    total_activities: int = 0
    valid_activities: int = 0
    invalid_activities: int = 0
    warnings_count: int = 0
    orphaned_count: int = 0
    zero_duration_count: int = 0
    gaps_count: int = 0
    duplicate_groups_count: int = 0
    quality_score: int = 100


# Analytics ------------------------------------------------------------------


@dataclass(slots=True)
class CategoryTime:
    category_id: int
    category_name: str
    category_color: str
    minutes: int
    percentage: int


@dataclass(slots=True)
class DailyStats:
    date: date
    total_minutes: int
    focus_minutes: int
    break_minutes: int
    idle_minutes: int
    completed_tasks: int
    categories: list[CategoryTime] = field(default_factory=list)


@dataclass(slots=True)
class HourlyPattern:
    hour: int
    avg_minutes: int
    day_count: int


@dataclass(slots=True)
class HeatmapBreakdown:
    focus: int = 0
    apps: int = 0
    browser: int = 0


@dataclass(slots=True)
class HeatmapDay:
    date: date
    intensity: int
    total_minutes: int
    breakdown: HeatmapBreakdown = field(default_factory=HeatmapBreakdown)


@dataclass(slots=True)
class TopDay:
    date: date
    minutes: int


@dataclass(slots=True)
class WeeklySummary:
    week_start: date
    week_end: date
    total_minutes: int = 0
    avg_daily_minutes: int = 0
    top_day: Optional[TopDay] = None
    top_categories: list[CategoryTime] = field(default_factory=list)
    goals_achieved: int = 0
    total_goals: int = 0
    comparison_to_previous: int = 0
    insights: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TrendPoint:
    period: str
    value: int


@dataclass(slots=True)
class InsightTrend:
    value: float
    is_positive: bool


@dataclass(slots=True)
class BehavioralInsight:
    type: str
    title: str
    description: str
    value: str
    trend: Optional[InsightTrend] = None


@dataclass(slots=True)
class Streak:
    current: int = 0
    longest: int = 0


@dataclass(slots=True)
class ScoreBreakdown:
    time_score: float
    focus_score: float
    consistency_score: float
    productivity_score: int


@dataclass(slots=True)
class AnalyticsSummary:
    productivity_score: int = 0
    total_productive_minutes: int = 0
    avg_daily_focus_hours: float = 0.0
    peak_hour: int = 9
    most_productive_day: str = "Monday"
    weekly_streak: int = 0


@dataclass(slots=True)
class Overview:
    """Everything one dashboard load needs, computed from one shared snapshot."""

    summary: AnalyticsSummary
    trends: list[TrendPoint]
    hourly: list[HourlyPattern]
    heatmap: list[HeatmapDay]
    weekly: WeeklySummary
    insights: list[BehavioralInsight]
