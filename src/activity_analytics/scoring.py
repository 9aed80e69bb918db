"""The 0-100 productivity score and the analytics summary built around it."""

from __future__ import annotations

import math
from datetime import date, timedelta

from .insights import focus_completion
from .models import WEEKDAY_NAMES, AnalyticsSummary, ScoreBreakdown, Snapshot, round_half_up
from .streaks import activity_dates, calculate_streak
from .trends import minutes_by_hour, minutes_by_weekday, sum_minutes, top_key

TARGET_DAILY_MINUTES = 240
TIME_POINTS = 40
FOCUS_POINTS = 30
CONSISTENCY_POINTS = 30
TARGET_STREAK_DAYS = 30
# Neutral midpoint used when no focus session exists in the window.
DEFAULT_FOCUS_RATE = 50.0
DEFAULT_PEAK_HOUR = 9
DEFAULT_PRODUCTIVE_DAY = WEEKDAY_NAMES[0]


def compute_productivity_score(
    daily_avg_minutes: float, focus_completion_rate: float, weekly_streak: int
) -> ScoreBreakdown:
    time_score = min(daily_avg_minutes / TARGET_DAILY_MINUTES * TIME_POINTS, TIME_POINTS)
    focus_score = focus_completion_rate / 100 * FOCUS_POINTS
    consistency_score = min(
        weekly_streak / TARGET_STREAK_DAYS * CONSISTENCY_POINTS, CONSISTENCY_POINTS
    )
    return ScoreBreakdown(
        time_score=time_score,
        focus_score=focus_score,
        consistency_score=consistency_score,
        productivity_score=round_half_up(time_score + focus_score + consistency_score),
    )


def round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def analytics_summary(
    snapshot: Snapshot,
    today: date,
    window: timedelta = timedelta(days=30),
    streak_window: timedelta = timedelta(days=60),
) -> AnalyticsSummary:
    since = today - window
    recent = [a for a in snapshot.activities if a.day is not None and a.day >= since]
    window_days = window.days or 1

    total_productive = round_half_up(
        sum(a.minutes for a in recent if a.is_app_usage and not a.is_idle)
    )

    focus_per_day = sum_minutes(
        (a for a in recent if a.is_focus_session and a.completed), lambda a: a.day
    )
    avg_focus_hours = (
        round_one_decimal(sum(m / 60 for m in focus_per_day.values()) / len(focus_per_day))
        if focus_per_day
        else 0.0
    )

    peak_hour = top_key(minutes_by_hour(recent))
    productive_day = top_key(minutes_by_weekday(recent))
    streak = calculate_streak(activity_dates(snapshot.activities, today - streak_window))

    rate = focus_completion(recent)
    score = compute_productivity_score(
        total_productive / window_days,
        DEFAULT_FOCUS_RATE if rate is None else rate,
        streak.current,
    )
    return AnalyticsSummary(
        productivity_score=score.productivity_score,
        total_productive_minutes=total_productive,
        avg_daily_focus_hours=avg_focus_hours,
        peak_hour=DEFAULT_PEAK_HOUR if peak_hour is None else peak_hour,
        most_productive_day=productive_day or DEFAULT_PRODUCTIVE_DAY,
        weekly_streak=streak.current,
    )
