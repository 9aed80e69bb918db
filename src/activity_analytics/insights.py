"""Natural-language findings derived from aggregated activity."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from datetime import date, timedelta
from typing import Optional

from .models import (
    WEEKDAY_NAMES,
    ActivityRecord,
    BehavioralInsight,
    Category,
    CategoryTime,
    InsightTrend,
    Snapshot,
    TopDay,
    WeeklySummary,
    round_half_up,
)
from .streaks import activity_dates, calculate_streak
from .trends import minutes_by_hour, minutes_by_weekday, sum_minutes, top_key, weekly_summary

DISTRACTION_MIN_SESSIONS = 5
DISTRACTION_MAX_AVG_MINUTES = 10
GOOD_FOCUS_RATE = 75
IMPRESSIVE_STREAK_DAYS = 7


def weekly_insights(
    total_minutes: int,
    top_day: Optional[TopDay],
    top_categories: list[CategoryTime],
    comparison: int,
) -> list[str]:
    insights: list[str] = []

    if comparison > 10:
        insights.append(f"Great progress! You're {comparison}% more productive than last week.")
    elif comparison < -10:
        insights.append(
            f"Activity decreased {abs(comparison)}% from last week. Let's get back on track!"
        )

    if top_day is not None:
        weekday = WEEKDAY_NAMES[top_day.date.weekday()]
        insights.append(
            f"{weekday} was your most productive day with {top_day.minutes} minutes tracked."
        )

    if top_categories:
        insights.append(f"You focused most on {top_categories[0].category_name} this week.")

    avg_daily = total_minutes / 7
    if avg_daily >= 120:
        insights.append(f"Excellent! You averaged {round_half_up(avg_daily)} minutes per day.")
    elif avg_daily < 60:
        insights.append(
            "Try to increase your daily tracking time - currently averaging "
            f"{round_half_up(avg_daily)} minutes."
        )

    return insights


def summarize_week(snapshot: Snapshot, today: date, week_offset: int = 0) -> WeeklySummary:
    summary = weekly_summary(snapshot, today, week_offset)
    return replace(
        summary,
        insights=weekly_insights(
            summary.total_minutes,
            summary.top_day,
            summary.top_categories,
            summary.comparison_to_previous,
        ),
    )


def day_period(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


def focus_completion(activities: list[ActivityRecord]) -> Optional[float]:
    """Percentage of focus sessions completed, or None without any focus session."""
    sessions = [activity for activity in activities if activity.is_focus_session]
    if not sessions:
        return None
    completed = sum(1 for session in sessions if session.completed)
    return completed / len(sessions) * 100


def _peak_hour_insight(activities: list[ActivityRecord]) -> Optional[BehavioralInsight]:
    hour = top_key(minutes_by_hour(activities))
    if hour is None:
        return None
    return BehavioralInsight(
        type="peak_hour",
        title="Peak Productivity Hour",
        description=f"You're most productive around {hour}:00 in the {day_period(hour)}",
        value=f"{hour}:00",
    )


def _productive_day_insight(activities: list[ActivityRecord]) -> Optional[BehavioralInsight]:
    weekday = top_key(minutes_by_weekday(activities))
    if weekday is None:
        return None
    return BehavioralInsight(
        type="productive_day",
        title="Most Productive Day",
        description=f"{weekday} is your most productive day",
        value=weekday,
    )


def _category_insight(
    activities: list[ActivityRecord], categories: list[Category]
) -> Optional[BehavioralInsight]:
    names = {category.id: category.name for category in categories}
    totals = sum_minutes(
        (a for a in activities if a.is_time_entry and a.category_id in names),
        lambda activity: names[activity.category_id],
    )
    name = top_key(totals)
    if name is None:
        return None
    return BehavioralInsight(
        type="category_trend",
        title="Top Focus Area",
        description=f"You've spent the most time on {name}",
        value=f"{round_half_up(totals[name])} min",
    )


def _distraction_insight(activities: list[ActivityRecord]) -> Optional[BehavioralInsight]:
    sessions: defaultdict[str, list[float]] = defaultdict(list)
    for activity in activities:
        if activity.is_app_usage and not activity.is_idle:
            sessions[activity.app_name or "Unknown"].append(activity.minutes)

    candidates = [
        (app, len(minutes), sum(minutes) / len(minutes))
        for app, minutes in sessions.items()
        if len(minutes) >= DISTRACTION_MIN_SESSIONS
        and sum(minutes) / len(minutes) < DISTRACTION_MAX_AVG_MINUTES
    ]
    if not candidates:
        return None
    app, count, average = min(candidates, key=lambda item: (-item[1], item[0]))
    return BehavioralInsight(
        type="distraction",
        title="Potential Distraction",
        description=f"{app} has {count} short sessions",
        value=f"{round_half_up(average)} min avg",
    )


def _focus_quality_insight(activities: list[ActivityRecord]) -> Optional[BehavioralInsight]:
    rate = focus_completion(activities)
    if rate is None:
        return None
    shown = round_half_up(rate)
    is_good = rate >= GOOD_FOCUS_RATE
    if is_good:
        description = f"Great focus! You complete {shown}% of your focus sessions"
    else:
        description = f"Try to improve focus - {shown}% completion rate"
    return BehavioralInsight(
        type="focus_quality",
        title="Focus Quality",
        description=description,
        value=f"{shown}%",
        trend=InsightTrend(value=rate, is_positive=is_good),
    )


def _streak_insight(
    activities: list[ActivityRecord], since: date
) -> Optional[BehavioralInsight]:
    days = calculate_streak(activity_dates(activities, since)).current
    if days < 1:
        return None
    if days >= IMPRESSIVE_STREAK_DAYS:
        description = f"Impressive! {days} days of consistent tracking"
    else:
        description = f"Keep it up! {days} day{'s' if days > 1 else ''} streak"
    return BehavioralInsight(
        type="streak",
        title="Activity Streak",
        description=description,
        value=f"{days} days",
        trend=InsightTrend(value=days, is_positive=days >= IMPRESSIVE_STREAK_DAYS),
    )


def behavioral_insights(
    snapshot: Snapshot,
    today: date,
    window: timedelta = timedelta(days=30),
    streak_window: timedelta = timedelta(days=60),
) -> list[BehavioralInsight]:
    """Independent findings over the recent window; each needs its own data to appear."""
    since = today - window
    recent = [a for a in snapshot.activities if a.day is not None and a.day >= since]
    candidates = (
        _peak_hour_insight(recent),
        _productive_day_insight(recent),
        _category_insight(recent, snapshot.categories),
        _distraction_insight(recent),
        _focus_quality_insight(recent),
        _streak_insight(snapshot.activities, today - streak_window),
    )
    return [insight for insight in candidates if insight is not None]
