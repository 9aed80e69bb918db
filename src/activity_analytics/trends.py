"""Statistical aggregation of activities: daily stats, patterns, heatmap, weekly summary."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Callable, Hashable, Iterable, Literal, Optional, TypeVar

from .models import (
    WEEKDAY_NAMES,
    ActivityRecord,
    Category,
    CategoryTime,
    DailyStats,
    HeatmapBreakdown,
    HeatmapDay,
    HourlyPattern,
    Snapshot,
    TopDay,
    TrendPoint,
    WeeklySummary,
    round_half_up,
)

GroupBy = Literal["day", "week", "month"]
PERIOD_FORMATS: dict[str, str] = {
    "day": "%Y-%m-%d",
    "week": "%Y-W%W",
    "month": "%Y-%m",
}

K = TypeVar("K", bound=Hashable)


def in_range(activity: ActivityRecord, start: date, end: date) -> bool:
    day = activity.day
    return day is not None and start <= day <= end


def tracked(activities: Iterable[ActivityRecord]) -> list[ActivityRecord]:
    """Time entries plus non-idle app usage."""
    return [
        activity
        for activity in activities
        if activity.counts_as_tracked and activity.start_time is not None
    ]


def sum_minutes(
    activities: Iterable[ActivityRecord], key: Callable[[ActivityRecord], K]
) -> dict[K, float]:
    totals: defaultdict[K, float] = defaultdict(float)
    for activity in activities:
        totals[key(activity)] += activity.minutes
    return dict(totals)


def minutes_by_hour(activities: Iterable[ActivityRecord]) -> dict[int, float]:
    return sum_minutes(tracked(activities), lambda activity: activity.start_time.hour)


def minutes_by_weekday(activities: Iterable[ActivityRecord]) -> dict[str, float]:
    return sum_minutes(
        tracked(activities), lambda activity: WEEKDAY_NAMES[activity.start_time.weekday()]
    )


def top_key(totals: dict[K, float]) -> Optional[K]:
    """Key with the most minutes; ties go to the smallest key."""
    if not totals:
        return None
    return min(totals, key=lambda key: (-totals[key], key))


def top_categories(
    activities: Iterable[ActivityRecord],
    categories: Iterable[Category],
    limit: int,
) -> list[CategoryTime]:
    """Largest categories by minutes; percentages are relative to the listed total."""
    known = {category.id: category for category in categories}
    totals = sum_minutes(
        (activity for activity in activities if activity.category_id in known),
        lambda activity: activity.category_id,
    )
    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:limit]
    listed_total = sum(minutes for _, minutes in ranked)
    return [
        CategoryTime(
            category_id=category_id,
            category_name=known[category_id].name,
            category_color=known[category_id].color,
            minutes=round_half_up(minutes),
            percentage=round_half_up(minutes / listed_total * 100) if listed_total > 0 else 0,
        )
        for category_id, minutes in ranked
    ]


def daily_stats(
    activities: list[ActivityRecord],
    categories: list[Category],
    start: date,
    end: date,
) -> list[DailyStats]:
    """Per-day totals for every day with a time entry or app-usage record."""
    by_day: defaultdict[date, list[ActivityRecord]] = defaultdict(list)
    for activity in activities:
        if in_range(activity, start, end):
            by_day[activity.day].append(activity)

    stats: list[DailyStats] = []
    for day in sorted(by_day):
        records = by_day[day]
        if not any(record.is_time_entry or record.is_app_usage for record in records):
            continue
        time_entries = [record for record in records if record.is_time_entry]
        stats.append(
            DailyStats(
                date=day,
                total_minutes=round_half_up(sum(r.minutes for r in tracked(records))),
                focus_minutes=round_half_up(
                    sum(r.minutes for r in records if r.is_focus_session and r.completed)
                ),
                break_minutes=round_half_up(
                    sum(r.minutes for r in records if r.is_break_session)
                ),
                idle_minutes=round_half_up(
                    sum(r.minutes for r in records if r.is_app_usage and r.is_idle)
                ),
                completed_tasks=sum(1 for r in time_entries if r.end_time is not None),
                categories=top_categories(time_entries, categories, limit=10),
            )
        )
    return stats


def hourly_patterns(activities: list[ActivityRecord], since: datetime) -> list[HourlyPattern]:
    """Average minutes per hour of day, over the days that had activity in that hour."""
    per_hour_day = sum_minutes(
        (activity for activity in tracked(activities) if activity.start_time >= since),
        lambda activity: (activity.start_time.hour, activity.day),
    )
    by_hour: defaultdict[int, list[float]] = defaultdict(list)
    for (hour, _day), minutes in per_hour_day.items():
        by_hour[hour].append(minutes)
    return [
        HourlyPattern(
            hour=hour,
            avg_minutes=round_half_up(sum(values) / len(values)),
            day_count=len(values),
        )
        for hour, values in sorted(by_hour.items())
    ]


def intensity_for(minutes: float, max_minutes: float) -> int:
    """Intensity band 0-4 of a day relative to the busiest day of the year."""
    if minutes <= 0 or max_minutes <= 0:
        return 0
    ratio = minutes / max_minutes
    if ratio <= 0.2:
        return 1
    if ratio <= 0.4:
        return 2
    if ratio <= 0.7:
        return 3
    return 4


def heatmap(activities: list[ActivityRecord], year: int) -> list[HeatmapDay]:
    start = date(year, 1, 1)
    end = date(year, 12, 31)
    in_year = [activity for activity in activities if in_range(activity, start, end)]
    totals = sum_minutes(tracked(in_year), lambda activity: activity.day)
    if not totals:
        return []
    busiest = max(totals.values())

    focus = sum_minutes(
        (a for a in in_year if a.is_focus_session and a.completed), lambda a: a.day
    )
    apps = sum_minutes(
        (a for a in in_year if a.is_app_usage and not a.is_idle and not a.is_browser),
        lambda a: a.day,
    )
    browser = sum_minutes(
        (a for a in in_year if a.is_app_usage and not a.is_idle and a.is_browser),
        lambda a: a.day,
    )
    return [
        HeatmapDay(
            date=day,
            intensity=intensity_for(minutes, busiest),
            total_minutes=round_half_up(minutes),
            breakdown=HeatmapBreakdown(
                focus=round_half_up(focus.get(day, 0.0)),
                apps=round_half_up(apps.get(day, 0.0)),
                browser=round_half_up(browser.get(day, 0.0)),
            ),
        )
        for day, minutes in sorted(totals.items())
    ]


def week_bounds(today: date, offset: int = 0) -> tuple[date, date]:
    """Sunday-to-Saturday week containing ``today``, shifted by ``offset`` weeks."""
    days_since_sunday = (today.weekday() + 1) % 7
    start = today - timedelta(days=days_since_sunday) + timedelta(weeks=offset)
    return start, start + timedelta(days=6)


def weekly_summary(snapshot: Snapshot, today: date, week_offset: int = 0) -> WeeklySummary:
    """Totals for one week compared with the week before.

    ``snapshot`` must cover both weeks. Insights are left empty here and
    filled in by the insight engine.
    """
    week_start, week_end = week_bounds(today, week_offset)
    previous_start = week_start - timedelta(weeks=1)
    previous_end = week_end - timedelta(weeks=1)

    this_week = [a for a in snapshot.activities if in_range(a, week_start, week_end)]
    last_week = [a for a in snapshot.activities if in_range(a, previous_start, previous_end)]

    per_day = sum_minutes(tracked(this_week), lambda activity: activity.day)
    total_minutes = round_half_up(sum(per_day.values()))
    previous_minutes = sum(activity.minutes for activity in tracked(last_week))

    best_day = top_key(per_day)
    top_day = TopDay(best_day, round_half_up(per_day[best_day])) if best_day is not None else None

    daily_goals = {goal.id for goal in snapshot.goals if goal.active and goal.period == "daily"}
    achieved = {
        entry.goal_id
        for entry in snapshot.goal_progress
        if entry.achieved and entry.goal_id in daily_goals and week_start <= entry.date <= week_end
    }

    comparison = (
        round_half_up((total_minutes - previous_minutes) / previous_minutes * 100)
        if previous_minutes > 0
        else 0
    )
    return WeeklySummary(
        week_start=week_start,
        week_end=week_end,
        total_minutes=total_minutes,
        avg_daily_minutes=round_half_up(total_minutes / 7),
        top_day=top_day,
        top_categories=top_categories(
            (a for a in this_week if a.is_time_entry or a.is_app_usage),
            snapshot.categories,
            limit=5,
        ),
        goals_achieved=len(achieved),
        total_goals=len(daily_goals),
        comparison_to_previous=comparison,
    )


def productivity_trends(
    activities: list[ActivityRecord], start: date, end: date, group_by: GroupBy = "day"
) -> list[TrendPoint]:
    """Combined minutes per day, week or month, ascending by period key."""
    period_format = PERIOD_FORMATS.get(group_by)
    if period_format is None:
        raise ValueError(f"group_by must be one of {', '.join(PERIOD_FORMATS)}")
    totals = sum_minutes(
        (activity for activity in tracked(activities) if in_range(activity, start, end)),
        lambda activity: activity.start_time.strftime(period_format),
    )
    return [
        TrendPoint(period=period, value=round_half_up(minutes))
        for period, minutes in sorted(totals.items())
    ]
