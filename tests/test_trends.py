from __future__ import annotations

from datetime import date, datetime

import pytest

from activity_analytics.insights import summarize_week
from activity_analytics.models import Category, CategoryTime, Goal, GoalProgress, Snapshot
from activity_analytics.trends import (
    daily_stats,
    heatmap,
    hourly_patterns,
    intensity_for,
    productivity_trends,
    top_key,
    week_bounds,
)

TODAY = date(2024, 3, 13)


def test_intensity_bands():
    assert intensity_for(0, 100) == 0
    assert intensity_for(20, 100) == 1
    assert intensity_for(21, 100) == 2
    assert intensity_for(40, 100) == 2
    assert intensity_for(70, 100) == 3
    assert intensity_for(71, 100) == 4
    assert intensity_for(100, 100) == 4


def test_week_runs_sunday_to_saturday():
    assert week_bounds(TODAY) == (date(2024, 3, 10), date(2024, 3, 16))
    assert week_bounds(TODAY, -1) == (date(2024, 3, 3), date(2024, 3, 9))
    assert week_bounds(date(2024, 3, 10)) == (date(2024, 3, 10), date(2024, 3, 16))


def test_top_key_prefers_smallest_key_on_ties():
    assert top_key({14: 30.0, 9: 30.0, 11: 10.0}) == 9
    assert top_key({}) is None


def test_daily_stats_breakdown(make_activity):
    day = datetime(2024, 3, 12)
    activities = [
        make_activity(day.replace(hour=9), 60, category_id=1),
        make_activity(day.replace(hour=10), 30, source_type="automatic"),
        make_activity(day.replace(hour=11), 10, source_type="automatic", is_idle=True),
        make_activity(day.replace(hour=12), 25, source_type="pomodoro"),
        make_activity(
            day.replace(hour=12, minute=30),
            5,
            source_type="pomodoro",
            activity_type="pomodoro_break",
            session_type="shortBreak",
        ),
        make_activity(datetime(2024, 3, 13, 9), 25, source_type="pomodoro"),
    ]

    stats = daily_stats(activities, [Category(1, "Work", "#111111")], date(2024, 3, 12), TODAY)

    assert len(stats) == 1
    (entry,) = stats
    assert entry.date == date(2024, 3, 12)
    assert entry.total_minutes == 90
    assert entry.focus_minutes == 25
    assert entry.break_minutes == 5
    assert entry.idle_minutes == 10
    assert entry.completed_tasks == 1
    assert entry.categories == [CategoryTime(1, "Work", "#111111", 60, 100)]


def test_hourly_patterns_average_over_active_days(make_activity):
    activities = [
        make_activity(datetime(2024, 3, 11, 9), 30),
        make_activity(datetime(2024, 3, 11, 9, 5), 30, source_type="automatic", is_idle=True),
        make_activity(datetime(2024, 3, 12, 9, 10), 60),
        make_activity(datetime(2024, 3, 12, 14), 20),
        make_activity(datetime(2024, 1, 2, 9), 600),
    ]

    patterns = hourly_patterns(activities, since=datetime(2024, 3, 1))

    assert [(p.hour, p.avg_minutes, p.day_count) for p in patterns] == [(9, 45, 2), (14, 20, 1)]


def test_heatmap_intensity_and_breakdown(make_activity):
    busy = datetime(2024, 3, 11, 9)
    activities = [
        make_activity(busy, 70),
        make_activity(busy.replace(hour=11), 20, source_type="automatic"),
        make_activity(
            busy.replace(hour=12), 10, source_type="automatic", is_browser=True, activity_type="browser"
        ),
        make_activity(datetime(2024, 3, 12, 9), 20),
        make_activity(datetime(2023, 12, 31, 9), 500),
    ]

    days = heatmap(activities, 2024)

    assert [(d.date, d.intensity, d.total_minutes) for d in days] == [
        (date(2024, 3, 11), 4, 100),
        (date(2024, 3, 12), 1, 20),
    ]
    assert days[0].breakdown.apps == 20
    assert days[0].breakdown.browser == 10
    assert days[0].breakdown.focus == 0


def test_heatmap_empty_year():
    assert heatmap([], 2024) == []


def test_trends_grouping(make_activity):
    activities = [
        make_activity(datetime(2024, 3, 11, 9), 30),
        make_activity(datetime(2024, 3, 12, 9), 30),
        make_activity(datetime(2024, 3, 18, 9), 60),
    ]
    start, end = date(2024, 3, 1), date(2024, 3, 31)

    weekly = productivity_trends(activities, start, end, "week")
    monthly = productivity_trends(activities, start, end, "month")

    assert [(p.period, p.value) for p in weekly] == [("2024-W11", 60), ("2024-W12", 60)]
    assert [(p.period, p.value) for p in monthly] == [("2024-03", 120)]
    with pytest.raises(ValueError):
        productivity_trends(activities, start, end, "year")


def test_weekly_summary_against_previous_week(make_activity):
    snapshot = Snapshot(
        activities=[
            make_activity(datetime(2024, 3, 11, 8), 660),
            make_activity(datetime(2024, 3, 4, 8), 600),
        ],
        goals=[Goal(1, "Deep work", 60), Goal(2, "Weekly review", 300, period="weekly")],
        goal_progress=[
            GoalProgress(1, date(2024, 3, 12), 90, True),
            GoalProgress(1, date(2024, 3, 5), 90, True),
        ],
    )

    summary = summarize_week(snapshot, TODAY)

    assert summary.week_start == date(2024, 3, 10)
    assert summary.total_minutes == 660
    assert summary.avg_daily_minutes == 94
    assert summary.comparison_to_previous == 10
    assert summary.top_day.date == date(2024, 3, 11)
    assert summary.goals_achieved == 1
    assert summary.total_goals == 1
    assert summary.insights == ["Monday was your most productive day with 660 minutes tracked."]


def test_weekly_summary_without_previous_week(make_activity):
    snapshot = Snapshot(activities=[make_activity(datetime(2024, 3, 11, 8), 30)])

    assert summarize_week(snapshot, TODAY).comparison_to_previous == 0
